import io
import os
import subprocess
import tarfile

import pytest
from rich.console import Console

from kubeinstaller.core import NodeInstaller
from kubeinstaller.errors import InstallerError
from kubeinstaller.models import InstallConfig, NodeRole

JOIN = "kubeadm join 10.0.0.1:6443 --token abc.def --discovery-token-ca-cert-hash sha256:123"


def _containerd_tarball() -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for name in ("containerd", "ctr"):
            payload = f"{name}-binary".encode()
            info = tarfile.TarInfo(f"bin/{name}")
            info.size = len(payload)
            tar.addfile(info, io.BytesIO(payload))
    return buffer.getvalue()


class FakeResponse:
    def __init__(self, payload: bytes):
        self.payload = payload
        self.headers = {"Content-Length": str(len(payload))}

    def raise_for_status(self):
        return None

    def iter_content(self, chunk_size=8192):
        yield self.payload

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


class FakeRequestsModule:
    class RequestException(Exception):
        pass

    def __init__(self):
        self.urls = []

    def get(self, url, *_args, **_kwargs):
        self.urls.append(url)
        if url.endswith(".tar.gz"):
            return FakeResponse(_containerd_tarball())
        return FakeResponse(b"apt-key")


class FakeCommandRunner:
    def __init__(self, failing=(), installed=()):
        self.calls = []
        self.failing = failing
        self.installed = installed

    def command_exists(self, name):
        return name in self.installed

    def run(self, cmd, check=True, **_kwargs):
        self.calls.append(list(cmd))
        command = " ".join(cmd)
        if any(command.startswith(prefix) for prefix in self.failing):
            if check:
                raise InstallerError(f"Command failed (1): {command}")
            return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="")
        stdout = JOIN + "\n" if command.startswith("kubeadm token create") else ""
        return subprocess.CompletedProcess(cmd, 0, stdout=stdout, stderr="")

    def index_of(self, prefix):
        for index, call in enumerate(self.calls):
            if " ".join(call).startswith(prefix):
                return index
        raise AssertionError(f"{prefix!r} was never executed")

    def ran(self, prefix):
        return any(" ".join(call).startswith(prefix) for call in self.calls)


@pytest.fixture
def host_root(tmp_path):
    root = tmp_path / "host"
    (root / "etc" / "kubernetes").mkdir(parents=True)
    (root / "root").mkdir()
    (root / "etc" / "lsb-release").write_text(
        "DISTRIB_ID=Ubuntu\nDISTRIB_RELEASE=22.04\nDISTRIB_CODENAME=jammy\n",
        encoding="utf-8",
    )
    (root / "etc" / "fstab").write_text(
        "UUID=1234 / ext4 defaults 0 1\n/swap.img none swap sw 0 0\n",
        encoding="utf-8",
    )
    (root / "etc" / "kubernetes" / "admin.conf").write_text("apiVersion: v1\n", encoding="utf-8")
    return root


@pytest.fixture
def tmp_root(tmp_path):
    path = tmp_path / "tmp"
    path.mkdir()
    return path


def build_installer(host_root, tmp_root, runner, **config_kwargs):
    output = io.StringIO()
    installer = NodeInstaller(
        InstallConfig(**config_kwargs),
        root_dir=str(host_root),
        command_runner=runner,
        requests_module=FakeRequestsModule(),
        console=Console(file=output, width=200),
        tmp_root=str(tmp_root),
    )
    return installer, output


def test_worker_run_executes_worker_tail(host_root, tmp_root):
    runner = FakeCommandRunner()
    installer, output = build_installer(host_root, tmp_root, runner)

    assert installer.run() == 0

    text = output.getvalue()
    assert "kubeadm token create --print-join-command --ttl 0" in text
    assert "Run the below on the control plane node" in text
    assert "Configuring control plane node" not in text
    assert "Install complete!" in text
    assert ["systemctl", "is-active", "containerd"] in runner.calls
    assert not runner.ran("kubeadm init")
    assert not runner.ran("kubeadm token create")


def test_worker_run_configures_host_files(host_root, tmp_root):
    installer, _ = build_installer(host_root, tmp_root, FakeCommandRunner())

    assert installer.run() == 0

    assert (host_root / "usr" / "bin" / "containerd").read_bytes() == b"containerd-binary"
    assert "#/swap.img none swap sw 0 0" in (host_root / "etc" / "fstab").read_text(encoding="utf-8")
    assert (host_root / "etc" / "containerd" / "config.toml").exists()
    assert (host_root / "etc" / "modules-load.d" / "containerd.conf").exists()
    assert (host_root / "etc" / "sysctl.d" / "99-kubernetes-cri.conf").exists()
    assert (host_root / "etc" / "crictl.yaml").exists()
    assert (host_root / "etc" / "default" / "kubelet").exists()
    assert (host_root / "etc" / "apt" / "sources.list.d" / "kubernetes.list").exists()


def test_control_plane_tail_runs_in_fixed_order(host_root, tmp_root):
    runner = FakeCommandRunner()
    installer, output = build_installer(host_root, tmp_root, runner, role=NodeRole.CONTROL_PLANE)

    assert installer.run() == 0

    init = runner.index_of("kubeadm init")
    operator = runner.index_of("kubectl --kubeconfig /etc/kubernetes/admin.conf create -f")
    resources = operator + 1
    wait = runner.index_of("kubectl --kubeconfig /etc/kubernetes/admin.conf wait")
    join = runner.index_of("kubeadm token create")

    assert runner.calls[operator][-1].endswith("/tigera-operator.yaml")
    assert runner.calls[resources][-1].endswith("/custom-resources.yaml")
    assert init < operator < resources < wait < join
    assert "--timeout=180s" in runner.calls[wait]

    tail = [result.name for result in installer.results][-6:]
    assert tail == [
        "kubeadm_init",
        "install_cni",
        "wait_for_nodes",
        "remove_stale_kubeconfig",
        "configure_kubeconfig",
        "print_join_command",
    ]
    assert (host_root / "root" / ".kube" / "config").read_text(encoding="utf-8") == "apiVersion: v1\n"

    text = output.getvalue()
    assert "Configuring control plane node..." in text
    assert JOIN in text
    assert not runner.ran("systemctl is-active")
    assert "check_worker_services" not in [result.name for result in installer.results]


def test_unsupported_release_exits_before_any_mutation(host_root, tmp_root):
    (host_root / "etc" / "lsb-release").write_text(
        "DISTRIB_ID=Ubuntu\nDISTRIB_RELEASE=20.04\n",
        encoding="utf-8",
    )
    runner = FakeCommandRunner()
    installer, output = build_installer(host_root, tmp_root, runner)

    assert installer.run() == 1

    assert runner.calls == []
    assert "only works on Ubuntu 22.04" in output.getvalue()
    assert "### Log file ###" not in output.getvalue()
    assert not (host_root / "etc" / "containerd").exists()
    assert "/swap.img none swap" in (host_root / "etc" / "fstab").read_text(encoding="utf-8")
    assert os.listdir(tmp_root) == []


def test_step_failure_dumps_log_and_cleans_temp_dir(host_root, tmp_root):
    runner = FakeCommandRunner(failing=("apt-get install",))
    installer, output = build_installer(host_root, tmp_root, runner)

    assert installer.run() == 1

    text = output.getvalue()
    assert "Error in step install_packages" in text
    assert "### Log file ###" in text
    assert "==> Step disable_swap" in text
    assert installer.results[-1].name == "install_packages"
    assert installer.results[-1].status == "failed"
    assert not runner.ran("systemctl stop containerd")
    assert os.listdir(tmp_root) == []


def test_best_effort_removal_never_aborts_run(host_root, tmp_root):
    runner = FakeCommandRunner(
        failing=("kubeadm reset", "apt-mark unhold", "apt-get remove", "apt-get autoremove"),
        installed=("kubeadm",),
    )
    installer, _ = build_installer(host_root, tmp_root, runner)

    assert installer.run() == 0

    statuses = {result.name: result.status for result in installer.results}
    assert statuses["remove_packages"] == "success"
    assert statuses["install_packages"] == "success"
    assert runner.index_of("apt-get autoremove") < runner.index_of("apt-get remove -y docker.io")
    assert runner.index_of("apt-get remove -y docker.io") < runner.index_of("systemctl daemon-reload")


def test_unexpected_removal_error_is_ignored(host_root, tmp_root, monkeypatch):
    installer, _ = build_installer(host_root, tmp_root, FakeCommandRunner())

    def broken_removal():
        raise OSError("dpkg lock held")

    monkeypatch.setattr(installer.package_service, "remove_conflicting_packages", broken_removal)

    assert installer.run() == 0
    statuses = {result.name: result.status for result in installer.results}
    assert statuses["remove_packages"] == "ignored"
    assert statuses["install_packages"] == "success"


def test_stale_kubeconfig_removal_is_best_effort(host_root, tmp_root, monkeypatch):
    runner = FakeCommandRunner()
    installer, _ = build_installer(host_root, tmp_root, runner, role=NodeRole.CONTROL_PLANE)

    def broken_removal(_users):
        raise InstallerError("permission denied")

    monkeypatch.setattr(installer.cluster_service, "remove_stale_kubeconfigs", broken_removal)

    assert installer.run() == 0
    statuses = {result.name: result.status for result in installer.results}
    assert statuses["remove_stale_kubeconfig"] == "ignored"


def test_verbose_run_prints_log_at_end(host_root, tmp_root):
    installer, output = build_installer(host_root, tmp_root, FakeCommandRunner(), verbose=True)

    assert installer.run() == 0

    text = output.getvalue()
    assert text.index("Install complete!") < text.index("### Log file ###")
    assert "==> Step start_services" in text
    assert os.listdir(tmp_root) == []


def test_dry_run_prints_plan_without_executing(host_root, tmp_root):
    runner = FakeCommandRunner()
    installer, output = build_installer(
        host_root,
        tmp_root,
        runner,
        role=NodeRole.CONTROL_PLANE,
        dry_run=True,
    )

    assert installer.run() == 0

    text = output.getvalue()
    assert "kubeadm_init" in text
    assert "check_worker_services" not in text
    assert runner.calls == []
    assert os.listdir(tmp_root) == []


def test_build_steps_orders_common_steps_before_tail(host_root, tmp_root):
    installer, _ = build_installer(host_root, tmp_root, FakeCommandRunner())

    names = [step.name for step in installer.build_steps()]

    assert names[0] == "check_distribution"
    assert names[-2:] == ["check_worker_services", "print_worker_instructions"]
    assert [step.name for step in installer.build_steps() if step.ignore_failure] == ["remove_packages"]


def test_invalid_checksum_is_rejected(host_root, tmp_root):
    with pytest.raises(InstallerError, match="SHA-256"):
        build_installer(host_root, tmp_root, FakeCommandRunner(), containerd_sha256="abc")


def test_checksum_is_normalized(host_root, tmp_root):
    installer, _ = build_installer(
        host_root,
        tmp_root,
        FakeCommandRunner(),
        containerd_sha256=" " + "A" * 64 + " ",
    )

    assert installer.config.containerd_sha256 == "a" * 64


def test_invalid_version_is_rejected(host_root, tmp_root):
    with pytest.raises(InstallerError, match="Invalid Kubernetes version"):
        build_installer(host_root, tmp_root, FakeCommandRunner(), kube_version="latest")
