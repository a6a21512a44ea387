"""kubeadm/kubectl operations for the control-plane and worker tails."""

import posixpath
from typing import Callable, Sequence

from kubeinstaller import constants
from kubeinstaller.errors import InstallerError
from kubeinstaller.errors_catalog import actionable_error

JOIN_COMMAND = ["kubeadm", "token", "create", "--print-join-command", "--ttl", "0"]


class ClusterService:
    """Bootstraps the control plane and reports how workers join it."""

    def __init__(self, logger, console, run_cmd: Callable, filesystem_service, systemd_service):
        self.logger = logger
        self.console = console
        self.run_cmd = run_cmd
        self.filesystem = filesystem_service
        self.systemd = systemd_service

    def _kubectl(self, *args: str) -> list:
        return ["kubectl", "--kubeconfig", constants.ADMIN_KUBECONFIG_PATH, *args]

    def init_control_plane(self, kube_version: str, pod_network_cidr: str):
        self.run_cmd(
            [
                "kubeadm",
                "init",
                f"--kubernetes-version={kube_version}",
                "--ignore-preflight-errors=NumCPU",
                "--skip-token-print",
                "--pod-network-cidr",
                pod_network_cidr,
            ]
        )

    def install_cni(self, calico_url: str, manifests: Sequence[str] = constants.CALICO_MANIFESTS):
        for manifest in manifests:
            self.console.print(f"==> Installing Calico {manifest}")
            self.logger.debug("Installing Calico manifest %s", manifest)
            self.run_cmd(self._kubectl("create", "-f", f"{calico_url.rstrip('/')}/{manifest}.yaml"))

    def wait_for_nodes(self, timeout_seconds: int):
        try:
            self.run_cmd(
                self._kubectl(
                    "wait",
                    "--for=condition=Ready",
                    "--all",
                    "nodes",
                    f"--timeout={timeout_seconds}s",
                ),
                timeout=timeout_seconds + 30,
            )
        except InstallerError as exc:
            raise InstallerError(
                f"{actionable_error('nodes_not_ready', timeout=str(timeout_seconds))}\n{exc}"
            ) from exc
        self.console.print("==> Nodes are ready")

    @staticmethod
    def _kubeconfig_paths(user: str):
        home = "/root" if user == "root" else posixpath.join("/home", user)
        kube_dir = posixpath.join(home, ".kube")
        return home, kube_dir, posixpath.join(kube_dir, "config")

    def remove_stale_kubeconfigs(self, users: Sequence[str]):
        for user in users:
            _, _, config_path = self._kubeconfig_paths(user)
            self.filesystem.remove_file(config_path)

    def configure_kubeconfig(self, users: Sequence[str]):
        """Copies the admin kubeconfig to each user's ``~/.kube/config``.

        Failures for ``root`` are fatal; other accounts may legitimately not
        exist on the host and are skipped with a warning.
        """
        for user in users:
            try:
                self._install_kubeconfig(user)
            except InstallerError as exc:
                if user == "root":
                    raise
                self.logger.warning("Skipping kubeconfig for %s: %s", user, exc)

    def _install_kubeconfig(self, user: str):
        home, kube_dir, config_path = self._kubeconfig_paths(user)
        if user != "root" and not self.filesystem.exists(home):
            raise InstallerError(f"Home directory {home} does not exist")
        self.filesystem.make_dirs(kube_dir)
        self.filesystem.copy_file(constants.ADMIN_KUBECONFIG_PATH, config_path)
        if user != "root":
            self.filesystem.chown(kube_dir, user)
            self.filesystem.chown(config_path, user)
        self.logger.debug("Installed kubeconfig for %s at %s", user, config_path)

    def join_command(self) -> str:
        result = self.run_cmd(JOIN_COMMAND)
        return (result.stdout or "").strip()

    def check_worker_services(self):
        # Until the node joins a cluster only containerd is expected to run.
        self.console.print("==> Checking containerd")
        if not self.systemd.is_active("containerd"):
            raise InstallerError("containerd service is not active.")
