"""Container runtime and node-level host configuration."""

import os
from typing import Callable, Optional

from kubeinstaller import constants


class RuntimeService:
    """Installs containerd from the upstream release and writes node config files."""

    def __init__(self, logger, run_cmd: Callable, filesystem_service,
                 download_service, archive_service, systemd_service):
        self.logger = logger
        self.run_cmd = run_cmd
        self.filesystem = filesystem_service
        self.download = download_service
        self.archive = archive_service
        self.systemd = systemd_service

    def disable_swap(self):
        self.run_cmd(["swapoff", "-a"])
        self.filesystem.comment_out_swap_entries(constants.FSTAB_PATH)

    def install_containerd(self, url: str, staging_dir: str, expected_sha256: Optional[str] = None):
        """Overwrites the apt-installed containerd binaries with the release build."""
        tarball = os.path.join(staging_dir, os.path.basename(url))
        try:
            self.download.download_file(
                url,
                tarball,
                "containerd release",
                expected_sha256=expected_sha256,
            )
            self.systemd.stop("containerd")
            installed = self.archive.extract_binaries(
                tarball,
                self.filesystem.host_path(constants.BINARY_DIR),
                mode=constants.BINARY_MODE,
            )
            self.logger.debug("Installed binaries: %s", ", ".join(installed))
        finally:
            self.filesystem.cleanup_dir(staging_dir)
        self.systemd.unmask("containerd")
        self.systemd.start("containerd")

    def configure_containerd(self):
        self.filesystem.make_dirs(os.path.dirname(constants.CONTAINERD_CONFIG_PATH))
        self.filesystem.write_file(
            constants.CONTAINERD_CONFIG_PATH,
            constants.CONTAINERD_CONFIG_CONTENT,
        )

    def configure_kernel(self):
        self.filesystem.write_file(
            constants.MODULES_LOAD_PATH,
            "".join(f"{module}\n" for module in constants.KERNEL_MODULES),
        )
        self.filesystem.write_file(constants.SYSCTL_PATH, constants.SYSCTL_CONTENT)
        for module in constants.KERNEL_MODULES:
            self.run_cmd(["modprobe", module])
        self.run_cmd(["sysctl", "--system"])

    def configure_crictl(self):
        self.filesystem.write_file(constants.CRICTL_CONFIG_PATH, constants.CRICTL_CONTENT)

    def configure_kubelet(self):
        self.filesystem.write_file(
            constants.KUBELET_DEFAULTS_PATH,
            constants.KUBELET_DEFAULTS_CONTENT,
        )

    def start_services(self):
        # kubelet has no config.yaml until kubeadm init/join writes one, and
        # both of those start it themselves; only enable it here.
        self.systemd.daemon_reload()
        self.systemd.enable("containerd")
        self.systemd.restart("containerd")
        self.systemd.enable("kubelet")
