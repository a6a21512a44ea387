"""apt package management for kube-node-installer."""

import os
from typing import Callable, Sequence

from kubeinstaller import constants


class PackageService:
    """Removes conflicting packages and installs the pinned Kubernetes set."""

    def __init__(self, logger, run_cmd: Callable, command_exists: Callable, filesystem_service,
                 download_service, systemd_service):
        self.logger = logger
        self.run_cmd = run_cmd
        self.command_exists = command_exists
        self.filesystem = filesystem_service
        self.download = download_service
        self.systemd = systemd_service

    def remove_conflicting_packages(self):
        """Clears any earlier cluster and runtime install.

        Every command here tolerates failure, so one failed removal never skips
        the rest.
        """
        if self.command_exists("kubeadm"):
            self.run_cmd(["kubeadm", "reset", "-f"], check=False)

        if self.command_exists("crictl"):
            self._remove_all_containers()

        self.run_cmd(["apt-mark", "unhold", *constants.KUBE_PACKAGES], check=False)
        self.run_cmd(["apt-get", "remove", "-y", *constants.MOBY_PACKAGES], check=False)
        self.run_cmd(["apt-get", "autoremove", "-y"], check=False)
        self.run_cmd(["apt-get", "remove", "-y", *constants.CONFLICTING_PACKAGES], check=False)
        self.run_cmd(["apt-get", "autoremove", "-y"], check=False)
        self.systemd.daemon_reload(check=False)

    def _remove_all_containers(self):
        listing = self.run_cmd(["crictl", "ps", "-a", "-q"], check=False)
        container_ids = (listing.stdout or "").split() if listing.returncode == 0 else []
        if not container_ids:
            self.logger.debug("No containers to remove")
            return
        self.run_cmd(["crictl", "rm", "--force", *container_ids], check=False)

    def add_kubernetes_repository(self, staging_dir: str):
        self.filesystem.write_file(constants.APT_SOURCES_PATH, constants.APT_SOURCES_CONTENT)
        key_path = os.path.join(staging_dir, "apt-key.gpg")
        self.download.download_file(constants.APT_KEY_URL, key_path, "Kubernetes apt key")
        self.run_cmd(["apt-key", "add", key_path])

    def install_pinned(self, kube_version: str):
        pinned = [f"{name}={kube_version}-00" for name in constants.PINNED_PACKAGES]
        self.run_cmd(["apt-get", "update"], retry_count=2, retry_backoff_seconds=5.0)
        self.run_cmd(["apt-get", "install", "-y", "containerd", *pinned, "kubernetes-cni"])
        self.hold(constants.KUBE_PACKAGES)

    def hold(self, packages: Sequence[str]):
        self.run_cmd(["apt-mark", "hold", *packages])
