"""Shared domain models for kube-node-installer."""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple

from . import constants


class NodeRole(str, Enum):
    CONTROL_PLANE = "control-plane"
    WORKER = "worker"


@dataclass(frozen=True)
class InstallConfig:
    """Settings fixed at process start and passed into the installer."""

    role: NodeRole = NodeRole.WORKER
    verbose: bool = False
    kube_version: str = constants.KUBE_VERSION
    containerd_version: str = constants.CONTAINERD_VERSION
    calico_version: str = constants.CALICO_VERSION
    pod_network_cidr: str = constants.POD_NETWORK_CIDR
    node_ready_timeout_seconds: int = constants.NODE_READY_TIMEOUT_SECONDS
    kubeconfig_users: Tuple[str, ...] = constants.KUBECONFIG_USERS
    supported_release: str = constants.SUPPORTED_RELEASE
    containerd_sha256: Optional[str] = None
    dry_run: bool = False

    @property
    def is_control_plane(self) -> bool:
        return self.role == NodeRole.CONTROL_PLANE

    @property
    def calico_url(self) -> str:
        return constants.CALICO_URL.format(version=self.calico_version)

    @property
    def containerd_url(self) -> str:
        return constants.CONTAINERD_RELEASE_URL.format(
            version=self.containerd_version,
            arch=constants.ARCH,
        )


@dataclass(frozen=True)
class Step:
    """One named unit of the ordered installation plan."""

    name: str
    description: str
    callback: Callable[[], None]
    ignore_failure: bool = False


@dataclass(frozen=True)
class StepResult:
    name: str
    status: str
    error: Optional[str] = None
