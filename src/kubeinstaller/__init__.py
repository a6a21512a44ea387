"""
kube-node-installer - Kubernetes node installer for Ubuntu 22.04
"""

__version__ = "0.1.0"

from .core import NodeInstaller
from .errors import InstallerError
from .models import InstallConfig, NodeRole

__all__ = ["InstallConfig", "InstallerError", "NodeInstaller", "NodeRole"]
