"""Domain errors for kube-node-installer."""


class InstallerError(RuntimeError):
    """Raised when the installation cannot continue safely."""


class UnsupportedDistributionError(InstallerError):
    """Raised when the host is not the supported Ubuntu release."""
