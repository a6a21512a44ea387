"""Host distribution detection for kube-node-installer."""

import shlex
from typing import Dict, Optional, Tuple

from kubeinstaller import constants
from kubeinstaller.errors import UnsupportedDistributionError
from kubeinstaller.errors_catalog import actionable_error


class DistributionService:
    """Reads the release files and enforces the single supported release."""

    def __init__(self, logger, filesystem_service):
        self.logger = logger
        self.filesystem = filesystem_service

    @staticmethod
    def parse_release_file(content: str) -> Dict[str, str]:
        values: Dict[str, str] = {}
        for line in content.splitlines():
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, _, raw_value = line.partition("=")
            try:
                parsed = shlex.split(raw_value)
            except ValueError:
                parsed = [raw_value]
            values[key.strip()] = parsed[0] if parsed else ""
        return values

    def detect(self) -> Tuple[Optional[str], Optional[str]]:
        """Returns ``(distributor id, release)``, either may be None."""
        if self.filesystem.exists(constants.LSB_RELEASE_PATH):
            values = self.parse_release_file(self.filesystem.read_text(constants.LSB_RELEASE_PATH))
            if values.get("DISTRIB_RELEASE"):
                return values.get("DISTRIB_ID"), values["DISTRIB_RELEASE"]

        if self.filesystem.exists(constants.OS_RELEASE_PATH):
            values = self.parse_release_file(self.filesystem.read_text(constants.OS_RELEASE_PATH))
            return values.get("NAME"), values.get("VERSION_ID")

        return None, None

    def ensure_supported(self, supported_release: str):
        distributor, release = self.detect()
        self.logger.debug("Detected distribution %s %s", distributor, release)
        if release != supported_release:
            detected = " ".join(part for part in (distributor, release) if part) or "unknown"
            raise UnsupportedDistributionError(
                actionable_error(
                    "unsupported_distribution",
                    supported=supported_release,
                    detected=detected,
                )
            )
