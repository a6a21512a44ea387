"""Configuration loader for kube-node-installer."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from kubeinstaller.errors import InstallerError


class ConfigLoader:
    """Loads YAML configuration files for CLI defaults."""

    SUPPORTED_KEYS = {
        "control_plane",
        "verbose",
        "kube_version",
        "containerd_version",
        "containerd_sha256",
        "calico_version",
        "pod_network_cidr",
        "node_ready_timeout",
        "kubeconfig_users",
        "log_file",
        "dry_run",
    }
    BOOL_KEYS = {"control_plane", "verbose", "dry_run"}
    STRING_KEYS = {"containerd_sha256", "pod_network_cidr", "log_file"}
    NULLABLE_KEYS = {"containerd_sha256", "log_file"}
    VERSION_KEYS = {"kube_version", "containerd_version", "calico_version"}

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise InstallerError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise InstallerError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise InstallerError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise InstallerError(f"Unknown configuration keys: {unknown_list}")

        for key in self.BOOL_KEYS & parsed.keys():
            if not isinstance(parsed[key], bool):
                raise InstallerError(f"`{key}` must be true or false.")

        for key in self.STRING_KEYS & parsed.keys():
            if parsed[key] is None and key in self.NULLABLE_KEYS:
                continue
            if not isinstance(parsed[key], str):
                raise InstallerError(f"`{key}` must be a string.")

        for key in self.VERSION_KEYS & parsed.keys():
            value = parsed[key]
            if isinstance(value, bool) or not isinstance(value, (str, int, float)):
                raise InstallerError(f"`{key}` must be a version string such as '1.26.3'.")

        timeout = parsed.get("node_ready_timeout")
        if timeout is not None and (isinstance(timeout, bool) or not isinstance(timeout, int)):
            raise InstallerError("`node_ready_timeout` must be a whole number of seconds.")

        users = parsed.get("kubeconfig_users")
        if users is not None and (
            not isinstance(users, list) or not all(isinstance(user, str) for user in users)
        ):
            raise InstallerError("`kubeconfig_users` must be a list of user names.")

        return parsed
