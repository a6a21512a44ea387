"""Actionable error catalog for kube-node-installer."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "unsupported_distribution": {
        "what": "This installer only works on Ubuntu {supported}. Detected: {detected}.",
        "next": "Run the installer on a fresh Ubuntu {supported} host.",
    },
    "command_not_found": {
        "what": "Required command not found: {command}.",
        "next": "Install it (or check PATH) and run the installer again.",
    },
    "invalid_sha256": {
        "what": "{option} must be a valid SHA-256 hash (64 hexadecimal characters).",
        "next": "Copy the checksum published next to the containerd release tarball.",
    },
    "invalid_version": {
        "what": "Invalid {label} version: {value}",
        "next": "Use a plain release version such as `1.26.3`.",
    },
    "step_failed": {
        "what": "Step '{step}' failed.",
        "next": "Review the log printed above, fix the host, then rerun the installer.",
    },
    "nodes_not_ready": {
        "what": "Nodes did not become Ready within {timeout} seconds.",
        "next": "Check `kubectl get pods -A` for CNI pods that are still starting.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
