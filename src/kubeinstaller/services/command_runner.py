"""Subprocess execution service for kube-node-installer."""

import shutil
import subprocess
import time
from typing import List, Optional

from kubeinstaller.errors import InstallerError
from kubeinstaller.errors_catalog import actionable_error


class CommandRunner:
    """Runs external commands, logging their output into the run log."""

    def __init__(self, logger, default_timeout: Optional[float] = None):
        self.logger = logger
        self.default_timeout = default_timeout

    def command_exists(self, name: str) -> bool:
        return shutil.which(name) is not None

    def run(
        self,
        cmd: List[str],
        check: bool = True,
        timeout: Optional[float] = None,
        retry_count: int = 0,
        retry_backoff_seconds: float = 0.0,
    ) -> subprocess.CompletedProcess:
        cmd_str = " ".join(cmd)
        self.logger.debug("Executing: %s", cmd_str)

        effective_timeout = timeout if timeout is not None else self.default_timeout
        max_attempts = max(1, retry_count + 1)

        for attempt in range(1, max_attempts + 1):
            try:
                result = subprocess.run(
                    cmd,
                    text=True,
                    capture_output=True,
                    timeout=effective_timeout,
                )
            except FileNotFoundError as exc:
                message = actionable_error("command_not_found", command=cmd[0])
                if not check:
                    self.logger.warning(message)
                    return subprocess.CompletedProcess(cmd, 127, stdout="", stderr=message)
                raise InstallerError(message) from exc
            except subprocess.TimeoutExpired as exc:
                if attempt < max_attempts:
                    self.logger.warning(
                        "Command timed out on attempt %s/%s. Retrying in %.1fs: %s",
                        attempt,
                        max_attempts,
                        retry_backoff_seconds,
                        cmd_str,
                    )
                    time.sleep(retry_backoff_seconds)
                    continue
                raise InstallerError(
                    f"Command timed out after {effective_timeout}s: {cmd_str}"
                ) from exc
            except Exception as exc:
                raise InstallerError(f"Failed to execute command: {cmd_str}. {exc}") from exc

            if result.stdout:
                self.logger.debug(result.stdout.rstrip())
            if result.stderr:
                self.logger.debug(result.stderr.rstrip())

            if result.returncode == 0:
                return result

            stderr = (result.stderr or "").strip()
            message = f"Command failed ({result.returncode}): {cmd_str}"
            if stderr:
                message = f"{message}\n{stderr}"

            if attempt < max_attempts:
                self.logger.warning(
                    "Command failed on attempt %s/%s and will be retried in %.1fs.\n%s",
                    attempt,
                    max_attempts,
                    retry_backoff_seconds,
                    message,
                )
                time.sleep(retry_backoff_seconds)
                continue

            if check:
                raise InstallerError(message)

            self.logger.warning("Ignoring failure: %s", message)
            return result

        raise InstallerError(f"Command failed after retries: {cmd_str}")
