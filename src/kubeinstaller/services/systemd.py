"""systemd service helpers."""

from typing import Callable


class SystemdService:
    """Thin wrapper over ``systemctl`` that routes through the command runner."""

    def __init__(self, logger, run_cmd: Callable):
        self.logger = logger
        self.run_cmd = run_cmd

    def _systemctl(self, *args: str, check: bool = True):
        return self.run_cmd(["systemctl", *args], check=check)

    def daemon_reload(self, check: bool = True):
        self._systemctl("daemon-reload", check=check)

    def enable(self, unit: str):
        self._systemctl("enable", unit)

    def start(self, unit: str):
        self._systemctl("start", unit)

    def stop(self, unit: str):
        self._systemctl("stop", unit)

    def restart(self, unit: str):
        self._systemctl("restart", unit)

    def unmask(self, unit: str):
        self._systemctl("unmask", unit)

    def is_active(self, unit: str) -> bool:
        result = self._systemctl("is-active", unit, check=False)
        return result.returncode == 0
