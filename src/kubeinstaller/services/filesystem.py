"""Filesystem helpers for kube-node-installer."""

import logging
import os
import pwd
import re
import shutil

from rich.console import Console

from kubeinstaller.errors import InstallerError

SWAP_ENTRY = re.compile(r"\sswap\s")


class FileSystemService:
    """Encapsulates file and directory side effects on the target host.

    Absolute host paths are resolved below ``root_dir`` so the same code can
    write to ``/`` in production and to a scratch tree in tests.
    """

    def __init__(self, logger: logging.Logger, console: Console, root_dir: str = "/"):
        self.logger = logger
        self.console = console
        self.root_dir = root_dir

    def host_path(self, path: str) -> str:
        return os.path.join(self.root_dir, path.lstrip("/"))

    def read_text(self, path: str) -> str:
        with open(self.host_path(path), "r", encoding="utf-8") as file_obj:
            return file_obj.read()

    def exists(self, path: str) -> bool:
        return os.path.exists(self.host_path(path))

    def write_file(self, path: str, content: str, mode: int = 0o644):
        target = self.host_path(path)
        try:
            os.makedirs(os.path.dirname(target), exist_ok=True)
            with open(target, "w", encoding="utf-8", newline="\n") as file_obj:
                file_obj.write(content)
        except OSError as exc:
            raise InstallerError(f"Could not write {path}: {exc}") from exc
        self.set_permissions(target, mode)
        self.logger.debug("Wrote %s", target)

    def set_permissions(self, path: str, mode: int):
        try:
            os.chmod(path, mode)
        except Exception as exc:
            self.logger.warning("Could not set permissions on %s: %s", path, exc)

    def comment_out_swap_entries(self, fstab_path: str) -> int:
        """Prefixes active swap lines in the mount table with ``#``."""
        if not self.exists(fstab_path):
            self.logger.debug("No %s found, nothing to comment out", fstab_path)
            return 0

        changed = 0
        lines = []
        for line in self.read_text(fstab_path).splitlines(keepends=True):
            if SWAP_ENTRY.search(line) and not line.lstrip().startswith("#"):
                line = f"#{line}"
                changed += 1
            lines.append(line)

        if changed:
            self.write_file(fstab_path, "".join(lines))
        self.logger.debug("Commented out %s swap entries in %s", changed, fstab_path)
        return changed

    def remove_file(self, path: str) -> bool:
        """Best-effort removal; returns whether a file was deleted."""
        target = self.host_path(path)
        try:
            os.remove(target)
        except FileNotFoundError:
            return False
        except OSError as exc:
            self.logger.warning("Could not remove %s: %s", target, exc)
            return False
        self.logger.debug("Removed %s", target)
        return True

    def make_dirs(self, path: str, mode: int = 0o755):
        target = self.host_path(path)
        try:
            os.makedirs(target, exist_ok=True)
        except OSError as exc:
            raise InstallerError(f"Could not create directory {path}: {exc}") from exc
        self.set_permissions(target, mode)

    def copy_file(self, src: str, dest: str, mode: int = 0o600):
        try:
            shutil.copyfile(self.host_path(src), self.host_path(dest))
        except OSError as exc:
            raise InstallerError(f"Could not copy {src} to {dest}: {exc}") from exc
        self.set_permissions(self.host_path(dest), mode)

    def chown(self, path: str, user: str):
        try:
            account = pwd.getpwnam(user)
            os.chown(self.host_path(path), account.pw_uid, account.pw_gid)
        except (LookupError, OSError) as exc:
            raise InstallerError(f"Could not change owner of {path} to {user}: {exc}") from exc

    def cleanup_dir(self, path: str):
        if os.path.exists(path):
            try:
                shutil.rmtree(path)
                self.logger.debug("Removed directory: %s", path)
            except Exception as exc:
                message = f"Warning: Could not remove {path}: {exc}"
                self.console.print(f"[yellow]{message}[/yellow]")
                self.logger.warning(message)
