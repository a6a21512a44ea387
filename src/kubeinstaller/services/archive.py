"""Archive extraction helpers for kube-node-installer."""

import os
import shutil
import tarfile
import tempfile
from pathlib import Path
from typing import List

from kubeinstaller.errors import InstallerError


class ArchiveService:
    """Encapsulates safe release tarball extraction."""

    def is_within_dir(self, base_dir: Path, candidate: Path) -> bool:
        try:
            return os.path.commonpath([str(base_dir), str(candidate)]) == str(base_dir)
        except ValueError:
            return False

    def extract_binaries(
        self,
        tar_path: str,
        destination_dir: str,
        member_prefix: str = "bin/",
        mode: int = 0o755,
    ) -> List[str]:
        """Copies regular files under ``member_prefix`` flat into ``destination_dir``.

        Returns the installed paths. Links, devices and entries escaping the
        prefix abort the extraction before anything is written.
        """
        base = Path(destination_dir).resolve()
        installed: List[str] = []

        try:
            with tarfile.open(tar_path, "r:*") as tar_ref:
                members = []
                for member in tar_ref.getmembers():
                    normalized_name = member.name.replace("\\", "/")
                    if normalized_name.startswith("./"):
                        normalized_name = normalized_name[2:]
                    if not normalized_name.startswith(member_prefix) or member.isdir():
                        continue

                    if member.issym() or member.islnk() or not member.isfile():
                        raise InstallerError(
                            f"Unsafe tar entry detected: `{member.name}` is not a regular file."
                        )

                    relative = normalized_name[len(member_prefix):]
                    target_path = (base / relative).resolve()
                    if not relative or "/" in relative or not self.is_within_dir(base, target_path):
                        raise InstallerError(
                            f"Unsafe tar entry detected: `{member.name}`. "
                            "Archive extraction aborted to prevent path traversal."
                        )
                    members.append((member, target_path))

                if not members:
                    raise InstallerError(f"No files under `{member_prefix}` found in {tar_path}.")

                try:
                    base.mkdir(parents=True, exist_ok=True)
                except OSError as exc:
                    raise InstallerError(f"Cannot create {base}: {exc}") from exc
                for member, target_path in members:
                    src = tar_ref.extractfile(member)
                    if src is None:
                        raise InstallerError(f"Could not read `{member.name}` from {tar_path}.")
                    with src:
                        self._replace_file(src, target_path, mode)
                    installed.append(str(target_path))
        except tarfile.TarError as exc:
            raise InstallerError(f"Invalid tar archive: {tar_path}") from exc

        return installed

    @staticmethod
    def _replace_file(src, target_path: Path, mode: int):
        """Swaps ``target_path`` for the contents of ``src`` via a rename.

        Running executables keep their old inode, so busy binaries such as
        containerd shims can still be replaced.
        """
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{target_path.name}.", dir=str(target_path.parent)
            )
            with os.fdopen(fd, "wb") as dst:
                shutil.copyfileobj(src, dst)
            os.chmod(tmp_path, mode)
            os.replace(tmp_path, target_path)
        except OSError as exc:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise InstallerError(f"Failed to install {target_path}: {exc}") from exc
