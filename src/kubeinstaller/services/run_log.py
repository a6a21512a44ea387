"""Temporary run log shared by every installation step."""

import logging
import os
import shutil
import tempfile
from typing import Optional


class RunLog:
    """Owns the temp directory holding ``install.log`` for a single run.

    The log is attached to the installer logger as a DEBUG file handler so
    step messages and command output land in it. ``dump`` reads it back for
    the terminal and ``cleanup`` removes the directory; ``cleanup`` is safe to
    call more than once.
    """

    PREFIX = "install-kubernetes-"
    FILE_NAME = "install.log"

    def __init__(self, logger: logging.Logger, tmp_root: Optional[str] = None):
        self.logger = logger
        self.tmp_dir = tempfile.mkdtemp(prefix=self.PREFIX, dir=tmp_root)
        self.path = os.path.join(self.tmp_dir, self.FILE_NAME)
        self.handler: Optional[logging.FileHandler] = logging.FileHandler(
            self.path, encoding="utf-8"
        )
        self.handler.setLevel(logging.DEBUG)
        self.handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        self.logger.addHandler(self.handler)
        self.previous_level = self.logger.level
        if self.logger.getEffectiveLevel() > logging.DEBUG:
            self.logger.setLevel(logging.DEBUG)

    def read(self) -> str:
        if self.handler:
            self.handler.flush()
        try:
            with open(self.path, "r", encoding="utf-8", errors="replace") as file_obj:
                return file_obj.read()
        except OSError:
            return ""

    def dump(self, console, title: Optional[str] = None):
        content = self.read()
        if title:
            console.print()
            console.print(f"[bold]{title}[/bold]")
        console.print(content, markup=False, highlight=False, end="")

    def cleanup(self):
        if self.handler:
            self.logger.removeHandler(self.handler)
            self.handler.close()
            self.handler = None
            self.logger.setLevel(self.previous_level)
        shutil.rmtree(self.tmp_dir, ignore_errors=True)
