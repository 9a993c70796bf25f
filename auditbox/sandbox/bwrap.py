#!/usr/bin/env python3
"""
Run commands under bubblewrap with the base tree behind a writable overlay.
"""

import logging
import os
import shutil
import subprocess
from typing import List, Optional

from .sandbox import Sandbox
from .session import Session

logger = logging.getLogger(__name__)


class BwrapSandbox(Sandbox):
    """Runs commands with every write to the base tree redirected to the session overlay."""

    def __init__(self, session: Session, bwrap: str = "bwrap"):
        """
        Initialize the bubblewrap launcher.
        Args:
            session: Session whose overlay/work directories receive the writes
            bwrap: Name or path of the bubblewrap executable
        Raises:
            FileNotFoundError: If the base tree or a session directory doesn't exist
        """
        for path in (session.base_path, session.overlay_dir, session.work_dir):
            if not os.path.isdir(path):
                raise FileNotFoundError(f"Directory does not exist: {path}")

        self.session = session
        self.bwrap = bwrap

    def command_line(self, command: List[str]) -> List[str]:
        base = str(self.session.base_path.resolve())
        return [
            self.bwrap,
            "--ro-bind", "/", "/",
            "--tmpfs", "/tmp",
            "--unshare-pid",
            "--overlay-src", base,
            "--overlay", str(self.session.overlay_dir), str(self.session.work_dir), base,
            "--dev", "/dev",
            "--new-session",
            "--chdir", os.getcwd(),
            "--",
            *command,
        ]

    def run_command(self, command: List[str], cwd: Optional[str] = None) -> int:
        """
        Execute a command in the sandbox and wait for it.

        Raises:
            FileNotFoundError: If bubblewrap is not installed
        """
        if shutil.which(self.bwrap) is None:
            raise FileNotFoundError(
                f"{self.bwrap} not found. Install bubblewrap to run sandboxed commands."
            )

        args = self.command_line(command)
        logger.debug("Running %s", " ".join(args))
        result = subprocess.run(args, cwd=cwd)
        return result.returncode
