"""
Remember which overlay directory and base tree belong to the current run.

The session file holds two lines: the session directory (containing
``overlay/`` and ``work/``) and the base path.
"""

import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

SESSION_PREFIX = "audit-box-"


class SessionError(Exception):
    """No usable session is saved."""


@dataclass(frozen=True)
class Session:
    tmpdir: Path
    base_path: Path

    @property
    def overlay_dir(self) -> Path:
        return self.tmpdir / "overlay"

    @property
    def work_dir(self) -> Path:
        return self.tmpdir / "work"


def create_session_dir(tmp_root: Path) -> Path:
    """
    Create a unique session directory with overlay and work subdirectories.

    Args:
        tmp_root: Directory the session directory is created in

    Returns:
        Path of the new session directory
    """
    tmpdir = Path(tempfile.mkdtemp(prefix=SESSION_PREFIX, dir=tmp_root))
    (tmpdir / "overlay").mkdir()
    (tmpdir / "work").mkdir()
    logger.debug("Created session directory %s", tmpdir)
    return tmpdir


def save_session(session: Session, session_file: Path) -> None:
    session_file.parent.mkdir(parents=True, exist_ok=True)
    session_file.write_text(f"{session.tmpdir}\n{session.base_path}\n", encoding="utf-8")


def load_session(session_file: Path) -> Session:
    """
    Read the saved session.

    A session file pointing at a directory that no longer exists is removed.

    Raises:
        SessionError: If no session is saved, the file is corrupted, or the
            session directory is gone
    """
    if not session_file.exists():
        raise SessionError(
            "No active session found. Please run 'audit-box new' to create a new session."
        )

    lines = session_file.read_text(encoding="utf-8").splitlines()
    if len(lines) < 2 or not lines[0].strip() or not lines[1].strip():
        raise SessionError(
            "Session file is corrupted. Please run 'audit-box new' to create a new session."
        )

    session = Session(tmpdir=Path(lines[0]), base_path=Path(lines[1]))
    if not session.tmpdir.is_dir():
        logger.info("Removing stale session file %s", session_file)
        clear_session(session_file)
        raise SessionError(
            f"Session directory '{session.tmpdir}' no longer exists. "
            "Please run 'audit-box new' to create a new session."
        )
    return session


def clear_session(session_file: Path) -> None:
    if session_file.exists():
        session_file.unlink()
