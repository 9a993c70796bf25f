"""
Sandbox package for running commands against a copy-on-write overlay.

Commands run under bubblewrap see the base tree read-only with a writable
overlay on top; the session store remembers which overlay belongs to the
current run so it can be reviewed afterwards.
"""

from .bwrap import BwrapSandbox
from .sandbox import Sandbox
from .session import (
    Session,
    SessionError,
    clear_session,
    create_session_dir,
    load_session,
    save_session,
)

__all__ = [
    "BwrapSandbox",
    "Sandbox",
    "Session",
    "SessionError",
    "clear_session",
    "create_session_dir",
    "load_session",
    "save_session",
]
