"""
Runtime settings read from the environment (and an optional .env file).

Env:
  AUDIT_BOX_SESSION_FILE   (optional, default ~/.config/audit-box/sessions)
  AUDIT_BOX_TMP_DIR        (optional, default /tmp)
  AUDIT_BOX_BWRAP          (optional, default 'bwrap')
  AUDIT_BOX_DIFF_CONTEXT   (optional, default 3)
  AUDIT_BOX_MAX_WORKERS    (optional, default 1)
  AUDIT_BOX_LOG_LEVEL      (optional, default 'WARNING')
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

DEFAULT_SESSION_FILE = Path.home() / ".config" / "audit-box" / "sessions"


@dataclass(frozen=True)
class Settings:
    session_file: Path = DEFAULT_SESSION_FILE
    tmp_dir: Path = Path("/tmp")
    bwrap: str = "bwrap"
    diff_context: int = 3
    max_workers: int = 1
    log_level: str = "WARNING"


def _int_setting(env: Mapping[str, str], name: str, default: int, minimum: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ValueError(f"{name} must be at least {minimum}, got {value}")
    return value


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from environment variables.

    Args:
        env: Mapping to read instead of os.environ (no .env loading then)

    Raises:
        ValueError: If a numeric variable is not a valid integer
    """
    if env is None:
        load_dotenv()
        env = os.environ

    session_file = env.get("AUDIT_BOX_SESSION_FILE")
    tmp_dir = env.get("AUDIT_BOX_TMP_DIR")
    return Settings(
        session_file=Path(session_file).expanduser() if session_file else DEFAULT_SESSION_FILE,
        tmp_dir=Path(tmp_dir).expanduser() if tmp_dir else Path("/tmp"),
        bwrap=env.get("AUDIT_BOX_BWRAP") or "bwrap",
        diff_context=_int_setting(env, "AUDIT_BOX_DIFF_CONTEXT", 3, 0),
        max_workers=_int_setting(env, "AUDIT_BOX_MAX_WORKERS", 1, 1),
        log_level=(env.get("AUDIT_BOX_LOG_LEVEL") or "WARNING").upper(),
    )
