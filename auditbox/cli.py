#!/usr/bin/env python3
"""
Command line entry point: create sessions, run sandboxed commands, review changes.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from rich.console import Console
from rich.text import Text

from auditbox.config import Settings, load_settings
from auditbox.engine import AuditError, OverlayAudit
from auditbox.log import setup_logging
from auditbox.sandbox import (
    BwrapSandbox,
    Session,
    SessionError,
    create_session_dir,
    load_session,
    save_session,
)
from auditbox.shell import Reviewer
from auditbox.shell.diff_display import display_issues, display_tree


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="audit-box",
        description="Review and manage overlay filesystem changes",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    new = subparsers.add_parser(
        "new", help="Create a new session with temporary overlay directories"
    )
    new.add_argument(
        "--base", type=Path, help="Base filesystem directory (defaults to current directory)"
    )

    run = subparsers.add_parser("run", help="Run a command in the current session's sandbox")
    run.add_argument("cmd", nargs=argparse.REMAINDER, help="Command and its arguments")

    for name, help_text in (
        ("review", "Interactively review and manage overlay changes"),
        ("status", "Print the changed files and exit"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument(
            "--overlay", type=Path, help="Overlay directory (uses saved session if not specified)"
        )
        sub.add_argument(
            "--base", type=Path, help="Base directory (uses saved session if not specified)"
        )

    return parser


def resolve_roots(
    overlay: Optional[Path], base: Optional[Path], settings: Settings
) -> Tuple[Path, Path]:
    """
    Pick the overlay and base roots from the arguments or the saved session.

    Raises:
        SessionError: If only one of the two paths is given, or no session is saved
    """
    if overlay is not None and base is not None:
        return overlay, base
    if overlay is not None or base is not None:
        raise SessionError(
            "Both --overlay and --base must be provided together, "
            "or neither (to use saved session)"
        )
    session = load_session(settings.session_file)
    return session.overlay_dir, session.base_path


def run_new(base: Optional[Path], settings: Settings, console: Console) -> int:
    base_path = (base or Path.cwd()).resolve()
    if not base_path.is_dir():
        raise FileNotFoundError(f"Base path '{base_path}' does not exist")

    session = Session(tmpdir=create_session_dir(settings.tmp_dir), base_path=base_path)
    save_session(session, settings.session_file)
    sandbox = BwrapSandbox(session, bwrap=settings.bwrap)

    console.print("Created new audit-box session:")
    console.print(f"  Session directory: {session.tmpdir}")
    console.print(f"  Overlay directory: {session.overlay_dir}")
    console.print(f"  Work directory: {session.work_dir}")
    console.print(f"  Base filesystem: {session.base_path}")
    console.print()
    console.print("Run commands with 'audit-box run CMD...', then 'audit-box review'.")
    console.print("To start a shell in this session with bubblewrap directly:")
    console.print("  " + " ".join(sandbox.command_line(["/bin/bash"])), soft_wrap=True)
    return 0


def run_command(cmd: List[str], settings: Settings) -> int:
    if cmd and cmd[0] == "--":
        cmd = cmd[1:]
    if not cmd:
        raise SessionError("No command given. Usage: audit-box run CMD [ARGS...]")
    session = load_session(settings.session_file)
    return BwrapSandbox(session, bwrap=settings.bwrap).run_command(cmd)


def open_audit(args: argparse.Namespace, settings: Settings) -> OverlayAudit:
    overlay, base = resolve_roots(args.overlay, args.base, settings)
    return OverlayAudit(
        str(overlay),
        str(base),
        diff_context=settings.diff_context,
        max_workers=settings.max_workers,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Start audit-box with the given arguments (sys.argv by default)."""
    args = build_parser().parse_args(argv)
    console = Console()

    try:
        settings = load_settings()
        setup_logging(settings.log_level)

        if args.command == "new":
            return run_new(args.base, settings, console)
        if args.command == "run":
            return run_command(args.cmd, settings)

        audit = open_audit(args, settings)
        if args.command == "status":
            audit.scan()
            display_issues(audit.issues, console)
            display_tree(audit.model, audit.overlay_root, console)
            return 0

        Reviewer(audit, console=console).run_interactive_session()
        return 0
    except (AuditError, SessionError, FileNotFoundError, PermissionError, ValueError) as e:
        console.print(Text.assemble(("Error: ", "red"), str(e)))
        return 1


if __name__ == "__main__":
    sys.exit(main())
