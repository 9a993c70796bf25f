import logging
import shlex
from typing import Callable, List, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from rich.console import Console
from rich.markup import escape

from auditbox.engine import AuditError, OverlayAudit

from .diff_display import display_diff, display_issues, display_outcomes, display_tree
from .watcher import OverlayWatcher

logger = logging.getLogger(__name__)

COMMANDS = [
    "ls",
    "show",
    "toggle",
    "all",
    "none",
    "selected",
    "apply",
    "discard",
    "refresh",
    "help",
]

HELP_TEXT = """\
[bold yellow]Viewing[/bold yellow]
  ls                 Show the changed files and their selection
  show PATH          Show the diff (or new content) of a file
  selected           List the selected files
  refresh            Rescan the overlay

[bold yellow]Selecting[/bold yellow]
  toggle PATH        Toggle a file, or every file under a directory
  all [PATH]         Select every file (under PATH)
  none [PATH]        Deselect every file (under PATH)

[bold yellow]Actions[/bold yellow]
  apply              Copy the selected files to the base tree
  discard [PATH]     Permanently delete PATH, or the selected files, from the overlay

[bold yellow]General[/bold yellow]
  help               Show this help
  {exit_sequence:<18} Quit
"""


class Reviewer:
    """Interactive review of an overlay: browse, select, apply and discard."""

    def __init__(
        self,
        audit: OverlayAudit,
        console: Optional[Console] = None,
        exit_sequence: str = "/exit",
        confirm: Optional[Callable[[str], bool]] = None,
        watch: bool = True,
    ):
        """
        Initialize the Reviewer.

        Args:
            audit: The overlay audit to drive; scanned on first use
            console: Optional Rich console instance
            exit_sequence: The command to exit the interactive session
            confirm: Yes/no question callback, prompts on the terminal by default
            watch: Rescan automatically when the overlay changes on disk
        """
        self.audit = audit
        self.console = console or Console()
        self.exit_sequence = exit_sequence
        self.confirm = confirm or self._prompt_yes_no
        self.session: Optional[PromptSession] = None
        self.watch = watch
        self.watcher: Optional[OverlayWatcher] = None

    def run_interactive_session(self) -> None:
        """
        Run the review loop until the exit sequence or end of input.

        Raises:
            InvalidRootError: If the overlay or base root is not a directory
        """
        self.refresh()
        self.session = PromptSession(
            completer=WordCompleter(self._completion_words, WORD=True)
        )
        if self.watch:
            self._start_watcher()

        try:
            while True:
                try:
                    self.refresh_if_changed()
                    user_input = self.session.prompt("audit-box> ").strip()
                    if not user_input:
                        continue
                    if not self.handle_command(user_input):
                        break
                except KeyboardInterrupt:
                    self.console.print(f"Use '{self.exit_sequence}' to exit.")
                    continue
                except EOFError:
                    break
        finally:
            if self.watcher is not None:
                self.watcher.stop()
                self.watcher = None

    def handle_command(self, user_input: str) -> bool:
        """
        Run one command line.

        Returns:
            False when the session should end, True otherwise
        """
        try:
            words = shlex.split(user_input)
        except ValueError as e:
            self.console.print(f"[red]Error: {escape(str(e))}[/red]")
            return True
        if not words:
            return True

        command, args = words[0], words[1:]
        if command in (self.exit_sequence, "quit", "q"):
            return False

        handler = getattr(self, f"_cmd_{command}", None)
        if command not in COMMANDS or handler is None:
            self.console.print(f"Unknown command: {command}. Type 'help' for a list.")
            return True

        try:
            handler(args)
        except (AuditError, OSError) as e:
            self.console.print(f"[red]Error: {escape(str(e))}[/red]")
        return True

    def refresh(self) -> None:
        if self.watcher is not None:
            # Changes up to now are covered by this scan
            self.watcher.changed()
        self.audit.scan()
        if self.audit.issues:
            display_issues(self.audit.issues, self.console)

    def refresh_if_changed(self) -> bool:
        """Rescan if the overlay changed on disk since the last scan."""
        if self.watcher is None or not self.watcher.changed():
            return False
        self.refresh()
        self.console.print("[dim]Overlay changed on disk; rescanned.[/dim]")
        return True

    def _start_watcher(self) -> None:
        watcher = OverlayWatcher(self.audit.overlay_root)
        try:
            watcher.start()
        except OSError as e:
            logger.warning("Not watching %s for changes: %s", self.audit.overlay_root, e)
            return
        self.watcher = watcher

    def _completion_words(self) -> List[str]:
        words = list(COMMANDS)
        if self.audit.scanned:
            words.extend(node.relative_path for node in self.audit.root.walk() if node.relative_path)
        return words

    def _require_path(self, args: List[str]) -> Optional[str]:
        if not args:
            self.console.print("A path is required.")
            return None
        return args[0]

    def _cmd_ls(self, args: List[str]) -> None:
        display_tree(self.audit.model, self.audit.overlay_root, self.console)

    def _cmd_show(self, args: List[str]) -> None:
        path = self._require_path(args)
        if path is not None:
            display_diff(self.audit.render(path), self.console)

    def _cmd_toggle(self, args: List[str]) -> None:
        path = self._require_path(args)
        if path is not None:
            self.audit.toggle(path)
            self.console.print(f"{path}: {self.audit.state(path).value}")

    def _cmd_all(self, args: List[str]) -> None:
        self.audit.select_all_under(args[0] if args else "")
        self.console.print(f"{len(self.audit.selected_leaves())} file(s) selected.")

    def _cmd_none(self, args: List[str]) -> None:
        self.audit.deselect_all_under(args[0] if args else "")
        self.console.print(f"{len(self.audit.selected_leaves())} file(s) selected.")

    def _cmd_selected(self, args: List[str]) -> None:
        selected = sorted(self.audit.selected_leaves())
        if not selected:
            self.console.print("[dim]Nothing selected.[/dim]")
        for path in selected:
            self.console.print(f"  {path}")

    def _cmd_refresh(self, args: List[str]) -> None:
        self.refresh()
        self._cmd_ls(args)

    def _cmd_help(self, args: List[str]) -> None:
        self.console.print(HELP_TEXT.format(exit_sequence=self.exit_sequence))

    def _cmd_apply(self, args: List[str]) -> None:
        selected = sorted(self.audit.selected_leaves())
        if not selected:
            self.console.print("Nothing selected. Use 'toggle PATH' or 'all' first.")
            return
        if not self.confirm(
            f"Apply {len(selected)} selected file(s) to {self.audit.base_root}?"
        ):
            self.console.print("Apply cancelled.")
            return
        display_outcomes(self.audit.apply(selected), self.console)
        self.refresh()

    def _cmd_discard(self, args: List[str]) -> None:
        if args:
            targets = [self.audit.node(args[0]).relative_path]
        else:
            targets = sorted(self.audit.selected_leaves())
        if not targets:
            self.console.print("Nothing selected. Give a PATH or select files first.")
            return
        if not self.confirm(
            f"Permanently discard {len(targets)} path(s) from the overlay? This cannot be undone."
        ):
            self.console.print("Discard cancelled.")
            return
        display_outcomes(self.audit.discard(targets), self.console)
        self.refresh()

    def _prompt_yes_no(self, question: str) -> bool:
        """
        Ask a yes/no question on the terminal.

        Returns:
            True if the user answered yes, False otherwise
        """
        session = self.session or PromptSession()
        while True:
            try:
                response = session.prompt(f"{question} (y/n): ").strip().lower()
            except (KeyboardInterrupt, EOFError):
                return False
            if response in ["y", "yes"]:
                return True
            elif response in ["n", "no"]:
                return False
            else:
                self.console.print("Please enter 'y' or 'n'.")
