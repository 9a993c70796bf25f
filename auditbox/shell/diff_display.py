"""
Rich rendering of the audited tree, file diffs and batch outcomes.
"""

from typing import List

from rich.console import Console
from rich.panel import Panel
from rich.text import Text
from rich.tree import Tree

from auditbox.engine import (
    DiffResult,
    FileNode,
    FileStatus,
    LineTag,
    Outcome,
    OutcomeKind,
    ScanIssue,
    SelectionModel,
    SelectionState,
)

STATUS_STYLES = {
    FileStatus.NEW: ("N", "green"),
    FileStatus.MODIFIED: ("M", "yellow"),
    FileStatus.DELETED: ("D", "red"),
    FileStatus.UNSUPPORTED: ("?", "magenta"),
}

SELECTION_MARKERS = {
    SelectionState.FULL: "[x]",
    SelectionState.PARTIAL: "[-]",
    SelectionState.UNSELECTED: "[ ]",
}

LINE_STYLES = {
    LineTag.HEADER: "bold",
    LineTag.ADDITION: "green",
    LineTag.DELETION: "red",
    LineTag.CONTEXT: "dim",
}

LINE_PREFIXES = {
    LineTag.HEADER: "",
    LineTag.ADDITION: "+",
    LineTag.DELETION: "-",
    LineTag.CONTEXT: " ",
}

OUTCOME_STYLES = {
    OutcomeKind.APPLIED: "green",
    OutcomeKind.DELETED: "green",
    OutcomeKind.VERIFICATION_FAILED: "bold red",
    OutcomeKind.IO_ERROR: "red",
    OutcomeKind.CANCELLED: "dim",
}


def node_label(node: FileNode, model: SelectionModel) -> Text:
    """One tree row: selection marker, status letter and name."""
    label = Text()
    if node.is_dir or node.selectable:
        label.append(SELECTION_MARKERS[model.state(node.relative_path)] + " ")
    else:
        label.append("    ")

    if node.is_dir:
        label.append(f"{node.name}/", style="bold blue")
        return label

    letter, style = STATUS_STYLES[node.status]
    label.append(f"{letter} ", style=style)
    label.append(node.name, style=style)
    return label


def build_tree(model: SelectionModel, title: str) -> Tree:
    tree = Tree(Text(title, style="bold"))

    def add_children(branch: Tree, node: FileNode) -> None:
        for child in node.children:
            child_branch = branch.add(node_label(child, model))
            if child.is_dir:
                add_children(child_branch, child)

    add_children(tree, model.root)
    return tree


def display_tree(model: SelectionModel, title: str, console: Console | None = None) -> None:
    """
    Display the audited tree with selection markers.

    Args:
        model: Selection model wrapping the scanned tree
        title: Root label, usually the overlay path
        console: Optional Rich console instance (creates one if not provided)
    """
    if console is None:
        console = Console()

    if not model.root.children:
        console.print("[dim]No changes in the overlay.[/dim]")
        return

    leaves = list(model.root.leaves())
    counts = {status: sum(1 for leaf in leaves if leaf.status is status) for status in FileStatus}
    console.print(build_tree(model, title))
    summary = ", ".join(
        f"{count} {status.value}" for status, count in counts.items() if count
    )
    console.print(f"[dim]{summary}; {len(model.selected_leaves())} selected[/dim]")


def display_diff(result: DiffResult, console: Console | None = None) -> None:
    """
    Display a rendered diff with one color per line kind.

    Args:
        result: DiffResult from the engine
        console: Optional Rich console instance
    """
    if console is None:
        console = Console()

    console.print(
        Panel(Text(f"{result.old_label} -> {result.new_label}", style="bold"), expand=False)
    )
    if result.binary:
        console.print(Text(result.lines[0].text, style="dim"))
        return

    if not result.lines:
        console.print("[dim]  (empty file)[/dim]")
        return

    for line in result.lines:
        console.print(Text(LINE_PREFIXES[line.tag] + line.text, style=LINE_STYLES[line.tag]))


def display_outcomes(outcomes: List[Outcome], console: Console | None = None) -> None:
    """Print one row per path and a summary of successes and failures."""
    if console is None:
        console = Console()

    if not outcomes:
        console.print("[dim]Nothing to do.[/dim]")
        return

    for outcome in outcomes:
        line = Text(f"  {outcome.kind.value:<20} ", style=OUTCOME_STYLES[outcome.kind])
        line.append(outcome.relative_path)
        if outcome.message:
            line.append(f"  ({outcome.message})", style="dim")
        console.print(line)

    failed = [outcome for outcome in outcomes if not outcome.ok]
    if failed:
        console.print(f"[red]{len(failed)} of {len(outcomes)} path(s) failed.[/red]")
    else:
        console.print(f"[green]{len(outcomes)} path(s) done.[/green]")


def display_issues(issues: List[ScanIssue], console: Console | None = None) -> None:
    if console is None:
        console = Console()

    for issue in issues:
        console.print(
            Text(f"  warning: {issue.relative_path or '.'}: {issue.message}", style="yellow")
        )
