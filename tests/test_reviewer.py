import pytest
from rich.console import Console

from auditbox.engine import (
    DiffLine,
    DiffResult,
    LineTag,
    Outcome,
    OutcomeKind,
    OverlayAudit,
    SelectionModel,
)
from auditbox.shell import Reviewer
from auditbox.shell.diff_display import display_diff, display_outcomes, display_tree


def make_console():
    return Console(record=True, width=120, color_system=None)


@pytest.fixture
def audit(sample_tree):
    overlay, base = sample_tree
    return OverlayAudit(str(overlay), str(base))


@pytest.fixture
def answers():
    """Replies handed to the reviewer's confirm callback, in order."""
    return []


@pytest.fixture
def reviewer(audit, answers):
    reviewer = Reviewer(audit, console=make_console(), confirm=lambda question: answers.pop(0))
    reviewer.refresh()
    return reviewer


def output(reviewer):
    return reviewer.console.export_text()


def test_tree_shows_markers_and_summary(audit):
    audit.scan()
    audit.toggle("src")
    console = make_console()
    display_tree(audit.model, "overlay", console)
    text = console.export_text()

    assert "[x] src/" in text
    assert "[ ] N a.txt" in text
    assert "[x] M util.py" in text
    assert "same.txt" not in text
    assert "2 new, 2 modified; 2 selected" in text


def test_empty_tree_message(tmp_path):
    (tmp_path / "o").mkdir()
    (tmp_path / "b").mkdir()
    audit = OverlayAudit(str(tmp_path / "o"), str(tmp_path / "b"))
    audit.scan()
    console = make_console()
    display_tree(SelectionModel(audit.root), "o", console)
    assert "No changes in the overlay." in console.export_text()


def test_diff_lines_get_prefixes():
    result = DiffResult(
        "a/b.txt",
        "b/b.txt",
        [
            DiffLine(LineTag.HEADER, "@@ -1,2 +1,2 @@"),
            DiffLine(LineTag.CONTEXT, "foo", 1, 1),
            DiffLine(LineTag.DELETION, "bar", 2, None),
            DiffLine(LineTag.ADDITION, "baz", None, 2),
        ],
    )
    console = make_console()
    display_diff(result, console)
    lines = console.export_text().splitlines()

    assert "a/b.txt -> b/b.txt" in lines[1]
    assert lines[-4:] == ["@@ -1,2 +1,2 @@", " foo", "-bar", "+baz"]


def test_outcome_summary_counts_failures():
    console = make_console()
    display_outcomes(
        [
            Outcome("a.txt", OutcomeKind.APPLIED),
            Outcome("b.txt", OutcomeKind.IO_ERROR, "Permission denied"),
        ],
        console,
    )
    text = console.export_text()
    assert "Permission denied" in text
    assert "1 of 2 path(s) failed." in text


def test_toggle_and_selected(reviewer):
    assert reviewer.handle_command("toggle src")
    assert reviewer.handle_command("selected")
    text = output(reviewer)
    assert "src: full" in text
    assert "src/main.py" in text
    assert "src/util.py" in text


def test_show_prints_diff(reviewer):
    reviewer.handle_command("show b.txt")
    text = output(reviewer)
    assert "-bar" in text
    assert "+baz" in text


def test_errors_are_reported_and_session_continues(reviewer):
    assert reviewer.handle_command("show missing.txt")
    assert reviewer.handle_command("show src")
    assert reviewer.handle_command('toggle "unterminated')
    assert reviewer.handle_command("frobnicate")
    text = output(reviewer)
    assert text.count("Error:") == 3
    assert "Unknown command: frobnicate" in text


def test_apply_requires_selection(reviewer, answers):
    reviewer.handle_command("apply")
    assert "Nothing selected." in output(reviewer)


def test_apply_after_confirmation(reviewer, answers, sample_tree):
    _, base = sample_tree
    answers.append(True)
    reviewer.handle_command("toggle b.txt")
    reviewer.handle_command("apply")

    assert (base / "b.txt").read_text() == "foo\nbaz\n"
    assert "1 path(s) done." in output(reviewer)
    assert "b.txt" not in reviewer.audit.model


def test_declined_apply_changes_nothing(reviewer, answers, sample_tree):
    _, base = sample_tree
    answers.append(False)
    reviewer.handle_command("toggle b.txt")
    reviewer.handle_command("apply")

    assert (base / "b.txt").read_text() == "foo\nbar\n"
    assert "Apply cancelled." in output(reviewer)
    assert reviewer.audit.selected_leaves() == {"b.txt"}


def test_discard_path(reviewer, answers, sample_tree):
    overlay, base = sample_tree
    answers.extend([False, True])
    reviewer.handle_command("discard a.txt")
    assert (overlay / "a.txt").exists()
    reviewer.handle_command("discard a.txt")

    assert not (overlay / "a.txt").exists()
    assert not (base / "a.txt").exists()
    assert "Discard cancelled." in output(reviewer)


def test_exit_commands_end_the_session(reviewer):
    assert reviewer.handle_command("/exit") is False
    assert reviewer.handle_command("q") is False
    assert reviewer.handle_command("   ") is True
