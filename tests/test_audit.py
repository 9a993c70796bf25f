import pytest

from auditbox.engine import (
    AuditError,
    FileStatus,
    InvalidRootError,
    LineTag,
    OutcomeKind,
    OverlayAudit,
    SelectionState,
)

from .conftest import write


@pytest.fixture
def audit(sample_tree):
    overlay, base = sample_tree
    audit = OverlayAudit(str(overlay), str(base))
    audit.scan()
    return audit


def test_operations_before_scan_fail(overlay, base):
    audit = OverlayAudit(str(overlay), str(base))
    assert not audit.scanned
    with pytest.raises(AuditError):
        audit.selected_leaves()


def test_scan_rejects_invalid_roots(tmp_path, overlay):
    audit = OverlayAudit(str(overlay), str(tmp_path / "nowhere"))
    with pytest.raises(InvalidRootError):
        audit.scan()


def test_scan_reports_statuses(audit):
    assert audit.node("a.txt").status is FileStatus.NEW
    assert audit.node("b.txt").status is FileStatus.MODIFIED
    assert "same.txt" not in audit.model


def test_render_modified_file(audit):
    result = audit.render("b.txt")
    assert result.tagged(LineTag.CONTEXT) == ["foo"]
    assert result.tagged(LineTag.DELETION) == ["bar"]
    assert result.tagged(LineTag.ADDITION) == ["baz"]


def test_selecting_directory_then_listing_leaves(audit):
    audit.toggle("src")
    assert audit.selected_leaves() == {"src/main.py", "src/util.py"}
    audit.toggle("src/util.py")
    assert audit.state("src") is SelectionState.PARTIAL


def test_apply_selected_and_rescan(audit, sample_tree):
    overlay, base = sample_tree
    audit.toggle("a.txt")
    audit.toggle("b.txt")

    outcomes = audit.apply()

    assert [(o.relative_path, o.kind) for o in outcomes] == [
        ("a.txt", OutcomeKind.APPLIED),
        ("b.txt", OutcomeKind.APPLIED),
    ]
    assert (base / "a.txt").read_text() == "hello\nworld\n"
    assert (base / "b.txt").read_text() == "foo\nbaz\n"
    assert not (overlay / "a.txt").exists()
    # pruned in place, and a rescan agrees
    assert "a.txt" not in audit.model
    assert audit.selected_leaves() == set()
    audit.scan()
    assert "a.txt" not in audit.model
    assert "b.txt" not in audit.model


def test_modified_file_matches_base_after_apply(audit, sample_tree):
    overlay, base = sample_tree
    audit.apply(["src/util.py"])
    audit.scan()
    assert "src/util.py" not in audit.model
    assert (base / "src" / "util.py").read_text() == "def f():\n    return 2\n"


def test_apply_of_applied_file_cannot_reappear_in_selection(audit):
    audit.toggle("a.txt")
    audit.apply()
    audit.scan()
    audit.select_all_under()
    assert "a.txt" not in audit.selected_leaves()


def test_discard_new_file_never_creates_it_in_base(audit, sample_tree):
    overlay, base = sample_tree
    outcomes = audit.discard(["a.txt"])

    assert outcomes[0].kind is OutcomeKind.DELETED
    assert not (overlay / "a.txt").exists()
    assert not (base / "a.txt").exists()
    assert "a.txt" not in audit.model


def test_discard_directory_removes_subtree(audit, sample_tree):
    overlay, base = sample_tree
    audit.discard(["src"])
    assert "src" not in audit.model
    assert not (overlay / "src").exists()
    assert (base / "src" / "util.py").read_text() == "def f():\n    return 1\n"


def test_failed_paths_stay_in_tree(audit, sample_tree):
    overlay, _ = sample_tree
    (overlay / "a.txt").unlink()
    audit.toggle("a.txt")
    audit.toggle("b.txt")

    outcomes = audit.apply()

    assert {o.relative_path: o.kind for o in outcomes} == {
        "a.txt": OutcomeKind.IO_ERROR,
        "b.txt": OutcomeKind.APPLIED,
    }
    assert "a.txt" in audit.model
    assert audit.selected_leaves() == {"a.txt"}


def test_rescan_keeps_selection_of_surviving_files(audit, sample_tree):
    overlay, _ = sample_tree
    audit.toggle("a.txt")
    audit.toggle("src/main.py")
    write(overlay, "late.txt", "written after the first scan")

    audit.scan()

    assert "late.txt" in audit.model
    assert audit.selected_leaves() == {"a.txt", "src/main.py"}
    audit.scan(keep_selection=False)
    assert audit.selected_leaves() == set()
