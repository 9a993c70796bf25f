import os
import stat
from types import SimpleNamespace

import pytest

from auditbox.engine import Classification, CompareIoError, PathComparator
from auditbox.engine import compare
from auditbox.engine.compare import is_special, is_whiteout

from .conftest import requires_non_root, write


def test_absent_identical_and_different(overlay, base):
    write(overlay, "new.txt", "x")
    write(overlay, "same.txt", "same")
    write(base, "same.txt", "same")
    write(overlay, "diff.txt", "abc")
    write(base, "diff.txt", "abd")
    comparator = PathComparator(overlay, base)

    assert comparator.classify("new.txt") is Classification.ABSENT_IN_BASE
    assert comparator.classify("same.txt") is Classification.IDENTICAL_TO_BASE
    assert comparator.classify("diff.txt") is Classification.DIFFERENT_FROM_BASE


def test_size_difference_is_different(overlay, base):
    write(overlay, "f", "abc\n")
    write(base, "f", "abc")
    assert PathComparator(overlay, base).classify("f") is Classification.DIFFERENT_FROM_BASE


def test_large_files_compared_past_first_chunk(overlay, base):
    data = b"a" * (200 * 1024)
    write(overlay, "big.bin", data + b"x")
    write(base, "big.bin", data + b"y")
    write(overlay, "big2.bin", data)
    write(base, "big2.bin", data)
    comparator = PathComparator(overlay, base)

    assert comparator.classify("big.bin") is Classification.DIFFERENT_FROM_BASE
    assert comparator.classify("big2.bin") is Classification.IDENTICAL_TO_BASE


def test_file_replacing_directory_is_different(overlay, base):
    write(overlay, "thing", "now a file")
    (base / "thing").mkdir()
    assert PathComparator(overlay, base).classify("thing") is Classification.DIFFERENT_FROM_BASE


def test_missing_base_parent_is_absent(overlay, base):
    write(overlay, "dir/file.txt", "x")
    write(base, "dir", "a file where the overlay has a directory")
    assert PathComparator(overlay, base).classify("dir/file.txt") is Classification.ABSENT_IN_BASE


def test_symlinks_compared_by_target(overlay, base):
    os.symlink("target-a", overlay / "same-link")
    os.symlink("target-a", base / "same-link")
    os.symlink("target-b", overlay / "moved-link")
    os.symlink("target-a", base / "moved-link")
    os.symlink("target-a", overlay / "new-link")
    comparator = PathComparator(overlay, base)

    assert comparator.classify("same-link") is Classification.IDENTICAL_TO_BASE
    assert comparator.classify("moved-link") is Classification.DIFFERENT_FROM_BASE
    assert comparator.classify("new-link") is Classification.ABSENT_IN_BASE


def test_fifo_is_unsupported(overlay, base):
    os.mkfifo(overlay / "pipe")
    assert PathComparator(overlay, base).classify("pipe") is Classification.UNSUPPORTED


def test_whiteout_detection():
    whiteout = SimpleNamespace(st_mode=stat.S_IFCHR | 0o000, st_rdev=0)
    tty = SimpleNamespace(st_mode=stat.S_IFCHR | 0o620, st_rdev=os.makedev(136, 0))
    regular = SimpleNamespace(st_mode=stat.S_IFREG | 0o644, st_rdev=0)

    assert is_whiteout(whiteout)
    assert not is_whiteout(tty)
    assert is_special(tty)
    assert not is_whiteout(regular)
    assert not is_special(regular)


def test_vanished_file_raises_compare_error(overlay, base):
    with pytest.raises(CompareIoError) as excinfo:
        PathComparator(overlay, base).classify("gone.txt")
    assert excinfo.value.relative_path == "gone.txt"


@requires_non_root
def test_unreadable_file_raises_compare_error(overlay, base):
    write(overlay, "secret", "abc")
    write(base, "secret", "abd")
    (overlay / "secret").chmod(0)
    try:
        with pytest.raises(CompareIoError):
            PathComparator(overlay, base).classify("secret")
    finally:
        (overlay / "secret").chmod(0o644)


def test_read_failure_during_comparison_raises_compare_error(overlay, base, monkeypatch):
    write(overlay, "secret", "abc")
    write(base, "secret", "abd")

    def unreadable(path_a, path_b):
        raise PermissionError(13, "Permission denied", path_a)

    monkeypatch.setattr(compare, "_same_contents", unreadable)
    with pytest.raises(CompareIoError) as excinfo:
        PathComparator(overlay, base).classify("secret")

    assert excinfo.value.relative_path == "secret"
    assert isinstance(excinfo.value.cause, PermissionError)
