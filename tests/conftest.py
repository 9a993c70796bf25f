"""Pytest configuration and shared fixtures."""

import os
from pathlib import Path

import pytest

requires_non_root = pytest.mark.skipif(
    hasattr(os, "geteuid") and os.geteuid() == 0,
    reason="root ignores file permissions",
)


def write(root: Path, relative_path: str, content) -> Path:
    """Create a file (and its parents) under root with str or bytes content."""
    path = root / relative_path
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def overlay(tmp_path: Path) -> Path:
    path = tmp_path / "overlay"
    path.mkdir()
    return path


@pytest.fixture
def base(tmp_path: Path) -> Path:
    path = tmp_path / "base"
    path.mkdir()
    return path


@pytest.fixture
def sample_tree(overlay: Path, base: Path):
    """
    overlay                  base
      a.txt  (new)
      b.txt  (modified)        b.txt
      same.txt (identical)     same.txt
      src/main.py (new)
      src/util.py (modified)   src/util.py
      docs/readme.md (ident.)  docs/readme.md
    """
    write(overlay, "a.txt", "hello\nworld\n")
    write(overlay, "b.txt", "foo\nbaz\n")
    write(base, "b.txt", "foo\nbar\n")
    write(overlay, "same.txt", "unchanged\n")
    write(base, "same.txt", "unchanged\n")
    write(overlay, "src/main.py", "print('hi')\n")
    write(overlay, "src/util.py", "def f():\n    return 2\n")
    write(base, "src/util.py", "def f():\n    return 1\n")
    write(overlay, "docs/readme.md", "# docs\n")
    write(base, "docs/readme.md", "# docs\n")
    return overlay, base
