"""
Render reviewable diffs for changed overlay files.
"""

import difflib
import os
import stat
from typing import List, Optional, Sequence, Tuple

from .errors import NotRenderableError
from .types import DiffLine, DiffResult, FileNode, FileStatus, LineTag

DEFAULT_CONTEXT = 3
NO_NEWLINE = "\\ No newline at end of file"
DEV_NULL = "/dev/null"

Opcode = Tuple[str, int, int, int, int]

_FILE_TYPE_NAMES = (
    (stat.S_ISDIR, "directory"),
    (stat.S_ISFIFO, "fifo"),
    (stat.S_ISSOCK, "socket"),
    (stat.S_ISCHR, "character device"),
    (stat.S_ISBLK, "block device"),
)


def read_side(path: str) -> bytes:
    """Contents of a regular file, or the target of a symlink."""
    if os.path.islink(path):
        return b"-> " + os.readlink(os.fsencode(path)) + b"\n"
    with open(path, "rb") as f:
        return f.read()


def decode_text(data: bytes) -> Optional[str]:
    """Decode UTF-8 text, or return None for anything that looks binary."""
    if b"\0" in data:
        return None
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None


def file_type_name(mode: int) -> str:
    for check, name in _FILE_TYPE_NAMES:
        if check(mode):
            return name
    return "special file"


def type_change_note(status: FileStatus, side: str, path: str, mode: int) -> str:
    """Header shown instead of a diff when one side is not a regular file or symlink."""
    if status is FileStatus.DELETED:
        if stat.S_ISDIR(mode):
            return f"Directory deleted ({len(os.listdir(path))} entries)"
        return f"Deleted {file_type_name(mode)}, contents not compared"
    if side == "base" and stat.S_ISDIR(mode):
        return "Directory replaced by file"
    return f"File type changed: {side} is a {file_type_name(mode)}"


def split_lines(text: str) -> List[str]:
    """Split on "\\n" only, keeping terminators so a missing final newline shows up."""
    if not text:
        return []
    parts = text.split("\n")
    lines = [part + "\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def render(
    node: FileNode,
    overlay_root: str,
    base_root: str,
    context: int = DEFAULT_CONTEXT,
) -> DiffResult:
    """
    Compute the diff shown to a reviewer for one file node.

    Modified files get a unified diff of base (old) against overlay (new).
    New files are dumped as additions and Deleted entries as deletions of the
    base content. Binary content is never diffed as text.

    Raises:
        NotRenderableError: If the node is a directory
        OSError: If a side cannot be read
    """
    if node.is_dir:
        raise NotRenderableError(f"Cannot render a directory: {node.relative_path or '.'}")

    rel = node.relative_path
    old_label, new_label = f"a/{rel}", f"b/{rel}"

    if node.status is FileStatus.UNSUPPORTED:
        return DiffResult(
            old_label,
            new_label,
            [DiffLine(LineTag.HEADER, f"Special file {rel}, contents not compared")],
        )

    old_path: Optional[str] = os.path.join(base_root, rel)
    new_path: Optional[str] = os.path.join(overlay_root, rel)
    if node.status is FileStatus.NEW:
        old_label, old_path = DEV_NULL, None
    elif node.status is FileStatus.DELETED:
        new_label, new_path = DEV_NULL, None

    # Only regular files and symlinks are ever opened
    for side, path in (("base", old_path), ("overlay", new_path)):
        if path is None:
            continue
        mode = os.lstat(path).st_mode
        if not (stat.S_ISREG(mode) or stat.S_ISLNK(mode)):
            note = type_change_note(node.status, side, path, mode)
            return DiffResult(old_label, new_label, [DiffLine(LineTag.HEADER, note)])

    old_data = read_side(old_path) if old_path else b""
    new_data = read_side(new_path) if new_path else b""

    old_text = decode_text(old_data)
    new_text = decode_text(new_data)
    if old_text is None or new_text is None:
        return DiffResult(
            old_label,
            new_label,
            [DiffLine(LineTag.HEADER, f"Binary files {old_label} and {new_label} differ")],
            binary=True,
        )

    return unified_diff(
        split_lines(old_text), split_lines(new_text), old_label, new_label, context
    )


def unified_diff(
    old: Sequence[str],
    new: Sequence[str],
    old_label: str,
    new_label: str,
    context: int = DEFAULT_CONTEXT,
) -> DiffResult:
    result = DiffResult(old_label, new_label)
    lines = result.lines
    lines.append(DiffLine(LineTag.HEADER, f"--- {old_label}"))
    lines.append(DiffLine(LineTag.HEADER, f"+++ {new_label}"))

    matcher = difflib.SequenceMatcher(None, old, new, autojunk=False)
    opcodes = _coalesce(matcher.get_opcodes(), old)

    for group in _group(opcodes, context):
        first, last = group[0], group[-1]
        old_range = _format_range(first[1], last[2])
        new_range = _format_range(first[3], last[4])
        lines.append(DiffLine(LineTag.HEADER, f"@@ -{old_range} +{new_range} @@"))

        for tag, i1, i2, j1, j2 in group:
            if tag == "equal":
                for offset, line in enumerate(old[i1:i2]):
                    _emit(lines, LineTag.CONTEXT, line, old_lineno=i1 + offset + 1, new_lineno=j1 + offset + 1)
                continue
            for offset, line in enumerate(old[i1:i2]):
                _emit(lines, LineTag.DELETION, line, old_lineno=i1 + offset + 1)
            for offset, line in enumerate(new[j1:j2]):
                _emit(lines, LineTag.ADDITION, line, new_lineno=j1 + offset + 1)

    return result


def _emit(lines: List[DiffLine], tag: LineTag, line: str, **linenos) -> None:
    lines.append(DiffLine(tag, line.rstrip("\n"), **linenos))
    if not line.endswith("\n"):
        lines.append(DiffLine(LineTag.HEADER, NO_NEWLINE))


def _coalesce(opcodes: List[Opcode], old: Sequence[str]) -> List[Opcode]:
    """
    Merge changes separated only by a single blank line into one block.

    The matcher happily anchors on lone blank lines inside a rewritten
    region, which splits one edit into interleaved fragments. Folding those
    anchors back gives one deletion block followed by one addition block.
    """
    merged: List[Opcode] = []
    for index, op in enumerate(opcodes):
        tag, i1, i2, j1, j2 = op
        if tag == "equal":
            between_changes = 0 < index < len(opcodes) - 1
            if not (between_changes and i2 - i1 == 1 and not old[i1].strip()):
                merged.append(op)
                continue
        if merged and merged[-1][0] != "equal":
            _, p1, _, q1, _ = merged[-1]
            merged[-1] = ("replace", p1, i2, q1, j2)
        else:
            merged.append(op)
    return merged


def _group(opcodes: List[Opcode], context: int) -> List[List[Opcode]]:
    """Split opcodes into hunks, trimming equal runs down to ``context`` lines."""
    if not opcodes or (len(opcodes) == 1 and opcodes[0][0] == "equal"):
        return []

    codes = list(opcodes)
    tag, i1, i2, j1, j2 = codes[0]
    if tag == "equal":
        codes[0] = tag, max(i1, i2 - context), i2, max(j1, j2 - context), j2
    tag, i1, i2, j1, j2 = codes[-1]
    if tag == "equal":
        codes[-1] = tag, i1, min(i2, i1 + context), j1, min(j2, j1 + context)

    groups: List[List[Opcode]] = []
    current: List[Opcode] = []
    for tag, i1, i2, j1, j2 in codes:
        # An equal run long enough to separate two hunks
        if tag == "equal" and i2 - i1 > 2 * context and current:
            current.append((tag, i1, i1 + context, j1, j1 + context))
            groups.append(current)
            current = []
            i1, j1 = i2 - context, j2 - context
        current.append((tag, i1, i2, j1, j2))
    if current and not (len(current) == 1 and current[0][0] == "equal"):
        groups.append(current)
    return groups


def _format_range(start: int, stop: int) -> str:
    beginning = start + 1
    length = stop - start
    if length == 1:
        return f"{beginning}"
    if not length:
        beginning -= 1
    return f"{beginning},{length}"
