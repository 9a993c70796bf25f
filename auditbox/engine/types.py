"""
Data types shared by the overlay audit engine.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional


class NodeKind(Enum):
    FILE = "file"
    DIRECTORY = "directory"


class FileStatus(Enum):
    """Classification of a leaf against the base tree."""

    NEW = "new"
    MODIFIED = "modified"
    # Overlay whiteout: the sandboxed process removed the base entry.
    DELETED = "deleted"
    # FIFO, socket or device node; never content-compared.
    UNSUPPORTED = "unsupported"


SELECTABLE_STATUSES = frozenset({FileStatus.NEW, FileStatus.MODIFIED})


class Classification(Enum):
    """Result of comparing one overlay entry with its base counterpart."""

    ABSENT_IN_BASE = "absent"
    IDENTICAL_TO_BASE = "identical"
    DIFFERENT_FROM_BASE = "different"
    UNSUPPORTED = "unsupported"
    WHITEOUT = "whiteout"


class SelectionState(Enum):
    UNSELECTED = "unselected"
    PARTIAL = "partial"
    FULL = "full"


@dataclass
class FileNode:
    """
    One entry in the audited tree.

    ``relative_path`` is a POSIX path relative to both the overlay and base
    roots; the root node uses ``""``. On directories ``selected`` mirrors the
    "fully selected" state maintained by the selection model.
    """

    relative_path: str
    kind: NodeKind
    status: Optional[FileStatus] = None
    selected: bool = False
    children: List["FileNode"] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.relative_path.rsplit("/", 1)[-1]

    @property
    def is_dir(self) -> bool:
        return self.kind is NodeKind.DIRECTORY

    @property
    def selectable(self) -> bool:
        return not self.is_dir and self.status in SELECTABLE_STATUSES

    def walk(self) -> Iterator["FileNode"]:
        """Yield this node and every descendant in display order."""
        yield self
        for child in self.children:
            yield from child.walk()

    def leaves(self) -> Iterator["FileNode"]:
        for node in self.walk():
            if not node.is_dir:
                yield node


class IssueKind(Enum):
    SCAN_IO_ERROR = "scan_io_error"
    COMPARE_IO_ERROR = "compare_io_error"


@dataclass(frozen=True)
class ScanIssue:
    """A non-fatal problem met while scanning a single path."""

    relative_path: str
    kind: IssueKind
    message: str


@dataclass
class ScanResult:
    root: FileNode
    issues: List[ScanIssue] = field(default_factory=list)


class LineTag(Enum):
    HEADER = "header"
    CONTEXT = "context"
    ADDITION = "addition"
    DELETION = "deletion"


@dataclass(frozen=True)
class DiffLine:
    tag: LineTag
    text: str
    old_lineno: Optional[int] = None
    new_lineno: Optional[int] = None


@dataclass
class DiffResult:
    """Line records comparing a base file (old) with its overlay copy (new)."""

    old_label: str
    new_label: str
    lines: List[DiffLine] = field(default_factory=list)
    binary: bool = False

    def tagged(self, tag: LineTag) -> List[str]:
        return [line.text for line in self.lines if line.tag is tag]


class OutcomeKind(Enum):
    APPLIED = "applied"
    VERIFICATION_FAILED = "verification_failed"
    IO_ERROR = "io_error"
    DELETED = "deleted"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Outcome:
    """Result of one apply or discard attempt on a single path."""

    relative_path: str
    kind: OutcomeKind
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.kind in (OutcomeKind.APPLIED, OutcomeKind.DELETED)
