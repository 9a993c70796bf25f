"""
Overlay audit engine.

Scans an overlay directory against its read-only base, tracks which changed
files the reviewer selected, renders diffs, and writes verified changes back
to the base or discards them from the overlay.
"""

from .audit import OverlayAudit
from .compare import PathComparator
from .diff import render
from .errors import (
    AuditError,
    CompareIoError,
    InvalidRootError,
    NotRenderableError,
    UnknownPathError,
)
from .scanner import scan
from .selection import SelectionModel
from .types import (
    Classification,
    DiffLine,
    DiffResult,
    FileNode,
    FileStatus,
    IssueKind,
    LineTag,
    NodeKind,
    Outcome,
    OutcomeKind,
    ScanIssue,
    ScanResult,
    SelectionState,
)
from .writeback import apply, discard

__all__ = [
    "OverlayAudit",
    "PathComparator",
    "SelectionModel",
    "scan",
    "render",
    "apply",
    "discard",
    "AuditError",
    "CompareIoError",
    "InvalidRootError",
    "NotRenderableError",
    "UnknownPathError",
    "Classification",
    "DiffLine",
    "DiffResult",
    "FileNode",
    "FileStatus",
    "IssueKind",
    "LineTag",
    "NodeKind",
    "Outcome",
    "OutcomeKind",
    "ScanIssue",
    "ScanResult",
    "SelectionState",
]
