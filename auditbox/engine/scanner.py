"""
Walk an overlay directory and build the tree of entries that differ from base.
"""

import logging
import os
from typing import List, Optional

from .compare import PathComparator
from .errors import CompareIoError, InvalidRootError
from .types import (
    Classification,
    FileNode,
    FileStatus,
    IssueKind,
    NodeKind,
    ScanIssue,
    ScanResult,
)

logger = logging.getLogger(__name__)

_STATUS_BY_CLASSIFICATION = {
    Classification.ABSENT_IN_BASE: FileStatus.NEW,
    Classification.DIFFERENT_FROM_BASE: FileStatus.MODIFIED,
    Classification.WHITEOUT: FileStatus.DELETED,
    Classification.UNSUPPORTED: FileStatus.UNSUPPORTED,
}


def check_roots(overlay_root: str, base_root: str) -> None:
    """
    Raises:
        InvalidRootError: If either root is missing or not a directory
    """
    for label, root in (("Overlay", overlay_root), ("Base", base_root)):
        if not os.path.isdir(root):
            raise InvalidRootError(label, os.fspath(root))


def scan(overlay_root: str, base_root: str) -> ScanResult:
    """
    Build the audited tree for an overlay directory.

    Files identical to their base counterpart are left out, and so are
    directories without any surfaced descendant. Unreadable directories and
    entries that cannot be compared are reported as issues and skipped.

    Args:
        overlay_root: The pure overlay content directory (the upper layer)
        base_root: The read-only lower directory the overlay sits on

    Returns:
        ScanResult with the root FileNode and any non-fatal issues

    Raises:
        InvalidRootError: If either root is missing or not a directory
    """
    overlay_root = os.path.abspath(overlay_root)
    base_root = os.path.abspath(base_root)
    check_roots(overlay_root, base_root)

    comparator = PathComparator(overlay_root, base_root)
    issues: List[ScanIssue] = []
    root = _scan_directory(comparator, "", issues)
    if root is None:
        root = FileNode("", NodeKind.DIRECTORY)

    logger.debug(
        "Scanned %s: %d changed entries, %d issues",
        overlay_root,
        sum(1 for _ in root.leaves()),
        len(issues),
    )
    return ScanResult(root=root, issues=issues)


def _scan_directory(
    comparator: PathComparator, relative_dir: str, issues: List[ScanIssue]
) -> Optional[FileNode]:
    try:
        with os.scandir(comparator.overlay_path(relative_dir)) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as e:
        logger.debug("Cannot read overlay directory %s: %s", relative_dir or ".", e)
        issues.append(ScanIssue(relative_dir, IssueKind.SCAN_IO_ERROR, str(e)))
        return None

    children: List[FileNode] = []
    for entry in entries:
        relative_path = f"{relative_dir}/{entry.name}" if relative_dir else entry.name

        try:
            is_dir = entry.is_dir(follow_symlinks=False)
        except OSError as e:
            issues.append(ScanIssue(relative_path, IssueKind.SCAN_IO_ERROR, str(e)))
            continue

        if is_dir:
            child = _scan_directory(comparator, relative_path, issues)
            if child is not None:
                children.append(child)
            continue

        try:
            classification = comparator.classify(relative_path)
        except CompareIoError as e:
            # Treated as absent for this pass
            logger.debug("%s", e)
            issues.append(ScanIssue(relative_path, IssueKind.COMPARE_IO_ERROR, str(e.cause)))
            continue

        status = _STATUS_BY_CLASSIFICATION.get(classification)
        if status is None:
            continue
        children.append(FileNode(relative_path, NodeKind.FILE, status=status))

    if not children and relative_dir:
        return None
    return FileNode(relative_dir, NodeKind.DIRECTORY, children=children)
