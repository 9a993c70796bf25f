"""
The operations a presentation layer drives while reviewing one overlay.
"""

import logging
import os
import threading
from typing import Iterable, List, Optional, Set

from . import diff, scanner, writeback
from .errors import AuditError
from .selection import SelectionModel, normalize_path
from .types import DiffResult, FileNode, Outcome, ScanIssue, SelectionState

logger = logging.getLogger(__name__)


class OverlayAudit:
    """
    Review state for one (overlay_root, base_root) pair.

    The caller owns this object and the tree inside it. Every public method
    runs under one lock, so scans, selection changes, rendering and batch
    operations on the same overlay never interleave.
    """

    def __init__(
        self,
        overlay_root: str,
        base_root: str,
        diff_context: int = diff.DEFAULT_CONTEXT,
        max_workers: int = 1,
    ):
        self.overlay_root = os.path.abspath(overlay_root)
        self.base_root = os.path.abspath(base_root)
        self.diff_context = diff_context
        self.max_workers = max_workers
        self.issues: List[ScanIssue] = []
        self._model: Optional[SelectionModel] = None
        self._lock = threading.RLock()

    @property
    def scanned(self) -> bool:
        return self._model is not None

    @property
    def model(self) -> SelectionModel:
        if self._model is None:
            raise AuditError("Overlay has not been scanned yet")
        return self._model

    @property
    def root(self) -> FileNode:
        return self.model.root

    def scan(self, keep_selection: bool = True) -> FileNode:
        """
        Rescan the overlay and rebuild the tree.

        Args:
            keep_selection: Re-select leaves that were selected before and still exist

        Returns:
            The new root node; non-fatal problems are left in ``issues``

        Raises:
            InvalidRootError: If either root is missing or not a directory
        """
        with self._lock:
            previous = self._model.selected_leaves() if self._model and keep_selection else set()
            result = scanner.scan(self.overlay_root, self.base_root)
            model = SelectionModel(result.root)
            model.carry_over(previous)
            self._model = model
            self.issues = result.issues
            return result.root

    def node(self, relative_path: str) -> FileNode:
        with self._lock:
            return self.model.node(relative_path)

    def state(self, relative_path: str) -> SelectionState:
        with self._lock:
            return self.model.state(relative_path)

    def toggle(self, relative_path: str) -> None:
        with self._lock:
            self.model.toggle(relative_path)

    def select_all_under(self, relative_path: str = "") -> None:
        with self._lock:
            self.model.select_all_under(relative_path)

    def deselect_all_under(self, relative_path: str = "") -> None:
        with self._lock:
            self.model.deselect_all_under(relative_path)

    def selected_leaves(self) -> Set[str]:
        with self._lock:
            return self.model.selected_leaves()

    def render(self, relative_path: str) -> DiffResult:
        with self._lock:
            node = self.model.node(relative_path)
            return diff.render(node, self.overlay_root, self.base_root, self.diff_context)

    def apply(
        self,
        paths: Optional[Iterable[str]] = None,
        cancel: Optional[threading.Event] = None,
    ) -> List[Outcome]:
        """
        Write back the given leaves, or the current selection when paths is None.

        Applied files are pruned from the tree; everything else stays as it was.
        """
        with self._lock:
            targets = self._targets(paths)
            outcomes = writeback.apply(
                targets, self.overlay_root, self.base_root, self.max_workers, cancel
            )
            self._forget(outcomes)
            return outcomes

    def discard(
        self,
        paths: Optional[Iterable[str]] = None,
        cancel: Optional[threading.Event] = None,
    ) -> List[Outcome]:
        """Delete the given paths, or the current selection, from the overlay."""
        with self._lock:
            targets = self._targets(paths)
            outcomes = writeback.discard(targets, self.overlay_root, self.max_workers, cancel)
            self._forget(outcomes)
            return outcomes

    def _targets(self, paths: Optional[Iterable[str]]) -> Set[str]:
        if paths is None:
            return self.model.selected_leaves()
        return {normalize_path(path) for path in paths}

    def _forget(self, outcomes: List[Outcome]) -> None:
        done = [outcome.relative_path for outcome in outcomes if outcome.ok]
        if self._model is not None and done:
            self._model.remove(done)
        logger.debug(
            "%d of %d paths completed under %s", len(done), len(outcomes), self.overlay_root
        )
