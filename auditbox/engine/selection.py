"""
Selection state over an audited tree.

Nodes are indexed by relative path, with a parent map and per-directory
counters of selectable and selected leaves. Changing a leaf walks its
ancestor chain once to update the counters, so a directory's state is always
derived from its descendants.
"""

import logging
from typing import Dict, Iterable, Optional, Set, Tuple

from .errors import UnknownPathError
from .types import FileNode, SelectionState

logger = logging.getLogger(__name__)


def normalize_path(relative_path: str) -> str:
    """Map user-supplied spellings such as "./a/b/" or "." onto tree keys."""
    path = relative_path.strip().strip("/")
    while path.startswith("./"):
        path = path[2:]
    return "" if path == "." else path


class SelectionModel:
    """
    Tracks which leaves of a scanned tree are selected.

    Only New and Modified leaves are selectable; toggling any other leaf is a
    no-op. Directory nodes have their ``selected`` attribute kept equal to
    "every selectable descendant is selected".
    """

    def __init__(self, root: FileNode):
        self.root = root
        self._nodes: Dict[str, FileNode] = {}
        self._parents: Dict[str, Optional[str]] = {}
        self._total: Dict[str, int] = {}
        self._chosen: Dict[str, int] = {}
        self._index(root, None)

    def _index(self, node: FileNode, parent: Optional[str]) -> Tuple[int, int]:
        self._nodes[node.relative_path] = node
        self._parents[node.relative_path] = parent
        if not node.is_dir:
            if not node.selectable:
                node.selected = False
            return self._leaf_counts(node)

        total = chosen = 0
        for child in node.children:
            child_total, child_chosen = self._index(child, node.relative_path)
            total += child_total
            chosen += child_chosen
        self._total[node.relative_path] = total
        self._chosen[node.relative_path] = chosen
        node.selected = total > 0 and chosen == total
        return total, chosen

    @staticmethod
    def _leaf_counts(node: FileNode) -> Tuple[int, int]:
        if not node.selectable:
            return 0, 0
        return 1, int(node.selected)

    def _counts(self, node: FileNode) -> Tuple[int, int]:
        if node.is_dir:
            return self._total[node.relative_path], self._chosen[node.relative_path]
        return self._leaf_counts(node)

    def __contains__(self, relative_path: str) -> bool:
        return normalize_path(relative_path) in self._nodes

    def node(self, relative_path: str) -> FileNode:
        """
        Raises:
            UnknownPathError: If the path is not in the tree
        """
        path = normalize_path(relative_path)
        try:
            return self._nodes[path]
        except KeyError:
            raise UnknownPathError(path) from None

    def state(self, relative_path: str) -> SelectionState:
        node = self.node(relative_path)
        total, chosen = self._counts(node)
        if total and chosen == total:
            return SelectionState.FULL
        if chosen:
            return SelectionState.PARTIAL
        return SelectionState.UNSELECTED

    def toggle(self, relative_path: str) -> None:
        """
        Flip the selection of a node.

        A directory that is not fully selected becomes fully selected;
        a fully selected directory is cleared entirely.
        """
        node = self.node(relative_path)
        if node.is_dir:
            if self.state(node.relative_path) is SelectionState.FULL:
                self.deselect_all_under(node.relative_path)
            else:
                self.select_all_under(node.relative_path)
            return
        if not node.selectable:
            logger.debug("Ignoring toggle of %s (%s)", node.relative_path, node.status)
            return
        self._set_leaf(node, not node.selected)

    def select_all_under(self, relative_path: str = "") -> None:
        for leaf in self.node(relative_path).leaves():
            if leaf.selectable:
                self._set_leaf(leaf, True)

    def deselect_all_under(self, relative_path: str = "") -> None:
        for leaf in self.node(relative_path).leaves():
            if leaf.selectable:
                self._set_leaf(leaf, False)

    def _set_leaf(self, leaf: FileNode, value: bool) -> None:
        if leaf.selected == value:
            return
        leaf.selected = value
        self._propagate(leaf.relative_path, 0, 1 if value else -1)

    def _propagate(self, relative_path: str, total_delta: int, chosen_delta: int) -> None:
        parent = self._parents[relative_path]
        while parent is not None:
            self._total[parent] += total_delta
            self._chosen[parent] += chosen_delta
            total = self._total[parent]
            self._nodes[parent].selected = total > 0 and self._chosen[parent] == total
            parent = self._parents[parent]

    def selected_leaves(self) -> Set[str]:
        """Relative paths of every selected file, the input to apply and discard."""
        return {
            path
            for path, node in self._nodes.items()
            if not node.is_dir and node.selected
        }

    def carry_over(self, selected_paths: Iterable[str]) -> None:
        """Re-select leaves that were selected in a previous tree and still exist."""
        for path in selected_paths:
            node = self._nodes.get(normalize_path(path))
            if node is not None and node.selectable:
                self._set_leaf(node, True)

    def remove(self, relative_paths: Iterable[str]) -> None:
        """
        Drop nodes (and their subtrees) after they left the overlay.

        Directories emptied by the removal are pruned as well, except the
        root. Unknown paths are ignored.
        """
        for path in sorted({normalize_path(p) for p in relative_paths}):
            node = self._nodes.get(path)
            if node is None or path == "":
                continue
            self._detach(node)

    def _detach(self, node: FileNode) -> None:
        path = node.relative_path
        parent_path = self._parents[path]
        total, chosen = self._counts(node)
        self._propagate(path, -total, -chosen)

        parent = self._nodes[parent_path]
        parent.children = [c for c in parent.children if c.relative_path != path]
        for descendant in node.walk():
            key = descendant.relative_path
            del self._nodes[key]
            del self._parents[key]
            self._total.pop(key, None)
            self._chosen.pop(key, None)

        if parent_path and not parent.children:
            self._detach(parent)
