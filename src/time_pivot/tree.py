from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import TYPE_CHECKING, Any

import numpy as np
import pandas as pd

from time_pivot.timestamps import TimeRange, max_timestamp, min_timestamp

if TYPE_CHECKING:
    from time_pivot.binning.binned_range import BinnedRange
    from time_pivot.binning.tree_binner import TreeBinner

NodeKey = tuple[str, str]
NodeVisitor = Callable[["PivotTreeNode"], None]


class PivotTreeNode:
    """One node of a pivot tree.

    Non-root nodes are identified by a ``(name, value)`` pair that is unique
    among their siblings. Rows are kept in insertion order together with their
    UTC timestamps and source row ids. Nodes are created through
    ``PivotTree.add_or_get_child`` and never directly.
    """

    def __init__(
        self,
        tree: PivotTree,
        parent: PivotTreeNode | None = None,
        name: str | None = None,
        value: str | None = None,
    ) -> None:
        self._tree = tree
        self._parent = parent
        self._depth = parent._depth + 1 if parent is not None else 0
        self._name = name
        self._value = value
        self._children: dict[NodeKey, PivotTreeNode] = {}
        self._rows: list[Any] = []
        self._row_ids: list[int] = []
        self._timestamps: list[pd.Timestamp] = []
        self._properties: dict[str, str] = {}
        self._min_timestamp: pd.Timestamp | None = None
        self._max_timestamp: pd.Timestamp | None = None
        self._min_timestamp_children: pd.Timestamp | None = None
        self._max_timestamp_children: pd.Timestamp | None = None
        self._reported_time_range: TimeRange | None = None
        self._category: str | None = None
        self._heatmap: np.ndarray | None = None

    def __repr__(self) -> str:
        return (
            f"PivotTreeNode(name={self._name!r}, value={self.value!r}, "
            f"from={self._min_timestamp}, to={self._max_timestamp}, "
            f"children={len(self._children)}, rows={len(self._rows)})"
        )

    # Construction (used by PivotTree and the pivot builders)

    def _add_or_get_child(self, name: str, value: str) -> PivotTreeNode:
        key = (name, value)
        node = self._children.get(key)
        if node is None:
            node = PivotTreeNode(self._tree, parent=self, name=name, value=value)
            self._children[key] = node
        return node

    def add_row(self, timestamp: pd.Timestamp, row: Any, row_id: int) -> None:
        self._rows.append(row)
        self._row_ids.append(row_id)
        self._timestamps.append(timestamp)
        self._min_timestamp = min_timestamp(self._min_timestamp, timestamp)
        self._max_timestamp = max_timestamp(self._max_timestamp, timestamp)

    def set_property(self, name: str, value: str | None) -> None:
        """Set a display property; a blank value removes it."""
        if not name or not name.strip():
            raise ValueError("Property name must be a non-blank string")
        if value is None or not value.strip():
            self._properties.pop(name, None)
            return
        self._properties[name] = value

    def set_reported_time_range(self, reported_time_range: TimeRange | None) -> None:
        self._reported_time_range = reported_time_range

    def set_category(self, category: str | None) -> None:
        self._category = category

    # Read accessors

    @property
    def parent(self) -> PivotTreeNode | None:
        return self._parent

    @property
    def is_root(self) -> bool:
        return self._parent is None

    @property
    def name(self) -> str | None:
        return self._name

    @property
    def raw_value(self) -> str | None:
        return self._value

    @property
    def value(self) -> str | None:
        """The node value, prefixed by its properties (ordered by key) when it has any."""
        if not self._properties:
            return self._value
        joined = "/".join(self._properties[key] for key in sorted(self._properties))
        return f"[{joined}]: {self._value}"

    @property
    def key(self) -> NodeKey | None:
        if self._name is None or self._value is None:
            return None
        return (self._name, self._value)

    @property
    def children(self) -> list[PivotTreeNode]:
        return list(self._children.values())

    def get_child(self, name: str, value: str) -> PivotTreeNode | None:
        return self._children.get((name, value))

    @property
    def rows(self) -> list[Any]:
        return list(self._rows)

    @property
    def row_ids(self) -> list[int]:
        return list(self._row_ids)

    @property
    def timestamps(self) -> list[pd.Timestamp]:
        return list(self._timestamps)

    @property
    def row_count(self) -> int:
        return len(self._rows)

    @property
    def properties(self) -> dict[str, str]:
        return dict(self._properties)

    @property
    def min_timestamp(self) -> pd.Timestamp | None:
        return self._min_timestamp

    @property
    def max_timestamp(self) -> pd.Timestamp | None:
        return self._max_timestamp

    @property
    def min_timestamp_children(self) -> pd.Timestamp | None:
        """Earliest timestamp over this node and its descendants (after propagation)."""
        return min_timestamp(self._min_timestamp_children, self._min_timestamp)

    @property
    def max_timestamp_children(self) -> pd.Timestamp | None:
        return max_timestamp(self._max_timestamp_children, self._max_timestamp)

    @property
    def reported_time_range(self) -> TimeRange | None:
        if self._reported_time_range is not None:
            return self._reported_time_range
        if self._min_timestamp is not None and self._max_timestamp is not None:
            return TimeRange(self._min_timestamp, self._max_timestamp)
        begin = self.min_timestamp_children
        end = self.max_timestamp_children
        if begin is not None and end is not None:
            return TimeRange(begin, end)
        return None

    @property
    def explicit_reported_time_range(self) -> TimeRange | None:
        return self._reported_time_range

    @property
    def category(self) -> str | None:
        return self._category

    @property
    def heatmap(self) -> np.ndarray | None:
        return self._heatmap

    @property
    def depth(self) -> int:
        return self._depth

    @property
    def path(self) -> list[NodeKey]:
        """The ``(name, value)`` pairs from the root down to this node."""
        keys: list[NodeKey] = []
        node: PivotTreeNode | None = self
        while node is not None and node.key is not None:
            keys.append(node.key)
            node = node._parent
        keys.reverse()
        return keys


class PivotTree:
    """A rooted tree of rows grouped by dimension values, with per-node heatmaps.

    Assigning ``binner`` recomputes every node's heatmap against the binner's
    range: cleared when there is no range, per-node counts otherwise, and
    counts summed up the hierarchy when ``propagate_heatmap_to_parent`` is on.
    The tree is not safe for concurrent mutation and reads.
    """

    def __init__(self, propagate_heatmap_to_parent: bool = False) -> None:
        self._root = PivotTreeNode(self)
        self._binner: TreeBinner | None = None
        self.propagate_heatmap_to_parent = propagate_heatmap_to_parent

    @property
    def root(self) -> PivotTreeNode:
        return self._root

    def add_or_get_child(self, parent: PivotTreeNode, name: str, value: str) -> PivotTreeNode:
        if parent is None:
            raise ValueError("parent is required")
        if not self._owns(parent):
            raise ValueError("The parent node must be of this tree")
        if not isinstance(name, str):
            raise TypeError(f"name must be a string, got {type(name).__name__}")
        if not isinstance(value, str):
            raise TypeError(f"value must be a string, got {type(value).__name__}")
        return parent._add_or_get_child(name, value)

    def _owns(self, node: PivotTreeNode) -> bool:
        return node._tree is self

    @property
    def binner(self) -> TreeBinner | None:
        return self._binner

    @binner.setter
    def binner(self, binner: TreeBinner | None) -> None:
        if binner is not None and binner.tree is not self:
            raise ValueError("The binner must be built for this tree")
        self._binner = binner
        binned_range = binner.binned_range if binner is not None else None
        if binned_range is None:
            self.visit(_clear_heatmap, including_root=True)
        elif self.propagate_heatmap_to_parent:
            self.visit_postfix(
                lambda node: _assign_propagated_heatmap(node, binned_range),
                including_root=True,
            )
        else:
            self.visit(
                lambda node: _assign_heatmap(node, binned_range),
                including_root=True,
            )

    @property
    def binned_range(self) -> BinnedRange | None:
        return self._binner.binned_range if self._binner is not None else None

    def visit(self, visitor: NodeVisitor, including_root: bool = False) -> None:
        """Pre-order walk: each node before its children, children in insertion order."""
        if visitor is None:
            raise ValueError("visitor is required")
        for node in self.iter_nodes(including_root=including_root):
            visitor(node)

    def visit_postfix(self, visitor: NodeVisitor, including_root: bool = False) -> None:
        """Post-order walk: all children (in insertion order) before their parent."""
        if visitor is None:
            raise ValueError("visitor is required")
        stack: list[tuple[PivotTreeNode, bool]] = [(self._root, False)]
        while stack:
            node, expanded = stack.pop()
            if expanded:
                if node is not self._root or including_root:
                    visitor(node)
                continue
            stack.append((node, True))
            for child in reversed(node.children):
                stack.append((child, False))

    def iter_nodes(self, including_root: bool = False) -> Iterator[PivotTreeNode]:
        stack = [self._root]
        while stack:
            node = stack.pop()
            if node is not self._root or including_root:
                yield node
            stack.extend(reversed(node.children))

    def leaves(self) -> list[PivotTreeNode]:
        return [node for node in self.iter_nodes() if not node._children]

    @property
    def node_count(self) -> int:
        return sum(1 for _ in self.iter_nodes())

    @property
    def row_count(self) -> int:
        return sum(node.row_count for node in self.iter_nodes(including_root=True))


def _clear_heatmap(node: PivotTreeNode) -> None:
    node._heatmap = None
    _clear_children_extent(node)


def _assign_heatmap(node: PivotTreeNode, binned_range: BinnedRange) -> None:
    node._heatmap = binned_range.get_heatmap(node._timestamps)
    _clear_children_extent(node)


def _clear_children_extent(node: PivotTreeNode) -> None:
    # Descendant extents are only meaningful after a propagated recompute.
    node._min_timestamp_children = None
    node._max_timestamp_children = None


def _assign_propagated_heatmap(node: PivotTreeNode, binned_range: BinnedRange) -> None:
    heatmap = binned_range.get_heatmap(node._timestamps)
    min_children: pd.Timestamp | None = None
    max_children: pd.Timestamp | None = None
    for child in node._children.values():
        min_children = min_timestamp(min_children, child.min_timestamp_children)
        max_children = max_timestamp(max_children, child.max_timestamp_children)
        heatmap += child._heatmap
    node._min_timestamp_children = min_children
    node._max_timestamp_children = max_children
    node._heatmap = heatmap
