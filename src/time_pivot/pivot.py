from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd

from time_pivot.errors import (
    CyclicGraphError,
    InternalCollisionError,
    ParentConflictError,
    PivotConfigurationError,
    TimePivotError,
)
from time_pivot.io.source import ColumnType, TableSource
from time_pivot.timestamps import to_utc_timestamp
from time_pivot.tree import NodeKey, PivotTree, PivotTreeNode

LOGGER = logging.getLogger(__name__)

NULL_VALUE = "[null]"


def describe_key(key: NodeKey) -> str:
    name, value = key
    return f"(name={name}, value={value})"


@dataclass(frozen=True)
class NodeAndParentId:
    """Identity of the node a row belongs to and, optionally, of that node's parent."""

    name: str
    value: str
    parent_name: str | None = None
    parent_value: str | None = None

    def __post_init__(self) -> None:
        for label in ("name", "value"):
            text = getattr(self, label)
            if not isinstance(text, str) or not text.strip():
                raise ValueError(f"{label} must be a non-blank string")
        if (self.parent_name is None) != (self.parent_value is None):
            raise ValueError("parent_name and parent_value must be given together")
        if self.parent_name is not None:
            for label in ("parent_name", "parent_value"):
                text = getattr(self, label)
                if not isinstance(text, str) or not text.strip():
                    raise ValueError(f"{label} must be a non-blank string")

    @property
    def node_key(self) -> NodeKey:
        return (self.name, self.value)

    @property
    def parent_key(self) -> NodeKey | None:
        if self.parent_name is None or self.parent_value is None:
            return None
        return (self.parent_name, self.parent_value)

    def describe(self) -> str:
        return describe_key(self.node_key)

    def describe_parent(self) -> str | None:
        parent_key = self.parent_key
        return describe_key(parent_key) if parent_key is not None else None


NodeAndParentGetter = Callable[[pd.Series], NodeAndParentId]


@dataclass
class _ProtoNode:
    key: NodeKey
    parent_key: NodeKey | None = None
    children: dict[NodeKey, _ProtoNode] = field(default_factory=dict)
    entries: list[tuple[pd.Timestamp, Any, int]] = field(default_factory=list)


@dataclass(frozen=True)
class GraphPivotOutcome:
    tree: PivotTree | None = None
    error: TimePivotError | None = None

    @property
    def ok(self) -> bool:
        return self.tree is not None and self.error is None


class TimePivot:
    """Groups the rows of a table into a ``PivotTree`` keyed on a datetime column.

    The time column is either named explicitly or the first datetime column of
    the source. Rows without a valid timestamp never reach the tree.
    """

    def __init__(self, source: TableSource | pd.DataFrame, time_column: str | None = None) -> None:
        if source is None:
            raise PivotConfigurationError("source is required")
        self._source = source if isinstance(source, TableSource) else TableSource(source)
        self._time_column = self._resolve_time_column(time_column)

    @property
    def source(self) -> TableSource:
        return self._source

    @property
    def time_column(self) -> str:
        return self._time_column

    def _resolve_time_column(self, time_column: str | None) -> str:
        datetime_columns = [
            name
            for name, column_type in self._source.schema()
            if column_type == ColumnType.datetime
        ]
        if time_column is None:
            if not datetime_columns:
                raise PivotConfigurationError("The data must have at least one datetime column")
            return datetime_columns[0]
        if time_column not in datetime_columns:
            raise PivotConfigurationError(
                f"The data must have a datetime column with the specified name: {time_column}"
            )
        return time_column

    def _row_timestamp(self, row: pd.Series) -> pd.Timestamp | None:
        return to_utc_timestamp(row[self._time_column])

    def pivot_by(self, *columns: str | Sequence[str]) -> PivotTree:
        """Pivot by one or more dimension columns, one tree level per column."""
        dimension_columns = _flatten_columns(columns)
        if not dimension_columns:
            raise PivotConfigurationError("There should be at least one pivot column name")
        for index, column in enumerate(dimension_columns):
            if not isinstance(column, str) or not column.strip():
                raise PivotConfigurationError(f"Pivot column name [{index}] must be non-blank")
            if not self._source.has_column(column):
                raise PivotConfigurationError(
                    f"Pivot column [{index}] does not exist in the data: {column}"
                )

        tree = PivotTree()
        skipped = 0
        for row_id, row in self._source.iter_rows():
            timestamp = self._row_timestamp(row)
            if timestamp is None:
                skipped += 1
                continue
            node = tree.root
            for column in dimension_columns:
                node = tree.add_or_get_child(node, column, _dimension_value(row[column]))
            node.add_row(timestamp, row, row_id)

        if skipped:
            LOGGER.debug("Skipped %s rows without a valid %s value", skipped, self._time_column)
        LOGGER.info(
            "Pivoted %s rows by %s into %s nodes",
            self._source.rows_count - skipped,
            ", ".join(dimension_columns),
            tree.node_count,
        )
        return tree

    def pivot_by_graph(self, get_node_and_parent: NodeAndParentGetter) -> PivotTree:
        """Pivot by a node/parent identity reported per row.

        Rows may name a parent before the parent's own rows are seen. Raises
        ``ParentConflictError`` when one node is given two different parents and
        ``CyclicGraphError`` when some nodes only reach each other through a cycle.
        """
        if get_node_and_parent is None:
            raise PivotConfigurationError("get_node_and_parent is required")

        proto_nodes = self._collect_proto_nodes(get_node_and_parent)
        tree = PivotTree()
        materialized = 0
        for key, proto_node in proto_nodes.items():
            if proto_node.parent_key is None or proto_node.parent_key == key:
                materialized += _materialize_lineage(tree, proto_node)

        if materialized != len(proto_nodes):
            unreachable = sorted(
                describe_key(key) for key in proto_nodes if not _reaches_root(key, proto_nodes)
            )
            raise CyclicGraphError(unreachable)

        LOGGER.info("Built graph pivot with %s nodes", materialized)
        return tree

    def try_pivot_by_graph(self, get_node_and_parent: NodeAndParentGetter) -> GraphPivotOutcome:
        """Same as ``pivot_by_graph`` but reports structural conflicts instead of raising."""
        try:
            return GraphPivotOutcome(tree=self.pivot_by_graph(get_node_and_parent))
        except (ParentConflictError, InternalCollisionError, CyclicGraphError) as exc:
            LOGGER.warning("Graph pivot rejected: %s", exc)
            return GraphPivotOutcome(error=exc)

    def _collect_proto_nodes(
        self, get_node_and_parent: NodeAndParentGetter
    ) -> dict[NodeKey, _ProtoNode]:
        proto_nodes: dict[NodeKey, _ProtoNode] = {}
        for row_id, row in self._source.iter_rows():
            timestamp = self._row_timestamp(row)
            if timestamp is None:
                continue

            identity = get_node_and_parent(row)
            node_key = identity.node_key
            parent_key = identity.parent_key

            node = proto_nodes.get(node_key)
            if node is None:
                node = _ProtoNode(key=node_key)
                proto_nodes[node_key] = node
            node.entries.append((timestamp, row, row_id))

            if parent_key is None or parent_key == node_key:
                continue
            if node.parent_key is not None and node.parent_key != parent_key:
                raise ParentConflictError(
                    node=identity.describe(),
                    parent=describe_key(parent_key),
                    existing_parent=describe_key(node.parent_key),
                )
            node.parent_key = parent_key

            parent = proto_nodes.get(parent_key)
            if parent is None:
                parent = _ProtoNode(key=parent_key)
                proto_nodes[parent_key] = parent
            existing = parent.children.get(node_key)
            if existing is None:
                parent.children[node_key] = node
            elif existing is not node:
                raise InternalCollisionError(
                    f"Child {identity.describe()} registered twice under {describe_key(parent_key)}"
                )
        return proto_nodes


def _flatten_columns(columns: tuple[str | Sequence[str], ...]) -> list[str]:
    flattened: list[str] = []
    for column in columns:
        if isinstance(column, str) or column is None:
            flattened.append(column)
        else:
            flattened.extend(column)
    return flattened


def _dimension_value(value: Any) -> str:
    if value is None:
        return NULL_VALUE
    try:
        if pd.isna(value):
            return NULL_VALUE
    except (TypeError, ValueError):
        pass
    # Integer columns with blanks load as float64; keep "1" rather than "1.0".
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        return str(int(value))
    return str(value)


def _materialize_lineage(tree: PivotTree, root: _ProtoNode) -> int:
    """Attach ``root`` and all its proto descendants under the tree root; returns the count."""
    count = 0
    stack: list[tuple[_ProtoNode, PivotTreeNode]] = [(root, tree.root)]
    while stack:
        proto_node, parent = stack.pop()
        name, value = proto_node.key
        node = tree.add_or_get_child(parent, name, value)
        for timestamp, row, row_id in proto_node.entries:
            node.add_row(timestamp, row, row_id)
        count += 1
        # Reversed so children pop, and are inserted, in registration order.
        for child in reversed(list(proto_node.children.values())):
            stack.append((child, node))
    return count


def _reaches_root(key: NodeKey, proto_nodes: dict[NodeKey, _ProtoNode]) -> bool:
    seen: set[NodeKey] = set()
    current: NodeKey | None = key
    while current is not None:
        if current in seen:
            return False
        seen.add(current)
        parent_key = proto_nodes[current].parent_key
        if parent_key == current:
            return True
        current = parent_key
    return True
