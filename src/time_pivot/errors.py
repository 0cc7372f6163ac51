from __future__ import annotations


class TimePivotError(Exception):
    """Base class for errors raised while building or binning a pivot tree."""


class PivotConfigurationError(TimePivotError, ValueError):
    """Invalid arguments to a pivot: unknown columns, no dimensions, no time column."""


class InvalidBinnedRangeError(TimePivotError, ValueError):
    pass


class ParentConflictError(TimePivotError):
    """A node was declared with two different parents in the same row scan."""

    def __init__(self, node: str, parent: str, existing_parent: str) -> None:
        self.node = node
        self.parent = parent
        self.existing_parent = existing_parent
        super().__init__(f"Node {node} has two parents: {parent} and {existing_parent}")


class InternalCollisionError(TimePivotError, RuntimeError):
    """A child id was re-registered under a parent for a different proto-node."""


class CyclicGraphError(TimePivotError):
    """Some nodes only lead back to each other and never reach a parentless node."""

    def __init__(self, nodes: list[str]) -> None:
        self.nodes = nodes
        super().__init__(f"Nodes form a parent cycle: {', '.join(nodes)}")
