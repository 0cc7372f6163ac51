from __future__ import annotations

from time_pivot.io.source import ColumnType, TableSource

MIN_ROWS = 20
TARGET_DISTINCT_COUNT = 7
MAX_DISTINCT_COUNT = 25
UNDERSHOOT_PENALTY = 3


def _distinct_count_score(distinct_count: int) -> int:
    # Closest to the target from above wins; falling short is penalized harder.
    if distinct_count >= TARGET_DISTINCT_COUNT:
        return distinct_count - TARGET_DISTINCT_COUNT
    return (TARGET_DISTINCT_COUNT - distinct_count) * UNDERSHOOT_PENALTY


class DimensionalAutoPivot:
    """Suggests the string column that makes the most readable single-level pivot."""

    def __init__(self, source: TableSource) -> None:
        if source is None:
            raise ValueError("source is required")
        self._source = source

    def distinct_counts(self) -> dict[str, int]:
        frame = self._source.frame
        counts: dict[str, int] = {}
        for name, column_type in self._source.schema():
            if column_type != ColumnType.string:
                continue
            values = frame[name]
            counts[name] = int(values[values.map(lambda value: isinstance(value, str))].nunique())
        return counts

    def determine_columns_to_pivot_by(self) -> list[str] | None:
        if self._source.rows_count < MIN_ROWS:
            return None
        counts = self.distinct_counts()
        if not counts:
            return None
        best = min(counts, key=lambda name: _distinct_count_score(counts[name]))
        if counts[best] < MAX_DISTINCT_COUNT:
            return [best]
        return None
