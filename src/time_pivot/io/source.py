from __future__ import annotations

from collections.abc import Iterator
from enum import Enum
from typing import Any

import pandas as pd
from pandas.api import types as ptypes


class ColumnType(str, Enum):
    none = "none"
    numeric = "numeric"
    datetime = "datetime"
    timespan = "timespan"
    string = "string"
    object = "object"


def _column_type(series: pd.Series) -> ColumnType:
    dtype = series.dtype
    if ptypes.is_bool_dtype(dtype):
        return ColumnType.string
    if ptypes.is_datetime64_any_dtype(dtype):
        return ColumnType.datetime
    if ptypes.is_timedelta64_dtype(dtype):
        return ColumnType.timespan
    if ptypes.is_numeric_dtype(dtype):
        return ColumnType.numeric
    if ptypes.is_string_dtype(dtype):
        non_null = series.dropna()
        if non_null.empty or all(isinstance(value, str) for value in non_null):
            return ColumnType.string
        return ColumnType.object
    if ptypes.is_object_dtype(dtype):
        return ColumnType.object
    return ColumnType.none


class TableSource:
    """Read-only row/column view over a DataFrame used as pivot input."""

    def __init__(self, frame: pd.DataFrame) -> None:
        if frame is None:
            raise ValueError("frame is required")
        self._frame = frame.reset_index(drop=True)
        self._schema: list[tuple[str, ColumnType]] | None = None

    @property
    def frame(self) -> pd.DataFrame:
        return self._frame

    @property
    def rows_count(self) -> int:
        return len(self._frame)

    def schema(self) -> list[tuple[str, ColumnType]]:
        if self._schema is None:
            self._schema = [
                (str(column), _column_type(self._frame[column])) for column in self._frame.columns
            ]
        return list(self._schema)

    def has_column(self, name: str) -> bool:
        return name in self._frame.columns

    def column_type(self, name: str) -> ColumnType:
        for column, column_type in self.schema():
            if column == name:
                return column_type
        raise KeyError(name)

    def get_value(self, row: int, column: int | str) -> Any:
        """Cell value, or None for out-of-range coordinates and missing values."""
        if row < 0 or row >= self.rows_count:
            return None
        if isinstance(column, int):
            if column < 0 or column >= len(self._frame.columns):
                return None
            value = self._frame.iat[row, column]
        else:
            if column not in self._frame.columns:
                return None
            value = self._frame.at[row, column]
        return _none_if_missing(value)

    def iter_rows(self) -> Iterator[tuple[int, pd.Series]]:
        yield from self._frame.iterrows()


def _none_if_missing(value: Any) -> Any:
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        # Array-like cells have no single missing marker.
        return value
    return value
