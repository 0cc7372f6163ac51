from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
import pandas as pd

from time_pivot.errors import InvalidBinnedRangeError

if TYPE_CHECKING:
    from time_pivot.tree import PivotTreeNode

NO_BIN = -1
MAX_NUM_BINS = 2**31 - 1


@dataclass(frozen=True)
class BinnedRange:
    """A half-open time interval ``[start, start + bin_size * num_bins)`` split into equal bins."""

    start: pd.Timestamp
    bin_size: pd.Timedelta
    num_bins: int

    def __post_init__(self) -> None:
        start = self.start
        if not isinstance(start, pd.Timestamp) or pd.isna(start):
            raise InvalidBinnedRangeError("Range accepts only valid timestamp values for start")
        if start.tz is None:
            object.__setattr__(self, "start", start.tz_localize("UTC"))
        bin_size = pd.Timedelta(self.bin_size)
        if pd.isna(bin_size) or bin_size.value <= 0:
            raise InvalidBinnedRangeError("Range does not accept zero-sized or negative bins")
        object.__setattr__(self, "bin_size", bin_size)
        num_bins = _whole_number(self.num_bins)
        if num_bins is None or num_bins <= 0 or num_bins >= MAX_NUM_BINS:
            raise InvalidBinnedRangeError(
                f"Range accepts only a valid non-zero number of bins, got {self.num_bins}"
            )
        object.__setattr__(self, "num_bins", num_bins)
        if start.value + bin_size.value * num_bins >= pd.Timestamp.max.value:
            raise InvalidBinnedRangeError(
                "Range mandates that the entire range be representable as timestamps"
            )

    @property
    def end(self) -> pd.Timestamp:
        """Exclusive upper bound of the last bin."""
        return self._offset(self.num_bins)

    def contains(self, timestamp: pd.Timestamp) -> bool:
        return self.map_timestamp_to_bin(timestamp) != NO_BIN

    def map_timestamp_to_bin(self, timestamp: pd.Timestamp | None) -> int:
        """Bin index of ``timestamp``, or ``NO_BIN`` when it falls outside the range."""
        if timestamp is None or pd.isna(timestamp):
            return NO_BIN
        offset = pd.Timestamp(timestamp).value - self.start.value
        if offset < 0:
            return NO_BIN
        index = offset // self.bin_size.value
        if index >= self.num_bins:
            return NO_BIN
        return int(index)

    def get_heatmap(self, timestamps: Iterable[pd.Timestamp] | None) -> np.ndarray:
        """Count how many of ``timestamps`` land in each bin; out-of-range values are ignored."""
        heatmap = np.zeros(self.num_bins, dtype=np.int64)
        if timestamps is None:
            return heatmap
        values = np.fromiter(
            (pd.Timestamp(timestamp).value for timestamp in timestamps if not pd.isna(timestamp)),
            dtype=np.int64,
        )
        if values.size == 0:
            return heatmap
        start = self.start.value
        in_range = (values >= start) & (values < self.end.value)
        bins = (values[in_range] - start) // self.bin_size.value
        heatmap += np.bincount(bins, minlength=self.num_bins)[: self.num_bins]
        return heatmap

    def get_row_ids_by_bin(self, bin_index: int, node: PivotTreeNode) -> list[int]:
        """Row ids of ``node`` whose timestamps map to ``bin_index``."""
        if node is None:
            raise ValueError("node is required")
        if bin_index < 0 or bin_index >= self.num_bins:
            return []
        return [
            row_id
            for timestamp, row_id in zip(node.timestamps, node.row_ids)
            if self.map_timestamp_to_bin(timestamp) == bin_index
        ]

    def bin_start(self, bin_index: int) -> pd.Timestamp:
        if bin_index < 0 or bin_index >= self.num_bins:
            raise IndexError(f"Bin {bin_index} is outside of [0, {self.num_bins})")
        return self._offset(bin_index)

    def _offset(self, num_bins: int) -> pd.Timestamp:
        # Integer nanoseconds: the product can exceed the Timedelta range.
        return pd.Timestamp(self.start.value + self.bin_size.value * num_bins, tz="UTC")

    def bin_edges(self) -> pd.DatetimeIndex:
        return pd.date_range(start=self.start, periods=self.num_bins + 1, freq=self.bin_size)


def _whole_number(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if number == value else None
