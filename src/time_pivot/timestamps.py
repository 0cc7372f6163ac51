from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

import numpy as np
import pandas as pd

UTC = "UTC"


@dataclass(frozen=True)
class TimeRange:
    begin: pd.Timestamp
    end: pd.Timestamp

    def __post_init__(self) -> None:
        if self.end < self.begin:
            raise ValueError(f"Time range ends before it begins: {self.begin} > {self.end}")


def to_utc_timestamp(value: Any) -> pd.Timestamp | None:
    """Coerce a cell value to a UTC ``pd.Timestamp``; None when absent or unparseable.

    Naive values are taken to already be UTC.
    """
    if value is None or isinstance(value, bool):
        return None
    if not isinstance(value, (pd.Timestamp, datetime, np.datetime64, str)):
        return None
    try:
        timestamp = pd.Timestamp(value)
    except (TypeError, ValueError):
        return None
    if pd.isna(timestamp):
        return None
    if timestamp.tz is None:
        return timestamp.tz_localize(UTC)
    return timestamp.tz_convert(UTC)


def min_timestamp(left: pd.Timestamp | None, right: pd.Timestamp | None) -> pd.Timestamp | None:
    if left is None:
        return right
    if right is None:
        return left
    return min(left, right)


def max_timestamp(left: pd.Timestamp | None, right: pd.Timestamp | None) -> pd.Timestamp | None:
    if left is None:
        return right
    if right is None:
        return left
    return max(left, right)
