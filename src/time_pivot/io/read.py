from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd

from time_pivot.config import AppConfig

LOGGER = logging.getLogger(__name__)


def load_table(path: Path) -> pd.DataFrame:
    if path.suffix == ".parquet":
        return pd.read_parquet(path)
    if path.suffix == ".csv":
        # utf-8-sig strips BOM-prefixed headers commonly found in exported CSV files.
        return pd.read_csv(path, encoding="utf-8-sig")
    raise ValueError(f"Unsupported table file type: {path.suffix}")


def parse_time_column(df: pd.DataFrame, column: str) -> pd.DataFrame:
    """Parse ``column`` to UTC timestamps; unparseable cells become NaT."""
    if column not in df.columns:
        raise ValueError(f"Missing time column in table: {column}")
    working = df.copy()
    timestamps = pd.to_datetime(working[column], errors="coerce", utc=True)
    invalid = int(timestamps.isna().sum())
    if invalid:
        LOGGER.info("Column %s has %s rows without a valid timestamp", column, invalid)
    if timestamps.isna().all() and len(timestamps):
        raise ValueError(f"No valid timestamps found in {column} column")
    working[column] = timestamps
    return working


def load_source(path: Path, config: AppConfig) -> pd.DataFrame:
    """Load a table and parse its configured time column, if any.

    CSV files carry no column types, so the time column has to be configured
    for the pivot to find it.
    """
    df = load_table(path)
    if config.columns.time:
        df = parse_time_column(df, config.columns.time)
    return df
