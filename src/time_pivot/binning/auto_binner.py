from __future__ import annotations

import logging

import pandas as pd

from time_pivot.binning.binned_range import BinnedRange
from time_pivot.config import MAX_BINS_CAP
from time_pivot.timestamps import to_utc_timestamp

LOGGER = logging.getLogger(__name__)

MIN_BIN_SIZE = pd.Timedelta(milliseconds=1)

# Ascending "round" bin widths the catalog algorithm may pick from.
BIN_SIZE_CATALOG: tuple[pd.Timedelta, ...] = (
    pd.Timedelta(milliseconds=1),
    pd.Timedelta(milliseconds=10),
    pd.Timedelta(milliseconds=100),
    pd.Timedelta(seconds=1),
    pd.Timedelta(seconds=5),
    pd.Timedelta(seconds=10),
    pd.Timedelta(seconds=15),
    pd.Timedelta(seconds=20),
    pd.Timedelta(seconds=30),
    pd.Timedelta(minutes=1),
    pd.Timedelta(minutes=5),
    pd.Timedelta(minutes=10),
    pd.Timedelta(minutes=15),
    pd.Timedelta(minutes=20),
    pd.Timedelta(minutes=30),
    pd.Timedelta(hours=1),
    pd.Timedelta(hours=3),
    pd.Timedelta(hours=6),
    pd.Timedelta(hours=12),
    pd.Timedelta(days=1),
    pd.Timedelta(days=7),
)


# Exclusive upper bound for a range end; BinnedRange requires end < Timestamp.max.
_MAX_END_NS = pd.Timestamp.max.value
_MIN_START_NS = pd.Timestamp.min.value
_MAX_BIN_SIZE_NS = pd.Timedelta.max.value


def _floor_to_multiple(timestamp_ns: int, bin_size_ns: int) -> int:
    floored = (timestamp_ns // bin_size_ns) * bin_size_ns
    return max(floored, _MIN_START_NS)


def _ceil_div(numerator: int, denominator: int) -> int:
    return -(-numerator // denominator)


def _fits(start_ns: int, bin_size_ns: int, num_bins: int) -> bool:
    return bin_size_ns <= _MAX_BIN_SIZE_NS and start_ns + bin_size_ns * num_bins < _MAX_END_NS


def _binned_range(start_ns: int, bin_size_ns: int, num_bins: int) -> BinnedRange:
    return BinnedRange(
        start=pd.Timestamp(start_ns, tz="UTC"),
        bin_size=pd.Timedelta(bin_size_ns, unit="ns"),
        num_bins=num_bins,
    )


def _require_timestamps(
    min_ts: pd.Timestamp, max_ts: pd.Timestamp
) -> tuple[pd.Timestamp, pd.Timestamp]:
    min_utc = to_utc_timestamp(min_ts)
    max_utc = to_utc_timestamp(max_ts)
    if min_utc is None or max_utc is None:
        raise ValueError("min_ts and max_ts must be valid timestamps")
    return min_utc, max_utc


def single_bin_range(min_ts: pd.Timestamp, max_ts: pd.Timestamp) -> BinnedRange:
    """One bin covering ``[min_ts, max_ts]`` (in either order), at least one millisecond wide.

    Spans wider than the largest ``Timedelta`` are split into the fewest equal
    bins that fit, and the range is cut short where it would run past
    ``Timestamp.max``.
    """
    min_ts, max_ts = _require_timestamps(min_ts, max_ts)
    begin_ns = min(min_ts.value, max_ts.value)
    # The single bin is half-open, so it must extend past the later timestamp.
    width_ns = max(abs(max_ts.value - min_ts.value) + 1, MIN_BIN_SIZE.value)
    room_ns = _MAX_END_NS - 1 - begin_ns
    if room_ns < MIN_BIN_SIZE.value:
        # Pinned against Timestamp.max: use its last representable millisecond.
        begin_ns = _MAX_END_NS - 1 - MIN_BIN_SIZE.value
        room_ns = MIN_BIN_SIZE.value
    width_ns = min(width_ns, room_ns)

    num_bins = _ceil_div(width_ns, _MAX_BIN_SIZE_NS)
    bin_size_ns = _ceil_div(width_ns, num_bins)
    if bin_size_ns * num_bins > room_ns:
        bin_size_ns = room_ns // num_bins
    return _binned_range(begin_ns, bin_size_ns, num_bins)


def catalog_binned_range(
    num_points: int,
    min_ts: pd.Timestamp,
    max_ts: pd.Timestamp,
    max_bins: int,
    min_bin_size: pd.Timedelta,
) -> BinnedRange:
    """Pick a round bin width from ``BIN_SIZE_CATALOG`` to cover ``[min_ts, max_ts]``.

    The width is the smallest catalog entry that is at least ``span / n`` where
    ``n`` is the largest bin count allowed by both ``max_bins`` and
    ``min_bin_size``. The start is ``min_ts`` floored to a multiple of the width.
    Degenerate input (fewer than two points, reversed or empty range) and ranges
    that would end past ``Timestamp.max`` fall back to ``single_bin_range``.
    """
    min_ts, max_ts = _require_timestamps(min_ts, max_ts)
    if num_points <= 1 or max_ts <= min_ts or max_bins < 1:
        LOGGER.debug(
            "Degenerate binning input (points=%s, min=%s, max=%s); using a single bin",
            num_points,
            min_ts,
            max_ts,
        )
        return single_bin_range(min_ts, max_ts)

    max_bins = min(max_bins, MAX_BINS_CAP)
    min_bin_size_ns = max(pd.Timedelta(min_bin_size).value, MIN_BIN_SIZE.value)

    span_ns = max_ts.value - min_ts.value
    max_number_of_bins = max(1, min(max_bins, span_ns // min_bin_size_ns))
    candidate_ns = span_ns // max_number_of_bins

    bin_size_ns = BIN_SIZE_CATALOG[-1].value
    for size in BIN_SIZE_CATALOG:
        if size.value >= candidate_ns:
            bin_size_ns = size.value
            break

    start_ns = _floor_to_multiple(min_ts.value, bin_size_ns)
    num_bins = 1 + _ceil_div(max_ts.value - start_ns, bin_size_ns)
    if not _fits(start_ns, bin_size_ns, num_bins):
        LOGGER.debug("Catalog bins run past the timestamp domain; using a single bin")
        return single_bin_range(min_ts, max_ts)
    return _binned_range(start_ns, bin_size_ns, num_bins)


def target_size_binned_range(
    num_points: int,
    min_ts: pd.Timestamp,
    max_ts: pd.Timestamp,
    max_bins: int,
    target_bin_size: pd.Timedelta,
) -> BinnedRange:
    """Bins of roughly ``target_bin_size``, starting at ``min_ts`` floored to that size.

    Uses ``clamp(1, max_bins, span / target_bin_size)`` bins, each the larger of
    the target size and ``ceil(span / num_bins)``. When the resulting range would
    end exactly at ``max_ts`` one more bin is added, or with ``max_bins`` already
    reached the width grows by a nanosecond, so the latest point stays in range.
    """
    min_ts, max_ts = _require_timestamps(min_ts, max_ts)
    target_bin_size = pd.Timedelta(target_bin_size)
    if max_ts < min_ts or num_points <= 0 or max_bins < 1 or target_bin_size < MIN_BIN_SIZE:
        return single_bin_range(min_ts, max_ts)

    target_ns = target_bin_size.value
    start_ns = _floor_to_multiple(min_ts.value, target_ns)
    span_ns = max_ts.value - start_ns
    num_bins = max(1, min(max_bins, span_ns // target_ns))
    bin_size_ns = max(target_ns, _ceil_div(span_ns, num_bins))
    if start_ns + bin_size_ns * num_bins <= max_ts.value:
        if num_bins < max_bins:
            num_bins += 1
        else:
            bin_size_ns += 1
    if not _fits(start_ns, bin_size_ns, num_bins):
        LOGGER.debug("Target-size bins run past the timestamp domain; using a single bin")
        return single_bin_range(min_ts, max_ts)
    return _binned_range(start_ns, bin_size_ns, int(num_bins))
