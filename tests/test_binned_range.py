from __future__ import annotations

import pandas as pd
import pytest

from time_pivot.binning.binned_range import NO_BIN, BinnedRange
from time_pivot.errors import InvalidBinnedRangeError
from time_pivot.tree import PivotTree

START = pd.Timestamp("2024-01-01T00:00:00Z")
MINUTE = pd.Timedelta(minutes=1)


def _ten_minutes() -> BinnedRange:
    return BinnedRange(start=START, bin_size=MINUTE, num_bins=10)


def test_map_timestamp_to_bin_uses_half_open_bins() -> None:
    binned = _ten_minutes()

    assert binned.map_timestamp_to_bin(START) == 0
    assert binned.map_timestamp_to_bin(START + pd.Timedelta(seconds=59)) == 0
    assert binned.map_timestamp_to_bin(START + MINUTE) == 1
    assert binned.map_timestamp_to_bin(START + pd.Timedelta(minutes=9, seconds=59)) == 9
    assert binned.map_timestamp_to_bin(START + pd.Timedelta(minutes=10)) == NO_BIN
    assert binned.map_timestamp_to_bin(START - pd.Timedelta(1, unit="ns")) == NO_BIN
    assert binned.map_timestamp_to_bin(START - pd.Timedelta(seconds=30)) == NO_BIN
    assert binned.map_timestamp_to_bin(None) == NO_BIN
    assert binned.map_timestamp_to_bin(pd.NaT) == NO_BIN


def test_map_timestamp_to_bin_is_in_range_exactly_inside_interval() -> None:
    binned = BinnedRange(start=START, bin_size=pd.Timedelta(seconds=7), num_bins=13)
    probe = START - pd.Timedelta(seconds=20)
    while probe < binned.end + pd.Timedelta(seconds=20):
        index = binned.map_timestamp_to_bin(probe)
        in_range = binned.start <= probe < binned.end
        assert (index != NO_BIN) == in_range
        assert binned.contains(probe) == in_range
        assert index == NO_BIN or 0 <= index < binned.num_bins
        probe += pd.Timedelta(milliseconds=2500)


def test_end_and_bin_edges() -> None:
    binned = _ten_minutes()

    assert binned.end == pd.Timestamp("2024-01-01T00:10:00Z")
    edges = binned.bin_edges()
    assert len(edges) == 11
    assert edges[0] == START
    assert edges[-1] == binned.end
    assert binned.bin_start(3) == pd.Timestamp("2024-01-01T00:03:00Z")
    with pytest.raises(IndexError):
        binned.bin_start(10)


def test_naive_start_is_treated_as_utc() -> None:
    binned = BinnedRange(start=pd.Timestamp("2024-01-01"), bin_size=MINUTE, num_bins=2)

    assert binned.start == START
    assert binned.map_timestamp_to_bin(START + MINUTE) == 1


@pytest.mark.parametrize(
    ("start", "bin_size", "num_bins"),
    [
        (START, pd.Timedelta(0), 5),
        (START, pd.Timedelta(seconds=-1), 5),
        (START, MINUTE, 0),
        (START, MINUTE, -3),
        (START, MINUTE, 2**31 - 1),
        (START, MINUTE, 2.7),
        (START, MINUTE, "3"),
        (START, MINUTE, True),
        (pd.NaT, MINUTE, 5),
        (pd.Timestamp("2262-04-01T00:00:00Z"), pd.Timedelta(days=1), 30),
    ],
)
def test_invalid_parameters_are_rejected(start, bin_size, num_bins) -> None:
    with pytest.raises(InvalidBinnedRangeError):
        BinnedRange(start=start, bin_size=bin_size, num_bins=num_bins)


def test_whole_float_bin_count_is_stored_as_int() -> None:
    binned = BinnedRange(start=START, bin_size=MINUTE, num_bins=3.0)

    assert binned.num_bins == 3
    assert isinstance(binned.num_bins, int)


def test_end_of_range_wider_than_largest_timedelta() -> None:
    start = pd.Timestamp("1700-01-01T00:00:00Z")
    binned = BinnedRange(start=start, bin_size=pd.Timedelta(days=7), num_bins=29_000)

    assert binned.end == pd.Timestamp(start.value + pd.Timedelta(days=7).value * 29_000, tz="UTC")
    assert binned.bin_start(28_999) == binned.end - pd.Timedelta(days=7)
    assert binned.map_timestamp_to_bin(pd.Timestamp("2250-01-01T00:00:00Z")) != NO_BIN


def test_invalid_binned_range_error_is_value_error() -> None:
    with pytest.raises(ValueError):
        BinnedRange(start=START, bin_size=MINUTE, num_bins=0)


def test_get_heatmap_counts_in_range_timestamps_only() -> None:
    binned = _ten_minutes()
    timestamps = [
        START,
        START + pd.Timedelta(seconds=30),
        START + pd.Timedelta(minutes=4),
        START + pd.Timedelta(minutes=9, seconds=1),
        START - MINUTE,
        START + pd.Timedelta(hours=1),
    ]

    heatmap = binned.get_heatmap(timestamps)

    assert heatmap.tolist() == [2, 0, 0, 0, 1, 0, 0, 0, 0, 1]
    assert int(heatmap.sum()) == 4


def test_get_heatmap_of_nothing_is_all_zero() -> None:
    binned = _ten_minutes()

    assert binned.get_heatmap(None).tolist() == [0] * 10
    assert binned.get_heatmap([]).tolist() == [0] * 10


def test_get_row_ids_by_bin_drills_down_to_rows() -> None:
    tree = PivotTree()
    node = tree.add_or_get_child(tree.root, "region", "US")
    node.add_row(START + pd.Timedelta(seconds=5), {"id": "a"}, 0)
    node.add_row(START + pd.Timedelta(minutes=2), {"id": "b"}, 3)
    node.add_row(START + pd.Timedelta(seconds=50), {"id": "c"}, 7)
    binned = _ten_minutes()

    assert binned.get_row_ids_by_bin(0, node) == [0, 7]
    assert binned.get_row_ids_by_bin(2, node) == [3]
    assert binned.get_row_ids_by_bin(5, node) == []
    assert binned.get_row_ids_by_bin(-1, node) == []
    assert binned.get_row_ids_by_bin(10, node) == []
    assert binned.get_row_ids_by_bin(0, tree.root) == []
