from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

import numpy as np
import pandas as pd

from time_pivot.binning.auto_binner import catalog_binned_range, target_size_binned_range
from time_pivot.binning.binned_range import BinnedRange
from time_pivot.config import BinningConfig
from time_pivot.timestamps import max_timestamp, min_timestamp
from time_pivot.tree import PivotTree, PivotTreeNode

LOGGER = logging.getLogger(__name__)

BinnedRangeFactory = Callable[[int, pd.Timestamp, pd.Timestamp], BinnedRange]


class TreeBinner:
    """Derives a ``BinnedRange`` for a whole tree from its global time extent.

    Construct with either ``max_bins``/``min_bin_size`` (catalog algorithm) or an
    explicit ``factory(num_points, min, max)``. Attach it with
    ``tree.binner = binner`` to compute heatmaps. A tree without any timestamped
    rows produces no range; attaching such a binner clears the heatmaps.
    """

    def __init__(
        self,
        tree: PivotTree,
        max_bins: int | None = None,
        min_bin_size: pd.Timedelta | None = None,
        *,
        factory: BinnedRangeFactory | None = None,
        including_root: bool = False,
    ) -> None:
        if tree is None:
            raise ValueError("tree is required")
        if factory is None:
            if max_bins is None or min_bin_size is None:
                raise ValueError("Provide either max_bins and min_bin_size, or a factory")
            factory = _catalog_factory(max_bins, pd.Timedelta(min_bin_size))
        elif max_bins is not None or min_bin_size is not None:
            raise ValueError("max_bins/min_bin_size cannot be combined with a factory")

        self._tree = tree
        self.num_rows = 0
        self.min_timestamp: pd.Timestamp | None = None
        self.max_timestamp: pd.Timestamp | None = None
        self._binned_range = self._determine_bins(factory, including_root)

    @classmethod
    def from_config(cls, tree: PivotTree, config: BinningConfig) -> TreeBinner:
        if config.algorithm == "target_size":
            target = pd.Timedelta(
                milliseconds=config.target_bin_size_ms or config.min_bin_size_ms
            )
            return cls(
                tree,
                factory=lambda num_points, min_ts, max_ts: target_size_binned_range(
                    num_points, min_ts, max_ts, config.max_bins, target
                ),
            )
        return cls(
            tree,
            max_bins=config.max_bins,
            min_bin_size=pd.Timedelta(milliseconds=config.min_bin_size_ms),
        )

    @property
    def tree(self) -> PivotTree:
        return self._tree

    @property
    def binned_range(self) -> BinnedRange | None:
        return self._binned_range

    def get_heatmap(self, timestamps: Iterable[pd.Timestamp]) -> np.ndarray:
        if self._binned_range is None:
            raise ValueError("The tree has no timestamped rows to bin")
        return self._binned_range.get_heatmap(timestamps)

    def _determine_bins(
        self, factory: BinnedRangeFactory, including_root: bool
    ) -> BinnedRange | None:
        def _scan(node: PivotTreeNode) -> None:
            if node.row_count == 0:
                return
            self.num_rows += node.row_count
            self.min_timestamp = min_timestamp(self.min_timestamp, node.min_timestamp)
            self.max_timestamp = max_timestamp(self.max_timestamp, node.max_timestamp)
            reported = node.explicit_reported_time_range
            if reported is not None:
                self.min_timestamp = min_timestamp(self.min_timestamp, reported.begin)
                self.max_timestamp = max_timestamp(self.max_timestamp, reported.end)

        self._tree.visit(_scan, including_root=including_root)
        if self.min_timestamp is None or self.max_timestamp is None:
            LOGGER.info("No timestamped rows in tree; heatmaps will be empty")
            return None

        binned_range = factory(self.num_rows, self.min_timestamp, self.max_timestamp)
        LOGGER.info(
            "Binned %s rows over [%s, %s] into %s bins of %s",
            self.num_rows,
            self.min_timestamp,
            self.max_timestamp,
            binned_range.num_bins,
            binned_range.bin_size,
        )
        return binned_range


def _catalog_factory(max_bins: int, min_bin_size: pd.Timedelta) -> BinnedRangeFactory:
    def _factory(num_points: int, min_ts: pd.Timestamp, max_ts: pd.Timestamp) -> BinnedRange:
        return catalog_binned_range(num_points, min_ts, max_ts, max_bins, min_bin_size)

    return _factory
