from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import pandas as pd

from time_pivot.binning.tree_binner import TreeBinner
from time_pivot.config import AppConfig
from time_pivot.export import heatmap_frame, node_summary_frame
from time_pivot.io.read import load_source
from time_pivot.io.source import TableSource
from time_pivot.io.write import write_summary, write_table
from time_pivot.paths import build_output_paths
from time_pivot.pivot import TimePivot
from time_pivot.tree import PivotTree

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class PivotRunResult:
    tree: PivotTree
    binner: TreeBinner
    heatmap_path: Path
    nodes_path: Path
    summary_path: Path


def build_binned_tree(
    frame: pd.DataFrame, config: AppConfig
) -> tuple[TimePivot, PivotTree, TreeBinner]:
    """Pivot ``frame`` by the configured dimensions and attach a binner to the tree."""
    pivot = TimePivot(TableSource(frame), time_column=config.columns.time)
    tree = pivot.pivot_by(config.columns.dimensions)
    tree.propagate_heatmap_to_parent = config.tree.propagate_heatmap_to_parent
    binner = TreeBinner.from_config(tree, config.binning)
    tree.binner = binner
    return pivot, tree, binner


def binning_summary(tree: PivotTree, binner: TreeBinner, time_column: str) -> dict[str, object]:
    binned_range = binner.binned_range
    return {
        "time_column": time_column,
        "n_rows": binner.num_rows,
        "n_nodes": tree.node_count,
        "min_timestamp": binner.min_timestamp,
        "max_timestamp": binner.max_timestamp,
        "start": binned_range.start if binned_range is not None else None,
        "bin_size_ms": (
            binned_range.bin_size.value // 1_000_000 if binned_range is not None else None
        ),
        "num_bins": binned_range.num_bins if binned_range is not None else 0,
        "propagated": tree.propagate_heatmap_to_parent,
    }


def run_pivot(input_path: Path, out_dir: Path, config: AppConfig) -> PivotRunResult:
    paths = build_output_paths(out_dir)
    frame = load_source(input_path, config)
    pivot, tree, binner = build_binned_tree(frame, config)

    fmt = config.outputs.tables_format
    heatmap_path = write_table(heatmap_frame(tree), paths.table("heatmap", fmt), fmt=fmt)
    nodes_path = write_table(node_summary_frame(tree), paths.table("nodes", fmt), fmt=fmt)
    summary_path = write_summary(
        binning_summary(tree, binner, pivot.time_column),
        paths.summary / "binning.json",
    )
    LOGGER.info("Wrote pivot outputs to %s", paths.root)
    return PivotRunResult(
        tree=tree,
        binner=binner,
        heatmap_path=heatmap_path,
        nodes_path=nodes_path,
        summary_path=summary_path,
    )
