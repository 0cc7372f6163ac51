from __future__ import annotations

from collections.abc import Iterator

import pandas as pd

from time_pivot.tree import PivotTree, PivotTreeNode

HEATMAP_COLUMNS = [
    "path",
    "depth",
    "name",
    "value",
    "category",
    "bin",
    "bin_start",
    "count",
]

NODE_COLUMNS = [
    "path",
    "depth",
    "name",
    "value",
    "category",
    "n_rows",
    "n_children",
    "min_timestamp",
    "max_timestamp",
    "reported_begin",
    "reported_end",
]


def node_path_label(node: PivotTreeNode) -> str:
    return "/".join(f"{name}={value}" for name, value in node.path)


def _labelled_nodes(tree: PivotTree) -> Iterator[tuple[PivotTreeNode, str]]:
    """Pre-order nodes with their path labels, each built from its parent's label."""
    labels: dict[PivotTreeNode, str] = {tree.root: ""}
    for node in tree.iter_nodes():
        prefix = labels[node.parent]
        segment = f"{node.name}={node.raw_value}"
        label = f"{prefix}/{segment}" if prefix else segment
        labels[node] = label
        yield node, label


def heatmap_frame(tree: PivotTree) -> pd.DataFrame:
    """Long-form heatmap table: one row per (node, bin) for nodes with a heatmap."""
    binned_range = tree.binned_range
    if binned_range is None:
        return pd.DataFrame(columns=HEATMAP_COLUMNS)

    bin_starts = binned_range.bin_edges()[:-1]
    frames: list[pd.DataFrame] = []
    for node, label in _labelled_nodes(tree):
        if node.heatmap is None:
            continue
        frames.append(
            pd.DataFrame(
                {
                    "path": label,
                    "depth": node.depth,
                    "name": node.name,
                    "value": node.value,
                    "category": node.category,
                    "bin": range(binned_range.num_bins),
                    "bin_start": bin_starts,
                    "count": node.heatmap,
                }
            )
        )
    if not frames:
        return pd.DataFrame(columns=HEATMAP_COLUMNS)
    return pd.concat(frames, ignore_index=True)[HEATMAP_COLUMNS]


def node_summary_frame(tree: PivotTree) -> pd.DataFrame:
    records: list[dict[str, object]] = []
    for node, label in _labelled_nodes(tree):
        reported = node.reported_time_range
        records.append(
            {
                "path": label,
                "depth": node.depth,
                "name": node.name,
                "value": node.value,
                "category": node.category,
                "n_rows": node.row_count,
                "n_children": len(node.children),
                "min_timestamp": node.min_timestamp,
                "max_timestamp": node.max_timestamp,
                "reported_begin": reported.begin if reported is not None else None,
                "reported_end": reported.end if reported is not None else None,
            }
        )
    return pd.DataFrame.from_records(records, columns=NODE_COLUMNS)
