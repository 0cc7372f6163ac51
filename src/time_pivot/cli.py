from __future__ import annotations

from pathlib import Path

import pandas as pd
import typer

from time_pivot.auto_pivot import DimensionalAutoPivot
from time_pivot.binning.auto_binner import catalog_binned_range, target_size_binned_range
from time_pivot.config import DEFAULT_CONFIG_PATH, AppConfig, load_config
from time_pivot.io.read import load_source
from time_pivot.io.source import TableSource
from time_pivot.io.write import TABLE_FORMATS
from time_pivot.logging import configure_logging
from time_pivot.pipeline import run_pivot
from time_pivot.timestamps import to_utc_timestamp

app = typer.Typer(no_args_is_help=True, add_completion=False)


def _load_app_config(config_path: Path | None) -> AppConfig:
    if config_path is None and DEFAULT_CONFIG_PATH.exists():
        config_path = DEFAULT_CONFIG_PATH
    return load_config(config_path)


def _apply_overrides(
    cfg: AppConfig,
    by: list[str] | None,
    time_column: str | None,
    propagate: bool | None,
    tables_format: str | None,
) -> None:
    if by:
        cfg.columns.dimensions = list(by)
    if time_column:
        cfg.columns.time = time_column
    if propagate is not None:
        cfg.tree.propagate_heatmap_to_parent = propagate
    if tables_format:
        cfg.outputs.tables_format = tables_format


@app.command()
def pivot(
    input_path: Path = typer.Option(..., "--input", exists=True, readable=True, resolve_path=True),
    out: Path = typer.Option(Path("out"), resolve_path=True),
    config: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
    by: list[str] | None = typer.Option(
        None,
        help="Dimension column to pivot by; repeat for deeper trees. Overrides columns.dimensions.",
    ),
    time_column: str | None = typer.Option(None, help="Overrides columns.time."),
    propagate: bool | None = typer.Option(
        None,
        "--propagate/--no-propagate",
        help="Sum child heatmaps into their parents.",
    ),
    tables_format: str | None = typer.Option(None, "--format", help="csv or parquet."),
) -> None:
    """Pivot a table by dimension columns and write per-node time heatmaps."""
    if tables_format is not None and tables_format not in TABLE_FORMATS:
        raise typer.BadParameter(f"--format must be one of: {', '.join(TABLE_FORMATS)}")
    configure_logging()
    cfg = _load_app_config(config)
    _apply_overrides(cfg, by, time_column, propagate, tables_format)
    if not cfg.columns.dimensions:
        raise typer.BadParameter("Provide --by or set columns.dimensions in config")
    if not cfg.columns.time:
        raise typer.BadParameter(
            "Missing time column. Set --time-column or columns.time in config."
        )
    try:
        result = run_pivot(input_path=input_path, out_dir=out, config=cfg)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    binned_range = result.binner.binned_range
    typer.echo("Pivot complete")
    typer.echo(f"- nodes: {result.tree.node_count}")
    typer.echo(f"- rows: {result.binner.num_rows}")
    typer.echo(f"- bins: {binned_range.num_bins if binned_range is not None else 0}")
    if binned_range is not None:
        typer.echo(f"- bin_size: {binned_range.bin_size}")
    typer.echo(f"- heatmap: {result.heatmap_path}")
    typer.echo(f"- nodes_table: {result.nodes_path}")


@app.command()
def suggest(
    input_path: Path = typer.Option(..., "--input", exists=True, readable=True, resolve_path=True),
    config: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
) -> None:
    """Suggest a dimension column to pivot by."""
    configure_logging()
    cfg = _load_app_config(config)
    frame = load_source(input_path, cfg)
    columns = DimensionalAutoPivot(TableSource(frame)).determine_columns_to_pivot_by()
    if not columns:
        typer.echo("No suitable pivot column found")
        return
    typer.echo(f"Suggested pivot columns: {', '.join(columns)}")


@app.command()
def bins(
    start: str = typer.Option(..., help="Earliest timestamp (ISO 8601)."),
    end: str = typer.Option(..., help="Latest timestamp (ISO 8601)."),
    points: int = typer.Option(..., min=0),
    max_bins: int = typer.Option(100, min=1, max=1000),
    min_bin_size_ms: int = typer.Option(1000, min=1),
    target_bin_size_ms: int | None = typer.Option(
        None,
        min=1,
        help="Use the target-size algorithm with this approximate bin width.",
    ),
) -> None:
    """Show the bins chosen for a time span."""
    min_ts = to_utc_timestamp(start)
    max_ts = to_utc_timestamp(end)
    if min_ts is None or max_ts is None:
        raise typer.BadParameter("--start and --end must be valid timestamps")

    if target_bin_size_ms is None:
        binned_range = catalog_binned_range(
            points, min_ts, max_ts, max_bins, pd.Timedelta(milliseconds=min_bin_size_ms)
        )
    else:
        binned_range = target_size_binned_range(
            points, min_ts, max_ts, max_bins, pd.Timedelta(milliseconds=target_bin_size_ms)
        )
    typer.echo(f"- start: {binned_range.start.isoformat()}")
    typer.echo(f"- bin_size: {binned_range.bin_size}")
    typer.echo(f"- num_bins: {binned_range.num_bins}")
    typer.echo(f"- end: {binned_range.end.isoformat()}")


if __name__ == "__main__":
    app()
