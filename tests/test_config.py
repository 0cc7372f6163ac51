from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from time_pivot.config import AppConfig, load_config


def test_load_config_defaults_without_path(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("TIME_PIVOT_TABLES_FORMAT", raising=False)

    cfg = load_config(None)

    assert cfg.columns.time is None
    assert cfg.columns.dimensions == []
    assert cfg.binning.algorithm == "catalog"
    assert cfg.binning.max_bins == 100
    assert cfg.binning.min_bin_size_ms == 1000
    assert cfg.tree.propagate_heatmap_to_parent is False
    assert cfg.outputs.tables_format == "csv"


def test_load_config_reads_yaml_sections(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("TIME_PIVOT_TABLES_FORMAT", raising=False)
    config_data = {
        "columns": {"time": "ts", "dimensions": ["region", " ", "host"]},
        "binning": {"algorithm": "target_size", "max_bins": 50, "target_bin_size_ms": 600000},
        "tree": {"propagate_heatmap_to_parent": True},
        "outputs": {"tables_format": "parquet"},
    }
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.safe_dump(config_data), encoding="utf-8")

    cfg = load_config(config_path)

    assert cfg.columns.time == "ts"
    assert cfg.columns.dimensions == ["region", "host"]
    assert cfg.binning.algorithm == "target_size"
    assert cfg.binning.max_bins == 50
    assert cfg.binning.target_bin_size_ms == 600000
    assert cfg.tree.propagate_heatmap_to_parent is True
    assert cfg.outputs.tables_format == "parquet"


def test_load_config_accepts_empty_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("TIME_PIVOT_TABLES_FORMAT", raising=False)
    config_path = tmp_path / "config.yaml"
    config_path.write_text("", encoding="utf-8")

    assert load_config(config_path) == AppConfig()


def test_load_config_uses_env_tables_format(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.safe_dump({"outputs": {"tables_format": "csv"}}), encoding="utf-8")
    monkeypatch.setenv("TIME_PIVOT_TABLES_FORMAT", "parquet")

    cfg = load_config(config_path)

    assert cfg.outputs.tables_format == "parquet"


@pytest.mark.parametrize(
    "config_data",
    [
        {"unknown_section": {}},
        {"binning": {"max_bins": 1001}},
        {"binning": {"max_bins": 0}},
        {"binning": {"algorithm": "fibonacci"}},
        {"binning": {"min_bin_size_ms": 0}},
        {"outputs": {"tables_format": "xlsx"}},
    ],
)
def test_invalid_config_is_rejected(config_data: dict) -> None:
    with pytest.raises(ValidationError):
        AppConfig.model_validate(config_data)


def test_shipped_default_config_is_valid(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("TIME_PIVOT_TABLES_FORMAT", raising=False)
    config_path = Path(__file__).resolve().parents[1] / "configs" / "default.yaml"

    cfg = load_config(config_path)

    assert cfg.columns.time == "timestamp"
    assert cfg.binning.max_bins == 100
