from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_BINS_CAP = 1000


class ColumnsConfig(BaseModel):
    time: str | None = None
    dimensions: list[str] = Field(default_factory=list)

    @field_validator("dimensions")
    @classmethod
    def _strip_blank_dimensions(cls, value: list[str]) -> list[str]:
        return [column for column in value if str(column).strip()]


class BinningConfig(BaseModel):
    algorithm: Literal["catalog", "target_size"] = "catalog"
    max_bins: int = Field(default=100, ge=1, le=MAX_BINS_CAP)
    min_bin_size_ms: int = Field(default=1000, ge=1)
    target_bin_size_ms: int | None = Field(default=None, ge=1)


class TreeConfig(BaseModel):
    propagate_heatmap_to_parent: bool = False


class OutputsConfig(BaseModel):
    tables_format: Literal["parquet", "csv"] = "csv"


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    columns: ColumnsConfig = Field(default_factory=ColumnsConfig)
    binning: BinningConfig = Field(default_factory=BinningConfig)
    tree: TreeConfig = Field(default_factory=TreeConfig)
    outputs: OutputsConfig = Field(default_factory=OutputsConfig)


DEFAULT_CONFIG_PATH = Path("configs/default.yaml")


def load_config(path: Path | None) -> AppConfig:
    data: dict = {}
    if path is not None:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}

    config = AppConfig.model_validate(data)
    env_format = os.getenv("TIME_PIVOT_TABLES_FORMAT")
    if env_format:
        config.outputs = OutputsConfig.model_validate({"tables_format": env_format})
    return config
