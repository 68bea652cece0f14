from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Sequence

import polars as pl
import structlog

from ..schemas import require_columns


logger = structlog.get_logger(__name__)

_REDUCTIONS = ("mean", "sum")


@dataclass(frozen=True)
class MetricSpec:
    """Named per-entity reduction of a per-play column."""

    name: str
    column: str
    how: str = "mean"

    def __post_init__(self) -> None:
        if self.how not in _REDUCTIONS:
            raise ValueError(f"Unsupported reduction {self.how!r}; expected one of {_REDUCTIONS}")

    def expr(self) -> pl.Expr:
        col = pl.col(self.column)
        return (col.mean() if self.how == "mean" else col.sum()).alias(self.name)


def normalize_pbp(df: pl.DataFrame) -> pl.DataFrame:
    # IDs as strings so joins never mix dtypes across seasons
    for col in df.columns:
        if col.endswith("_id") and col not in ("play_id",):
            df = df.with_columns(pl.col(col).cast(pl.Utf8).alias(col))
    if "season" in df.columns:
        df = df.with_columns(pl.col("season").cast(pl.Int64, strict=False))
    # Entirely-null columns come back as Null dtype from some seasons
    null_cols = [name for name, dtype in df.schema.items() if dtype == pl.Null]
    if null_cols:
        df = df.with_columns([pl.col(c).cast(pl.Utf8) for c in null_cols])
    return df


def _fill_column(df: pl.DataFrame, column: str, value: Optional[float]) -> pl.DataFrame:
    if value is None:
        return df
    return df.with_columns(pl.col(column).fill_null(value).alias(column))


def prepare_passing_plays(
    pbp: pl.DataFrame,
    long_pass_air_yards: float = 20,
    fill_missing_yards: Optional[float] = 0.0,
) -> pl.DataFrame:
    """Pass plays with a recorded air distance, split into long/short throws.

    Incompletions carry no ``passing_yards`` upstream; by default they count as
    zero-yard attempts.
    """
    require_columns(pbp, ["play_type", "passer_id", "passer", "season", "air_yards", "passing_yards"], table="pbp")
    plays = normalize_pbp(pbp).filter(
        (pl.col("play_type") == "pass") & pl.col("air_yards").is_not_null() & pl.col("passer_id").is_not_null()
    )
    plays = plays.with_columns(
        pl.when(pl.col("air_yards") >= long_pass_air_yards)
        .then(pl.lit("long"))
        .otherwise(pl.lit("short"))
        .alias("pass_length_air_yards"),
        pl.col("passing_yards").cast(pl.Float64),
    )
    plays = _fill_column(plays, "passing_yards", fill_missing_yards)
    logger.debug("passing_plays_prepared", rows=plays.height, cutoff=long_pass_air_yards)
    return plays


def prepare_rushing_plays(pbp: pl.DataFrame, fill_missing_yards: Optional[float] = 0.0) -> pl.DataFrame:
    require_columns(pbp, ["play_type", "rusher_id", "rusher", "season", "rushing_yards"], table="pbp")
    plays = normalize_pbp(pbp).filter((pl.col("play_type") == "run") & pl.col("rusher_id").is_not_null())
    plays = plays.with_columns(pl.col("rushing_yards").cast(pl.Float64))
    plays = _fill_column(plays, "rushing_yards", fill_missing_yards)
    logger.debug("rushing_plays_prepared", rows=plays.height)
    return plays


def aggregate_entity_periods(
    df: pl.DataFrame,
    keys: Sequence[str],
    metrics: Sequence[MetricSpec],
    min_count: int,
    fill_missing: Optional[Dict[str, float]] = None,
    count_column: str = "n",
) -> pl.DataFrame:
    """Reduce plays to one row per grouping key and drop small samples.

    ``count_column`` is the number of plays in the group. Nulls are skipped by
    each reduction independently unless ``fill_missing`` maps the column to a
    value, which is applied before grouping.
    """
    if int(min_count) != min_count or min_count < 1:
        raise ValueError(f"min_count must be a positive integer, got {min_count!r}")
    keys = list(keys)
    if not keys:
        raise ValueError("keys must not be empty")
    if not metrics:
        raise ValueError("at least one metric is required")
    names = [m.name for m in metrics] + [count_column]
    if len(set(names)) != len(names) or set(names) & set(keys):
        raise ValueError(f"metric names must be unique and distinct from keys: {names}")
    require_columns(df, keys + [m.column for m in metrics] + list(fill_missing or {}), table="observations")

    for column, value in (fill_missing or {}).items():
        df = _fill_column(df, column, value)

    agg = (
        df.group_by(keys)
        .agg([pl.len().cast(pl.Int64).alias(count_column)] + [m.expr() for m in metrics])
        .filter(pl.col(count_column) >= min_count)
        .sort(keys, nulls_last=True)
    )
    logger.debug("entity_periods_aggregated", groups=agg.height, min_count=min_count, keys=keys)
    return agg
