from __future__ import annotations

from typing import Optional, Sequence

import polars as pl

from .schemas import require_columns


def describe_metrics(agg: pl.DataFrame, metrics: Sequence[str], by: Optional[Sequence[str]] = None) -> pl.DataFrame:
    """Summary statistics per metric, optionally split by ``by``.

    One row per (group, metric) with count, mean, std, min, quartiles and max.
    """
    by = list(by or [])
    require_columns(agg, by + list(metrics), table="aggregate table")
    frames = []
    for metric in metrics:
        col = pl.col(metric).cast(pl.Float64)
        aggs = [
            col.count().cast(pl.Int64).alias("count"),
            col.mean().alias("mean"),
            col.std().alias("std"),
            col.min().alias("min"),
            col.quantile(0.25, interpolation="linear").alias("p25"),
            col.median().alias("p50"),
            col.quantile(0.75, interpolation="linear").alias("p75"),
            col.max().alias("max"),
        ]
        stats = agg.group_by(by).agg(aggs) if by else agg.select(aggs)
        frames.append(stats.with_columns(pl.lit(metric).alias("metric")))
    out = pl.concat(frames, how="vertical")
    out = out.select(by + ["metric"] + [c for c in out.columns if c not in by and c != "metric"])
    return out.sort(by + ["metric"])
