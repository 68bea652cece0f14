from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import polars as pl

from ..schemas import require_columns


@dataclass
class StabilityReport:
    aggregates: pl.DataFrame
    paired: pl.DataFrame
    results: pl.DataFrame


def leaderboard(
    agg: pl.DataFrame,
    metric: str,
    season: Optional[int] = None,
    top: int = 10,
    descending: bool = True,
) -> pl.DataFrame:
    require_columns(agg, [metric] + (["season"] if season is not None else []), table="aggregate table")
    rows = agg if season is None else agg.filter(pl.col("season") == season)
    return rows.sort(metric, descending=descending, nulls_last=True).head(top)
