# pyright: reportMissingImports=false, reportMissingModuleSource=false
from __future__ import annotations

from typing import Any, Dict, List, Optional
import os
import time
import polars as pl
import nflreadpy as nfl
import structlog

from ..config import parse_years_arg


# Columns the passing and rushing analyses read from play-by-play
PBP_COLUMNS = [
    "game_id",
    "play_id",
    "season",
    "play_type",
    "passer_id",
    "passer",
    "air_yards",
    "passing_yards",
    "rusher_id",
    "rusher",
    "rushing_yards",
    "ydstogo",
    "down",
]


def _retry_params(options: Optional[Dict[str, Any]] = None) -> tuple[int, int]:
    opts = options or {}
    attempts = opts.get("retry_attempts")
    base = opts.get("retry_base_seconds")
    if attempts is None:
        try:
            attempts = int(os.environ["IMPORTER_RETRY_ATTEMPTS"])
        except (KeyError, ValueError):
            attempts = 3
    if base is None:
        try:
            base = int(os.environ["IMPORTER_RETRY_BASE_SECONDS"])
        except (KeyError, ValueError):
            base = 5
    return max(int(attempts), 1), max(int(base), 0)


def _import_season(year: int, columns: Optional[List[str]]) -> pl.DataFrame:
    df = nfl.load_pbp(seasons=[year])
    if columns:
        df = df.select([c for c in columns if c in df.columns])
    return df


def fetch_pbp(years: str, options: Optional[Dict[str, Any]] = None) -> pl.DataFrame:
    """Fetch nflverse play-by-play one season at a time via nflreadpy.

    Each season is retried with linear back-off; a season that keeps failing is
    logged and skipped so the remaining seasons still load.
    """
    logger = structlog.get_logger(__name__)
    year_list = parse_years_arg(years)
    opts = options or {}
    columns = opts.get("columns", PBP_COLUMNS)
    attempts, base_sleep = _retry_params(opts)
    frames: List[pl.DataFrame] = []
    for yr in year_list:
        for attempt in range(1, attempts + 1):
            try:
                df_y = _import_season(yr, columns)
                break
            except Exception as exc:
                if attempt < attempts:
                    logger.warning("pbp_fetch_retry", year=yr, attempt=attempt, error=str(exc))
                    time.sleep(base_sleep * attempt)
                else:
                    logger.error("pbp_fetch_failed", year=yr, error=str(exc))
        else:
            continue
        frames.append(df_y)
        logger.info("pbp_fetched", year=yr, rows=df_y.height)
    if not frames:
        raise RuntimeError("No PBP data fetched for any requested year")
    return pl.concat(frames, how="diagonal_relaxed")
