# pyright: reportMissingImports=false, reportMissingModuleSource=false
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import polars as pl
import structlog

from ..config import parse_years_arg
from ..transforms import normalize_pbp


logger = structlog.get_logger(__name__)


def _cache_path(cache_dir: Path, year: int) -> Path:
    return cache_dir / f"pbp_{year}.parquet"


def load_pbp(
    years: str,
    cache_dir: Optional[Path] = None,
    options: Optional[Dict[str, Any]] = None,
    refresh: bool = False,
) -> pl.DataFrame:
    """Play-by-play for ``years``, reusing per-season parquet files in ``cache_dir``.

    Only seasons without a cached file are fetched from nflverse. With
    ``refresh`` every season is fetched again and its cached file overwritten.
    """
    # Lazy import so config and --help do not pull in nflreadpy
    from .nflverse import fetch_pbp

    year_list = parse_years_arg(years)
    frames: List[pl.DataFrame] = []
    to_fetch = list(year_list)
    if cache_dir is not None:
        to_fetch = []
        for yr in year_list:
            path = _cache_path(cache_dir, yr)
            if path.exists() and not refresh:
                frames.append(pl.read_parquet(path))
                logger.info("pbp_cache_hit", year=yr, path=str(path))
            else:
                to_fetch.append(yr)

    if to_fetch:
        fetched = normalize_pbp(fetch_pbp(",".join(str(y) for y in to_fetch), options=options))
        if cache_dir is not None:
            cache_dir.mkdir(parents=True, exist_ok=True)
            for (yr,), part in fetched.partition_by("season", as_dict=True).items():
                part.write_parquet(_cache_path(cache_dir, int(yr)))
        frames.append(fetched)

    return normalize_pbp(pl.concat(frames, how="diagonal_relaxed"))
