from __future__ import annotations

from typing import Sequence

import polars as pl
import structlog

from ..config import PassingConfig
from ..schemas import validate_observations
from ..stability import threshold_sensitivity, year_over_year_stability
from ..transforms import MetricSpec, aggregate_entity_periods, prepare_passing_plays
from .common import StabilityReport


logger = structlog.get_logger(__name__)

PASSER_KEYS = ["passer_id", "passer", "pass_length_air_yards"]
PASSING_METRICS = [MetricSpec("ypa", "passing_yards", "mean")]


def passing_stability(pbp: pl.DataFrame, config: PassingConfig) -> StabilityReport:
    """Yards per attempt stability for short and long throws.

    Each passer-season-length bucket needs ``config.min_attempts`` throws to be
    paired with the following season.
    """
    plays = prepare_passing_plays(
        pbp,
        long_pass_air_yards=config.long_pass_air_yards,
        fill_missing_yards=config.fill_missing_yards,
    )
    validate_observations("passing", plays)
    agg = aggregate_entity_periods(
        plays,
        keys=PASSER_KEYS + ["season"],
        metrics=PASSING_METRICS,
        min_count=config.min_attempts,
    )
    paired, results = year_over_year_stability(
        agg,
        keys=PASSER_KEYS,
        metrics=[m.name for m in PASSING_METRICS],
        by=["pass_length_air_yards"],
    )
    logger.info("passing_stability_done", plays=plays.height, passer_seasons=agg.height, pairs=paired.height)
    return StabilityReport(aggregates=agg, paired=paired, results=results)


def passing_sensitivity(pbp: pl.DataFrame, config: PassingConfig, thresholds: Sequence[int]) -> pl.DataFrame:
    plays = prepare_passing_plays(
        pbp,
        long_pass_air_yards=config.long_pass_air_yards,
        fill_missing_yards=config.fill_missing_yards,
    )
    validate_observations("passing", plays)
    return threshold_sensitivity(
        plays,
        keys=PASSER_KEYS,
        metrics=PASSING_METRICS,
        thresholds=thresholds,
        by=["pass_length_air_yards"],
    )
