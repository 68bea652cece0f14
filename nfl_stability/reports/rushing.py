from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import polars as pl
import structlog

from ..config import RushingConfig
from ..regression import BaselineModel, add_residuals, fit_baseline
from ..schemas import validate_observations
from ..stability import threshold_sensitivity, year_over_year_stability
from ..transforms import MetricSpec, aggregate_entity_periods, prepare_rushing_plays
from .common import StabilityReport


logger = structlog.get_logger(__name__)

RUSHER_KEYS = ["rusher_id", "rusher"]
RUSHING_METRICS = [
    MetricSpec("ryoe_total", "ryoe", "sum"),
    MetricSpec("ryoe_per", "ryoe", "mean"),
    MetricSpec("yards_per_carry", "rushing_yards", "mean"),
]
# Rushing yards over expected is compared against raw yards per carry
STABILITY_METRICS = ["ryoe_per", "yards_per_carry"]


@dataclass
class RushingReport(StabilityReport):
    model: BaselineModel
    plays: pl.DataFrame


def rushing_over_expected(pbp: pl.DataFrame, config: RushingConfig) -> RushingReport:
    plays = prepare_rushing_plays(pbp, fill_missing_yards=config.fill_missing_yards)
    validate_observations("rushing", plays)
    model = fit_baseline(plays, predictor=config.predictor, response="rushing_yards")
    plays = add_residuals(plays, model, expected_column="exp_yards", residual_column="ryoe")
    agg = aggregate_entity_periods(
        plays,
        keys=RUSHER_KEYS + ["season"],
        metrics=RUSHING_METRICS,
        min_count=config.min_carries,
    )
    paired, results = year_over_year_stability(agg, keys=RUSHER_KEYS, metrics=STABILITY_METRICS, by=[])
    logger.info("rushing_over_expected_done", plays=plays.height, rusher_seasons=agg.height, pairs=paired.height)
    return RushingReport(aggregates=agg, paired=paired, results=results, model=model, plays=plays)


def rushing_sensitivity(pbp: pl.DataFrame, config: RushingConfig, thresholds: Sequence[int]) -> pl.DataFrame:
    plays = prepare_rushing_plays(pbp, fill_missing_yards=config.fill_missing_yards)
    validate_observations("rushing", plays)
    model = fit_baseline(plays, predictor=config.predictor, response="rushing_yards")
    plays = add_residuals(plays, model)
    metrics = [m for m in RUSHING_METRICS if m.name in STABILITY_METRICS]
    return threshold_sensitivity(plays, keys=RUSHER_KEYS, metrics=metrics, thresholds=thresholds)
