"""Year-over-year stability of per-entity metrics.

An aggregate table (one row per entity, category and season) is joined to
itself shifted by one season, and the current/next values of each metric are
correlated within each category. Only consecutive seasons pair up.
"""
from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

import polars as pl
import structlog

from .errors import InsufficientData, SchemaMismatch
from .schemas import require_columns
from .transforms import MetricSpec, aggregate_entity_periods


logger = structlog.get_logger(__name__)

STATUS_OK = "ok"
STATUS_INSUFFICIENT = "insufficient_data"
STATUS_UNDEFINED = "undefined_correlation"

# two-sided 95% normal quantile for the Fisher interval
_Z_95 = 1.959963984540054
# spread below this fraction of a column's scale counts as no variance
_CONSTANT_RTOL = 1e-12

RESULT_SCHEMA = {
    "metric": pl.Utf8,
    "n_pairs": pl.Int64,
    "correlation": pl.Float64,
    "ci_lower": pl.Float64,
    "ci_upper": pl.Float64,
    "status": pl.Utf8,
}


def pair_consecutive_periods(
    agg: pl.DataFrame,
    keys: Sequence[str],
    metrics: Sequence[str],
    period: str = "season",
    shift: int = 1,
) -> pl.DataFrame:
    """Pair each aggregate row with the same entity's row ``shift`` periods later.

    Returns ``keys``, ``period``, ``<period>_next`` and ``<metric>_current`` /
    ``<metric>_next`` for every metric. Entities missing either side are
    dropped.
    """
    keys = list(keys)
    metrics = list(metrics)
    require_columns(agg, keys + [period] + metrics, table="aggregate table")
    if agg.height == 0:
        raise InsufficientData("aggregate table is empty")
    dupes = agg.select(keys + [period]).is_duplicated().sum()
    if dupes:
        raise SchemaMismatch(f"aggregate table has {dupes} rows sharing the same {keys + [period]}")

    next_period = f"{period}_next"
    base = agg.select(keys + [period] + metrics)
    current = base.rename({m: f"{m}_current" for m in metrics}).with_columns(
        (pl.col(period) + shift).alias(next_period)
    )
    following = base.rename({period: next_period, **{m: f"{m}_next" for m in metrics}})

    paired = (
        current.join(following, on=keys + [next_period], how="inner")
        .select(
            keys
            + [period, next_period]
            + [f"{m}_current" for m in metrics]
            + [f"{m}_next" for m in metrics]
        )
        .sort(keys + [period])
    )
    logger.info("pairs_built", rows=agg.height, pairs=paired.height, shift=shift)
    return paired


def _is_constant(sd: str, mean: str) -> pl.Expr:
    # equal means reached through different plays can differ in the last bit
    scale = pl.max_horizontal(pl.lit(1.0), pl.col(mean).abs())
    return pl.col(sd).is_null() | (pl.col(sd) <= _CONSTANT_RTOL * scale)


def _metric_stats(paired: pl.DataFrame, metric: str, by: List[str], groups: pl.DataFrame) -> pl.DataFrame:
    cur, nxt = f"{metric}_current", f"{metric}_next"
    valid = paired.filter(
        pl.col(cur).is_not_null()
        & pl.col(nxt).is_not_null()
        & pl.col(cur).cast(pl.Float64).is_finite()
        & pl.col(nxt).cast(pl.Float64).is_finite()
    )
    aggs = [
        pl.len().cast(pl.Int64).alias("n_pairs"),
        pl.col(cur).cast(pl.Float64).std().alias("_sd_current"),
        pl.col(nxt).cast(pl.Float64).std().alias("_sd_next"),
        pl.col(cur).cast(pl.Float64).mean().alias("_mean_current"),
        pl.col(nxt).cast(pl.Float64).mean().alias("_mean_next"),
        pl.corr(pl.col(cur).cast(pl.Float64), pl.col(nxt).cast(pl.Float64)).alias("_r"),
    ]
    if by:
        stats = groups.join(valid.group_by(by).agg(aggs), on=by, how="left")
    else:
        stats = valid.select(aggs)
    return stats.with_columns(
        pl.lit(metric).alias("metric"),
        pl.col("n_pairs").fill_null(0),
    )


def stability_table(
    paired: pl.DataFrame,
    metrics: Sequence[str],
    by: Sequence[str] = ("category",),
    groups: Optional[pl.DataFrame] = None,
) -> pl.DataFrame:
    """Pearson correlation of current vs next value per group and metric.

    Groups with fewer than two pairs are ``insufficient_data`` and groups where
    either side has no variance are ``undefined_correlation``; both carry a
    NaN correlation. Other groups are unaffected. ``groups`` lists every group
    to report, including ones that produced no pairs; it defaults to the
    groups present in ``paired``.
    """
    by = list(by)
    metrics = list(metrics)
    require_columns(
        paired,
        by + [f"{m}_current" for m in metrics] + [f"{m}_next" for m in metrics],
        table="paired table",
    )
    if by:
        groups = (paired.select(by) if groups is None else groups.select(by)).unique()
    frames = [_metric_stats(paired, m, by, groups) for m in metrics]
    if not frames:
        return pl.DataFrame(schema={**{b: paired.schema[b] for b in by}, **RESULT_SCHEMA})
    stats = pl.concat(frames, how="vertical")

    n = pl.col("n_pairs")
    r = pl.col("_r")
    no_variance = _is_constant("_sd_current", "_mean_current") | _is_constant("_sd_next", "_mean_next")
    status = (
        pl.when(n < 2)
        .then(pl.lit(STATUS_INSUFFICIENT))
        .when(no_variance | r.is_null() | r.is_nan())
        .then(pl.lit(STATUS_UNDEFINED))
        .otherwise(pl.lit(STATUS_OK))
    )
    stats = stats.with_columns(status.alias("status"))
    ok = pl.col("status") == STATUS_OK
    # Fisher z interval, only meaningful past three pairs
    z = r.clip(-0.9999999, 0.9999999).arctanh()
    half = _Z_95 / (n.cast(pl.Float64) - 3).sqrt()
    has_ci = ok & (n > 3)
    result = stats.with_columns(
        pl.when(ok).then(r).otherwise(pl.lit(float("nan"))).alias("correlation"),
        pl.when(has_ci).then((z - half).tanh()).otherwise(None).alias("ci_lower"),
        pl.when(has_ci).then((z + half).tanh()).otherwise(None).alias("ci_upper"),
    ).select(by + list(RESULT_SCHEMA))
    result = result.sort(by + ["metric"]) if by else result.sort("metric")

    for row in result.filter(pl.col("status") != STATUS_OK).iter_rows(named=True):
        logger.warning("correlation_undefined", **row)
    logger.info("stability_computed", groups=result.height, metrics=metrics)
    return result


def year_over_year_stability(
    agg: pl.DataFrame,
    keys: Sequence[str],
    metrics: Sequence[str],
    by: Sequence[str] = ("category",),
    period: str = "season",
    shift: int = 1,
) -> Tuple[pl.DataFrame, pl.DataFrame]:
    paired = pair_consecutive_periods(agg, keys, metrics, period=period, shift=shift)
    groups = agg.select(list(by)) if by else None
    return paired, stability_table(paired, metrics, by=by, groups=groups)


def threshold_sensitivity(
    observations: pl.DataFrame,
    keys: Sequence[str],
    metrics: Sequence[MetricSpec],
    thresholds: Iterable[int],
    by: Sequence[str] = (),
    period: str = "season",
    fill_missing: Optional[dict] = None,
) -> pl.DataFrame:
    """Stability results recomputed at several minimum-sample thresholds.

    ``keys`` are the entity/category keys without the period. Each threshold
    contributes its own block of rows tagged with ``min_count``.
    """
    keys = list(keys)
    names = [m.name for m in metrics]
    frames = []
    for tau in thresholds:
        agg = aggregate_entity_periods(
            observations, keys + [period], metrics, min_count=tau, fill_missing=fill_missing
        )
        if agg.height == 0:
            logger.warning("threshold_left_no_rows", min_count=tau)
            paired = pl.DataFrame(
                schema={
                    **{k: observations.schema[k] for k in keys},
                    **{f"{m}_current": pl.Float64 for m in names},
                    **{f"{m}_next": pl.Float64 for m in names},
                }
            )
        else:
            paired = pair_consecutive_periods(agg, keys, names, period=period)
        groups = observations.select(list(by)) if by else None
        result = stability_table(paired, names, by=by, groups=groups)
        frames.append(
            result.with_columns(
                pl.lit(int(tau)).alias("min_count"),
                pl.lit(agg.height).cast(pl.Int64).alias("n_entity_periods"),
            )
        )
    if not frames:
        raise ValueError("thresholds must not be empty")
    out = pl.concat(frames, how="vertical")
    return out.select(["min_count", "n_entity_periods"] + [c for c in out.columns if c not in ("min_count", "n_entity_periods")])
