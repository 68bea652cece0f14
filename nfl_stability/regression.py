# pyright: reportMissingImports=false, reportMissingModuleSource=false
from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import polars as pl
import statsmodels.api as sm
import structlog

from .errors import InsufficientData, NonFiniteData
from .schemas import require_columns


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BaselineModel:
    """Fitted ``response ~ 1 + predictor`` least-squares line."""

    predictor: str
    response: str
    intercept: float
    slope: float
    n_obs: int
    r_squared: float

    def expected_expr(self) -> pl.Expr:
        return pl.lit(self.intercept) + pl.lit(self.slope) * pl.col(self.predictor).cast(pl.Float64)

    def predict(self, df: pl.DataFrame) -> pl.Series:
        require_columns(df, [self.predictor], table="prediction input")
        return df.select(self.expected_expr().alias("expected")).to_series()


def fit_baseline(df: pl.DataFrame, predictor: str, response: str) -> BaselineModel:
    """Fit the expectation line used for over/under-expected metrics.

    Rows missing either value are left out of the fit. NaN or infinite values
    that remain are rejected rather than silently dropped.
    """
    require_columns(df, [predictor, response], table="training data")
    train = df.select(
        pl.col(predictor).cast(pl.Float64),
        pl.col(response).cast(pl.Float64),
    ).drop_nulls()
    x = train[predictor].to_numpy()
    y = train[response].to_numpy()
    if not (np.isfinite(x).all() and np.isfinite(y).all()):
        raise NonFiniteData(f"non-finite values in {predictor!r} or {response!r} after dropping nulls")
    if np.unique(x).size < 2:
        raise InsufficientData(f"need at least 2 distinct {predictor!r} values to fit, got {np.unique(x).size}")

    fit = sm.OLS(y, sm.add_constant(x, has_constant="add")).fit()
    intercept, slope = (float(v) for v in fit.params)
    model = BaselineModel(
        predictor=predictor,
        response=response,
        intercept=intercept,
        slope=slope,
        n_obs=int(fit.nobs),
        r_squared=float(fit.rsquared),
    )
    logger.info(
        "baseline_fitted",
        predictor=predictor,
        response=response,
        intercept=round(intercept, 4),
        slope=round(slope, 4),
        n_obs=model.n_obs,
        r_squared=round(model.r_squared, 4),
    )
    return model


def add_residuals(
    df: pl.DataFrame,
    model: BaselineModel,
    expected_column: str = "exp_yards",
    residual_column: str = "ryoe",
) -> pl.DataFrame:
    """Append expected and residual columns.

    residual = actual - expected, so a positive value means the play beat the
    model's expectation.
    """
    require_columns(df, [model.predictor, model.response], table="residual input")
    return df.with_columns(model.expected_expr().alias(expected_column)).with_columns(
        (pl.col(model.response).cast(pl.Float64) - pl.col(expected_column)).alias(residual_column)
    )
