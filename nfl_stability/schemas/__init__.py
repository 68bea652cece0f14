# pyright: reportMissingImports=false, reportMissingModuleSource=false
from __future__ import annotations

from typing import Iterable

import polars as pl
import pandera.pandas as pa
from pandera.errors import SchemaErrors

from ..errors import MissingColumn, SchemaMismatch


PASSING_PLAYS_SCHEMA = pa.DataFrameSchema(
    {
        "passer_id": pa.Column(str, nullable=False),
        "passer": pa.Column(str, nullable=True),
        "season": pa.Column("Int64", nullable=False),
        "air_yards": pa.Column(float, nullable=False),
        # passing_yards may stay null when no fill is configured
        "passing_yards": pa.Column(float, nullable=True),
        "pass_length_air_yards": pa.Column(str, pa.Check.isin(["long", "short"]), nullable=False),
    },
    coerce=True,
)

RUSHING_PLAYS_SCHEMA = pa.DataFrameSchema(
    {
        "rusher_id": pa.Column(str, nullable=False),
        "rusher": pa.Column(str, nullable=True),
        "season": pa.Column("Int64", nullable=False),
        "rushing_yards": pa.Column(float, nullable=True),
    },
    coerce=True,
)

_SCHEMAS = {
    "passing": PASSING_PLAYS_SCHEMA,
    "rushing": RUSHING_PLAYS_SCHEMA,
}


def require_columns(df: pl.DataFrame, columns: Iterable[str], table: str = "input") -> None:
    missing = [c for c in dict.fromkeys(columns) if c not in df.columns]
    if missing:
        raise MissingColumn(missing, table=table)


def validate_observations(kind: str, df: pl.DataFrame) -> None:
    """Validate a prepared play table against its pandera schema.

    Absent columns surface as ``MissingColumn``; dtype or value failures as
    ``SchemaMismatch``.
    """
    schema = _SCHEMAS.get(kind)
    if schema is None:
        raise ValueError(f"Unknown observation kind: {kind}")
    require_columns(df, schema.columns.keys(), table=f"{kind} plays")
    pdf = df.select(list(schema.columns.keys())).to_pandas()
    try:
        schema.validate(pdf, lazy=True)
    except SchemaErrors as exc:
        raise SchemaMismatch(f"{kind} plays failed validation: {exc.failure_cases.to_dict('records')}") from exc
