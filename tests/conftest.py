from __future__ import annotations

import polars as pl
import pytest


def _passing_rows() -> list[dict]:
    rows = []
    for p in (1, 2):
        for s, season in enumerate((2016, 2017, 2018)):
            short = [3 + p * 2 + s, 6 + s * p, None]
            long = [20 + 5 * p + s * 3, None, 30 - s]
            for air, yards in [(5.0, y) for y in short] + [(25.0, y) for y in long]:
                rows.append(
                    {
                        "season": season,
                        "play_type": "pass",
                        "passer_id": f"00-P{p}",
                        "passer": f"P.Passer{p}",
                        "air_yards": air,
                        "passing_yards": None if yards is None else float(yards),
                        "rusher_id": None,
                        "rusher": None,
                        "rushing_yards": None,
                        "ydstogo": 10.0,
                    }
                )
    return rows


def _rushing_rows() -> list[dict]:
    rows = []
    for p in (1, 2, 3):
        for s, season in enumerate((2016, 2017)):
            carries = [(1.0, 2 + p), (3.0, 4 + s), (5.0, 6 + p * s), (10.0, 8 + p)]
            for ydstogo, yards in carries:
                rows.append(
                    {
                        "season": season,
                        "play_type": "run",
                        "passer_id": None,
                        "passer": None,
                        "air_yards": None,
                        "passing_yards": None,
                        "rusher_id": f"00-R{p}",
                        "rusher": f"R.Rusher{p}",
                        "rushing_yards": float(yards),
                        "ydstogo": ydstogo,
                    }
                )
    return rows


def _noise_rows() -> list[dict]:
    base = {
        "season": 2016,
        "passer_id": None,
        "passer": None,
        "air_yards": None,
        "passing_yards": None,
        "rusher_id": None,
        "rusher": None,
        "rushing_yards": None,
        "ydstogo": 10.0,
    }
    return [
        {**base, "play_type": "no_play"},
        {**base, "play_type": "punt"},
        # spike: a pass play without air yards
        {**base, "play_type": "pass", "passer_id": "00-P1", "passer": "P.Passer1"},
    ]


@pytest.fixture
def pbp() -> pl.DataFrame:
    schema = {
        "season": pl.Int64,
        "play_type": pl.Utf8,
        "passer_id": pl.Utf8,
        "passer": pl.Utf8,
        "air_yards": pl.Float64,
        "passing_yards": pl.Float64,
        "rusher_id": pl.Utf8,
        "rusher": pl.Utf8,
        "rushing_yards": pl.Float64,
        "ydstogo": pl.Float64,
    }
    return pl.DataFrame(_passing_rows() + _rushing_rows() + _noise_rows(), schema=schema)
