from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator


def parse_years_arg(years: str) -> List[int]:
    years = years.strip()
    if "-" in years:
        start, end = years.split("-")
        return list(range(int(start), int(end) + 1))
    return [int(x) for x in years.split(",") if x.strip()]


class PassingConfigModel(BaseModel):
    min_attempts: int = Field(100, ge=1)
    long_pass_air_yards: float = 20
    fill_missing_yards: Optional[float] = 0.0


class RushingConfigModel(BaseModel):
    min_carries: int = Field(50, ge=1)
    predictor: str = "ydstogo"
    fill_missing_yards: Optional[float] = 0.0


class AnalysisConfigModel(BaseModel):
    seasons: str = "2016-2022"
    output_dir: str = "out"
    cache_pbp: bool = True
    passing: PassingConfigModel = Field(default_factory=PassingConfigModel)
    rushing: RushingConfigModel = Field(default_factory=RushingConfigModel)
    sensitivity_thresholds: List[int] = Field(default_factory=lambda: [10, 50, 100])

    @field_validator("seasons")
    @classmethod
    def seasons_parse(cls, v: str) -> str:
        years = parse_years_arg(v)
        if not years:
            raise ValueError("seasons must name at least one season")
        return v

    @field_validator("sensitivity_thresholds")
    @classmethod
    def positive_thresholds(cls, v: List[int]) -> List[int]:
        if not v:
            raise ValueError("sensitivity_thresholds must not be empty")
        if any(t < 1 for t in v):
            raise ValueError("sensitivity_thresholds must be positive integers")
        return v


@dataclass
class PassingConfig:
    min_attempts: int = 100
    long_pass_air_yards: float = 20
    fill_missing_yards: Optional[float] = 0.0


@dataclass
class RushingConfig:
    min_carries: int = 50
    predictor: str = "ydstogo"
    fill_missing_yards: Optional[float] = 0.0


@dataclass
class AnalysisConfig:
    seasons: str = "2016-2022"
    output_dir: str = "out"
    cache_pbp: bool = True
    passing: PassingConfig = field(default_factory=PassingConfig)
    rushing: RushingConfig = field(default_factory=RushingConfig)
    sensitivity_thresholds: List[int] = field(default_factory=lambda: [10, 50, 100])

    @property
    def season_list(self) -> List[int]:
        return parse_years_arg(self.seasons)


def load_analysis_config(path: Optional[str] = None) -> AnalysisConfig:
    yaml_path = Path(path or "catalog/analysis.yml")
    data = yaml.safe_load(yaml_path.read_text()) if yaml_path.exists() else {}
    parsed = AnalysisConfigModel.model_validate(data or {})

    return AnalysisConfig(
        seasons=parsed.seasons,
        output_dir=parsed.output_dir,
        cache_pbp=parsed.cache_pbp,
        passing=PassingConfig(**parsed.passing.model_dump()),
        rushing=RushingConfig(**parsed.rushing.model_dump()),
        sensitivity_thresholds=list(parsed.sensitivity_thresholds),
    )
