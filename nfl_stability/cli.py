# pyright: reportMissingImports=false, reportMissingModuleSource=false
import os
from pathlib import Path
from typing import List, Optional

import polars as pl
import typer
from dotenv import load_dotenv

from .config import AnalysisConfig, load_analysis_config, parse_years_arg
from .io import write_table
from .logging_setup import configure_logging, log_run_event, new_run_id
from .profiling import describe_metrics

app = typer.Typer(no_args_is_help=True, add_completion=False)


def _resolve_output_dir(default_dir: str) -> Path:
    env_dir = os.getenv("STABILITY_OUTPUT_DIR")
    return Path(env_dir or default_dir)


def _check_seasons(seasons: str) -> str:
    try:
        years = parse_years_arg(seasons)
    except ValueError:
        years = []
    if not years:
        raise typer.BadParameter(
            f"invalid season range {seasons!r}; use e.g. 2016-2022 or 2016,2018", param_hint="--seasons"
        )
    return seasons


def _load(
    config_path: Optional[str], seasons: Optional[str], refresh: bool = False
) -> tuple[AnalysisConfig, Path, pl.DataFrame]:
    cfg = load_analysis_config(config_path)
    if seasons:
        cfg.seasons = _check_seasons(seasons)
    out_dir = _resolve_output_dir(cfg.output_dir)
    # Lazy import to avoid heavy deps during --help
    from .importers import load_pbp

    pbp = load_pbp(cfg.seasons, cache_dir=out_dir / "cache" if cfg.cache_pbp else None, refresh=refresh)
    return cfg, out_dir, pbp


def _echo_table(df: pl.DataFrame) -> None:
    with pl.Config(tbl_rows=-1, tbl_cols=-1, tbl_hide_dataframe_shape=True):
        typer.echo(str(df))


@app.callback()
def main() -> None:
    load_dotenv()
    configure_logging()


@app.command()
def passing(
    config: Optional[str] = typer.Option(None, help="Path to analysis YAML (default catalog/analysis.yml)"),
    seasons: Optional[str] = typer.Option(None, help="Season range, e.g. 2016-2022 or comma list"),
    refresh: bool = typer.Option(False, help="Re-fetch play-by-play even when a cached season exists"),
    min_attempts: Optional[int] = typer.Option(None, min=1, help="Override minimum attempts per passer-season"),
) -> None:
    """Year-over-year stability of yards per attempt for short and long passes."""
    from .reports import leaderboard, passing_stability

    run_id = new_run_id("passing")
    cfg, out_dir, pbp = _load(config, seasons, refresh)
    if min_attempts is not None:
        cfg.passing.min_attempts = min_attempts
    log_run_event(run_id, "start", seasons=cfg.seasons, min_attempts=cfg.passing.min_attempts)
    report = passing_stability(pbp, cfg.passing)
    written = [
        write_out(report.aggregates, out_dir, "passing_aggregates.csv"),
        write_out(report.paired, out_dir, "passing_pairs.csv"),
        write_out(report.results, out_dir, "passing_stability.csv"),
        write_out(leaderboard(report.aggregates, "ypa", top=20), out_dir, "passing_leaders.csv"),
        write_out(
            describe_metrics(report.aggregates, ["ypa", "n"], by=["pass_length_air_yards"]),
            out_dir,
            "passing_summary.csv",
        ),
    ]
    log_run_event(run_id, "completed", outputs=[str(p) for p in written], pairs=report.paired.height)
    _echo_table(report.results)


@app.command()
def rushing(
    config: Optional[str] = typer.Option(None, help="Path to analysis YAML (default catalog/analysis.yml)"),
    seasons: Optional[str] = typer.Option(None, help="Season range, e.g. 2016-2022 or comma list"),
    refresh: bool = typer.Option(False, help="Re-fetch play-by-play even when a cached season exists"),
    min_carries: Optional[int] = typer.Option(None, min=1, help="Override minimum carries per rusher-season"),
) -> None:
    """Rushing yards over expected and its stability against yards per carry."""
    from .reports import leaderboard, rushing_over_expected

    run_id = new_run_id("rushing")
    cfg, out_dir, pbp = _load(config, seasons, refresh)
    if min_carries is not None:
        cfg.rushing.min_carries = min_carries
    log_run_event(run_id, "start", seasons=cfg.seasons, min_carries=cfg.rushing.min_carries)
    report = rushing_over_expected(pbp, cfg.rushing)
    written = [
        write_out(report.aggregates, out_dir, "rushing_aggregates.csv"),
        write_out(report.paired, out_dir, "rushing_pairs.csv"),
        write_out(report.results, out_dir, "rushing_stability.csv"),
        write_out(leaderboard(report.aggregates, "ryoe_total", top=20), out_dir, "rushing_leaders.csv"),
        write_out(
            describe_metrics(report.aggregates, ["ryoe_per", "yards_per_carry", "n"]),
            out_dir,
            "rushing_summary.csv",
        ),
    ]
    log_run_event(
        run_id,
        "completed",
        outputs=[str(p) for p in written],
        intercept=report.model.intercept,
        slope=report.model.slope,
    )
    typer.echo(f"expected yards = {report.model.intercept:.3f} + {report.model.slope:.3f} * {report.model.predictor}")
    _echo_table(report.results)


@app.command()
def sensitivity(
    kind: str = typer.Argument(..., help="passing or rushing"),
    config: Optional[str] = typer.Option(None, help="Path to analysis YAML (default catalog/analysis.yml)"),
    seasons: Optional[str] = typer.Option(None, help="Season range, e.g. 2016-2022 or comma list"),
    refresh: bool = typer.Option(False, help="Re-fetch play-by-play even when a cached season exists"),
    thresholds: Optional[str] = typer.Option(None, help="Comma-separated minimum sample sizes, e.g. 10,50,100"),
) -> None:
    """Recompute stability at several minimum-sample thresholds."""
    from .reports import passing_sensitivity, rushing_sensitivity

    if kind not in ("passing", "rushing"):
        raise typer.BadParameter("kind must be 'passing' or 'rushing'")
    run_id = new_run_id(f"sensitivity_{kind}")
    cfg, out_dir, pbp = _load(config, seasons, refresh)
    taus: List[int] = (
        [int(t) for t in thresholds.split(",") if t.strip()] if thresholds else list(cfg.sensitivity_thresholds)
    )
    if any(t < 1 for t in taus):
        raise typer.BadParameter("thresholds must be positive integers")
    log_run_event(run_id, "start", seasons=cfg.seasons, thresholds=taus)
    if kind == "passing":
        result = passing_sensitivity(pbp, cfg.passing, taus)
    else:
        result = rushing_sensitivity(pbp, cfg.rushing, taus)
    path = write_out(result, out_dir, f"{kind}_sensitivity.csv")
    log_run_event(run_id, "completed", outputs=[str(path)])
    _echo_table(result)


@app.command("recache-pbp")
def recache_pbp(
    seasons: str = typer.Option(..., help="Seasons to re-pull for corrections, e.g. 2022 or 2021-2022"),
    config: Optional[str] = typer.Option(None, help="Path to analysis YAML (default catalog/analysis.yml)"),
) -> None:
    """Re-fetch play-by-play and overwrite the cached seasons."""
    cfg = load_analysis_config(config)
    seasons = _check_seasons(seasons)
    cache_dir = _resolve_output_dir(cfg.output_dir) / "cache"
    from .importers import load_pbp

    pbp = load_pbp(seasons, cache_dir=cache_dir, refresh=True)
    typer.echo(f"recached: {seasons} ({pbp.height} plays) in {cache_dir}")


def write_out(df: pl.DataFrame, out_dir: Path, name: str) -> Path:
    path = write_table(df, out_dir, name)
    typer.echo(f"wrote: {path}")
    return path


if __name__ == "__main__":
    app()
