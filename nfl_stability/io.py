from __future__ import annotations

from pathlib import Path

import polars as pl


def ensure_dir(path: str | Path) -> None:
    Path(path).mkdir(parents=True, exist_ok=True)


def write_table(df: pl.DataFrame, out_dir: str | Path, name: str) -> Path:
    """Write ``df`` as CSV, or parquet when ``name`` ends in ``.parquet``."""
    ensure_dir(out_dir)
    path = Path(out_dir) / name
    if path.suffix == ".parquet":
        df.write_parquet(path, compression="zstd")
    else:
        if not path.suffix:
            path = path.with_suffix(".csv")
        df.write_csv(path)
    return path
