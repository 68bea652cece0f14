# pyright: reportMissingImports=false, reportMissingModuleSource=false
from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
import orjson
import structlog


LOGS_DIR = Path("logs")


def new_run_id(command: str) -> str:
    return f"{command}_{datetime.now(timezone.utc).strftime('%Y%m%dT%H%M%SZ')}"


def configure_logging() -> None:
    """Route structlog through stdlib logging at ``LOG_LEVEL``.

    ``LOG_FORMAT=console`` swaps the JSON renderer for a human-readable one
    when running analyses interactively.
    """
    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_str, logging.INFO)
    logging.basicConfig(level=log_level)

    renderer = (
        structlog.dev.ConsoleRenderer()
        if os.getenv("LOG_FORMAT", "json").lower() == "console"
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=True,
    )


def log_run_event(run_id: str, event: str, logs_dir: Path = LOGS_DIR, **fields) -> Path:
    logs_dir.mkdir(parents=True, exist_ok=True)
    path = logs_dir / f"{run_id}.jsonl"
    rec = {"event": event, "ts": datetime.now(timezone.utc).isoformat(), **fields}
    with path.open("ab") as f:
        f.write(orjson.dumps(rec, option=orjson.OPT_SERIALIZE_NUMPY | orjson.OPT_NON_STR_KEYS) + b"\n")
    return path
