"""
Logging utilities for the analysis pipeline.

Every stage of ``PatternEngine.analyze`` logs one START line and one
COMPLETE (or FAILED) line carrying its result counts and duration, so a
single call reads as a short trace:

    [LEVELS] series: start
    [LEVELS] series: complete in 0.8ms (levels=4)
"""

import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from loguru import logger

STAGE_STATUSES = ("START", "COMPLETE", "FAILED")


def _format_counts(data: Dict[str, Any]) -> str:
    counts = ", ".join(f"{key}={value}" for key, value in data.items() if key != 'duration_ms')
    return f" ({counts})" if counts else ""


def log_pipeline_stage(
    stage_name: str,
    series_label: str,
    status: str = "START",
    data: Optional[Dict[str, Any]] = None,
    level: str = "DEBUG",
) -> None:
    """
    Log one pipeline stage transition.

    Args:
        stage_name: Pipeline stage (e.g. "INDICATORS", "RANKING")
        series_label: Symbol or other label of the series being analyzed
        status: "START", "COMPLETE" or "FAILED"
        data: Result counts for COMPLETE (plus 'duration_ms'); 'reason'
            and 'error' for FAILED
        level: Loguru level name
    """
    if status not in STAGE_STATUSES:
        raise ValueError(f"Unknown stage status '{status}', expected one of {STAGE_STATUSES}")

    data = data or {}
    prefix = f"[{stage_name}] {series_label}"

    if status == "START":
        message = f"{prefix}: start"
    elif status == "COMPLETE":
        elapsed = f" in {data['duration_ms']:.1f}ms" if 'duration_ms' in data else ""
        message = f"{prefix}: complete{elapsed}{_format_counts(data)}"
    else:
        message = f"{prefix}: failed with {data.get('reason', 'unknown error')}"
        if 'error' in data:
            message += f": {data['error']}"

    logger.log(level.upper(), message)


def log_timing(
    operation_name: str,
    duration_ms: float,
    series_label: Optional[str] = None,
    level: str = "DEBUG",
) -> None:
    """Log how long an operation took, flagging anything over 100ms as slow."""
    label = f" [{series_label}]" if series_label else ""
    speed = "fast" if duration_ms < 100 else "slow"
    logger.log(level.upper(), f"{operation_name}{label}: {duration_ms:.1f}ms ({speed})")


@contextmanager
def timed_stage(stage_name: str, series_label: str) -> Iterator[Dict[str, Any]]:
    """
    Log START/COMPLETE (or FAILED) around a block.

    The yielded dict is logged with the COMPLETE line, so the block can
    attach result counts to it. Exceptions are logged and re-raised.
    """
    data: Dict[str, Any] = {}
    log_pipeline_stage(stage_name, series_label, "START")
    started = time.perf_counter()
    try:
        yield data
    except Exception as e:
        log_pipeline_stage(
            stage_name, series_label, "FAILED",
            {'reason': type(e).__name__, 'error': str(e)},
            level="WARNING",
        )
        raise
    data['duration_ms'] = (time.perf_counter() - started) * 1000
    log_pipeline_stage(stage_name, series_label, "COMPLETE", data)
