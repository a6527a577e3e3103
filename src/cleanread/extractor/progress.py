"""
Best-effort callback dispatch.

Callbacks belong to the caller; an exception raised inside one is logged and
never changes the outcome of an extraction.
"""

from __future__ import annotations

from typing import Optional

import structlog

from cleanread.errors import ExtractionError, describe_input
from cleanread.protocols import ExtractionInput, ExtractionOptions, ExtractionProgress, ExtractionStage

logger = structlog.get_logger(__name__)


def report_progress(
    options: ExtractionOptions,
    stage: ExtractionStage,
    percent: int,
    message: str = "",
    input: Optional[ExtractionInput] = None,
) -> None:
    if options.on_progress is None:
        return
    progress = ExtractionProgress(
        stage=stage,
        percent=percent,
        message=message,
        current_input=describe_input(input) if input is not None else None,
    )
    try:
        options.on_progress(progress)
    except Exception as e:
        logger.warning("Progress callback raised", stage=stage.value, error=str(e), error_type=type(e).__name__)


def report_error(options: ExtractionOptions, error: ExtractionError) -> None:
    if options.on_error is None:
        return
    try:
        options.on_error(error)
    except Exception as e:
        logger.warning("Error callback raised", code=error.code.value, error=str(e), error_type=type(e).__name__)
