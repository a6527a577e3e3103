"""
Error taxonomy for the extraction pipeline.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from cleanread.protocols import ExtractionStage


class ErrorCode(str, Enum):
    """Failure categories surfaced by strategies and the manager."""

    FETCH_FAILED = "FETCH_FAILED"
    PARSE_FAILED = "PARSE_FAILED"
    NO_CONTENT = "NO_CONTENT"
    INVALID_URL = "INVALID_URL"
    TIMEOUT = "TIMEOUT"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"


_RETRYABLE_CODES = frozenset({ErrorCode.FETCH_FAILED, ErrorCode.TIMEOUT})


class ExtractionError(Exception):
    """
    Structured extraction failure.

    Carries enough context for the manager to log it, record it as the last
    error of a fallback chain, and report it to the caller.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        *,
        input: Optional[str] = None,
        stage: Optional[ExtractionStage] = None,
        cause: Optional[BaseException] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.input = input
        self.stage = stage
        self.cause = cause
        self.status_code = status_code

    @property
    def is_retryable(self) -> bool:
        """Transient network failures may succeed on a later attempt."""
        return self.code in _RETRYABLE_CODES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "input": self.input,
            "stage": self.stage.value if self.stage else None,
            "cause": f"{type(self.cause).__name__}: {self.cause}" if self.cause else None,
            "status_code": self.status_code,
        }

    def __repr__(self) -> str:
        return f"ExtractionError(code={self.code.value!r}, message={self.message!r}, input={self.input!r})"


def describe_input(value: Any, limit: int = 120) -> str:
    """Short printable form of an extraction input for logs and error records."""
    if isinstance(value, str):
        text = " ".join(value.split())
        return text if len(text) <= limit else text[: limit - 3] + "..."
    return f"<{type(value).__name__}>"
