"""
cleanread: main-content extraction for web pages.

Turns a URL, raw markup or a parsed document into a clean markdown (or plain
text, or sanitized HTML) body with a title and quality metadata, using a
prioritized chain of extraction strategies.
"""

from cleanread.errors import ErrorCode, ExtractionError
from cleanread.protocols import (
    BatchExtractionResult,
    ContentKind,
    ContentMetadata,
    ExtractedContent,
    ExtractionMethod,
    ExtractionOptions,
    ExtractionProgress,
    ExtractionStage,
    FailedExtraction,
    SiteRule,
    SourceQuality,
)

__version__ = "0.1.0"

__all__ = [
    "BatchExtractionResult",
    "ContentKind",
    "ContentMetadata",
    "ErrorCode",
    "ExtractedContent",
    "ExtractionError",
    "ExtractionMethod",
    "ExtractionOptions",
    "ExtractionProgress",
    "ExtractionStage",
    "FailedExtraction",
    "SiteRule",
    "SourceQuality",
    "__version__",
]
