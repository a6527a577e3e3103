"""
Core contracts and data structures for cleanread.

This module defines the data model shared by every extraction strategy, the
cache layer and the manager:

- Enums describing result kinds, quality tiers, strategies and pipeline stages
- Immutable result dataclasses (plain data, safe to serialize)
- The ``ExtractionOptions`` value object passed into every extraction call
- ``Extractor`` and ``CacheStrategy`` protocols for pluggable implementations
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Protocol, Tuple, Union, runtime_checkable

from bs4 import BeautifulSoup

if TYPE_CHECKING:
    from cleanread.errors import ExtractionError

# ============================================================================
# Enums
# ============================================================================


class ContentKind(Enum):
    """Format of an extracted body."""

    STRUCTURED_DOCUMENT = "structured-document"
    PLAIN_TEXT = "plain-text"
    RAW_MARKUP = "raw-markup"


class SourceQuality(Enum):
    """Coarse quality tier derived from the final body."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ExtractionMethod(Enum):
    """Identifies the strategy that produced a result."""

    REMOTE_READER = "remote-reader"
    STRUCTURAL = "structural"
    LIVE_DOCUMENT = "live-document"


class ExtractionStage(Enum):
    """Pipeline stages reported through progress callbacks."""

    FETCHING = "fetching"
    PARSING = "parsing"
    FILTERING = "filtering"
    CONVERTING = "converting"
    COMPLETE = "complete"


# An extraction input is an absolute URL, raw markup, or an already parsed document.
ExtractionInput = Union[str, BeautifulSoup]


# ============================================================================
# Result dataclasses
# ============================================================================


@dataclass(frozen=True, slots=True)
class ContentMetadata:
    """
    Quality metadata for an extracted body.

    Instances are built by ``cleanread.extractor.scoring.build_metadata`` so that
    ``source_quality`` is always derived from the body it describes.
    """

    word_count: int
    reading_time_minutes: int
    image_count: int
    link_count: int
    code_block_count: int
    source_quality: SourceQuality
    extracted_at: int  # epoch milliseconds
    extraction_method: ExtractionMethod
    author: Optional[str] = None
    language: Optional[str] = None
    published_date: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate counters."""
        for name in ("word_count", "reading_time_minutes", "image_count", "link_count", "code_block_count"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "word_count": self.word_count,
            "reading_time_minutes": self.reading_time_minutes,
            "image_count": self.image_count,
            "link_count": self.link_count,
            "code_block_count": self.code_block_count,
            "source_quality": self.source_quality.value,
            "extracted_at": self.extracted_at,
            "extraction_method": self.extraction_method.value,
            "author": self.author,
            "language": self.language,
            "published_date": self.published_date,
        }


@dataclass(frozen=True, slots=True)
class ExtractedContent:
    """Result of a single extraction: title, canonical body and metadata."""

    title: str
    body: str
    kind: ContentKind
    metadata: ContentMetadata

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "title": self.title,
            "body": self.body,
            "kind": self.kind.value,
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ExtractedContent:
        """
        Rebuild from ``to_dict`` output.

        Metadata is recomputed from the stored body; only the provenance fields
        (timestamp, method, author, language, date) are taken from the payload.
        """
        from cleanread.extractor.scoring import build_metadata

        kind = ContentKind(data["kind"])
        meta = data.get("metadata") or {}
        metadata = build_metadata(
            data["body"],
            kind=kind,
            method=ExtractionMethod(meta["extraction_method"]),
            author=meta.get("author"),
            language=meta.get("language"),
            published_date=meta.get("published_date"),
            extracted_at=meta.get("extracted_at"),
        )
        return cls(title=data["title"], body=data["body"], kind=kind, metadata=metadata)


@dataclass(frozen=True, slots=True)
class ExtractionProgress:
    """Immutable progress snapshot emitted through ``on_progress``."""

    stage: ExtractionStage
    percent: int
    message: str = ""
    current_input: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "percent", max(0, min(100, int(self.percent))))


@dataclass(frozen=True, slots=True)
class FailedExtraction:
    """One failed item of a batch."""

    input: str
    error: ExtractionError


@dataclass(frozen=True, slots=True)
class BatchExtractionResult:
    """Outcome of a batch call. Built once, never mutated."""

    successful: Tuple[ExtractedContent, ...]
    failed: Tuple[FailedExtraction, ...]
    total_processed: int
    total_elapsed_ms: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "successful": [item.to_dict() for item in self.successful],
            "failed": [{"input": item.input, "error": item.error.to_dict()} for item in self.failed],
            "total_processed": self.total_processed,
            "total_elapsed_ms": self.total_elapsed_ms,
        }


# ============================================================================
# Options
# ============================================================================

DocumentHook = Callable[[BeautifulSoup], None]
ProgressCallback = Callable[[ExtractionProgress], None]
ErrorCallback = Callable[["ExtractionError"], None]


@dataclass(frozen=True)
class SiteRule:
    """Per-hostname override applied by the DOM-based strategies."""

    content_selector: Optional[str] = None
    remove_selectors: Tuple[str, ...] = ()
    transform: Optional[DocumentHook] = None
    content_callback: Optional[DocumentHook] = None


@dataclass(frozen=True)
class ExtractionOptions:
    """
    Configuration value object passed by value into every extraction call.

    Use ``with_updates`` to derive a modified copy; instances are never mutated.
    """

    min_content_length: int = 500
    preserve_classes: FrozenSet[str] = frozenset()
    remove_recommendations: bool = True
    aggressive_noise_removal: bool = False
    preserve_comments: bool = False
    preserve_related: bool = False
    custom_selectors: Tuple[str, ...] = ()
    site_rules: Mapping[str, SiteRule] = field(default_factory=dict)
    cache_enabled: bool = True
    cache_ttl: float = 3600.0  # seconds
    max_concurrency: int = 5
    output_kind: ContentKind = ContentKind.STRUCTURED_DOCUMENT
    base_url: Optional[str] = None
    on_progress: Optional[ProgressCallback] = None
    on_error: Optional[ErrorCallback] = None

    def __post_init__(self) -> None:
        if self.min_content_length < 0:
            raise ValueError("min_content_length cannot be negative")
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if self.cache_ttl <= 0:
            raise ValueError("cache_ttl must be positive")
        # Normalize containers so callers may pass lists or sets.
        object.__setattr__(self, "preserve_classes", frozenset(self.preserve_classes))
        object.__setattr__(self, "custom_selectors", tuple(self.custom_selectors))

    def with_updates(self, **changes: Any) -> ExtractionOptions:
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    @property
    def keep_recommendations(self) -> bool:
        """Recommendation blocks survive when either toggle asks for them."""
        return self.preserve_related or not self.remove_recommendations

    def site_rule_for(self, hostname: str) -> Optional[SiteRule]:
        """Look up the site rule for a hostname, tolerating a leading ``www.``."""
        if not hostname or not self.site_rules:
            return None
        hostname = hostname.lower()
        rule = self.site_rules.get(hostname)
        if rule is None and hostname.startswith("www."):
            rule = self.site_rules.get(hostname[4:])
        return rule

    def fingerprint(self) -> str:
        """Short stable hash of the option fields that affect output."""
        payload = {
            "min_content_length": self.min_content_length,
            "aggressive": self.aggressive_noise_removal,
            "comments": self.preserve_comments,
            "related": self.keep_recommendations,
            "output_kind": self.output_kind.value,
            "preserve_classes": sorted(self.preserve_classes),
            "custom_selectors": list(self.custom_selectors),
            "site_rules": {host: _site_rule_key(rule) for host, rule in self.site_rules.items()},
        }
        digest = hashlib.sha256(json.dumps(payload, sort_keys=True).encode("utf-8"))
        return digest.hexdigest()[:16]


def _hook_name(hook: Optional[DocumentHook]) -> Optional[str]:
    if hook is None:
        return None
    return f"{getattr(hook, '__module__', '')}.{getattr(hook, '__qualname__', type(hook).__name__)}"


def _site_rule_key(rule: SiteRule) -> List[Any]:
    # Hooks are identified by name; two different lambdas in one scope share a key
    return [
        rule.content_selector,
        list(rule.remove_selectors),
        _hook_name(rule.transform),
        _hook_name(rule.content_callback),
    ]


# ============================================================================
# Protocols
# ============================================================================


@runtime_checkable
class Extractor(Protocol):
    """Pluggable input-to-ExtractedContent strategy."""

    name: str
    priority: int

    def supports(self, input: ExtractionInput) -> bool:
        """Cheap predicate; a strategy that declines is skipped at zero cost."""
        ...

    async def extract(self, input: ExtractionInput, options: ExtractionOptions) -> ExtractedContent:
        """Run the full pipeline or raise ``ExtractionError``."""
        ...


@runtime_checkable
class CacheStrategy(Protocol):
    """Asynchronous key/value store for extraction results."""

    async def get(self, key: str) -> Optional[ExtractedContent]: ...

    async def set(self, key: str, value: ExtractedContent, ttl: Optional[float] = None) -> None: ...

    async def has(self, key: str) -> bool: ...

    async def delete(self, key: str) -> None: ...

    async def clear(self) -> None: ...

    async def size(self) -> int: ...
