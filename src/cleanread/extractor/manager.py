"""
ExtractionManager for cleanread.

Orchestrates the registered strategies in descending priority order with
fallback, result caching and bounded-concurrency batch extraction.
"""

from __future__ import annotations

import asyncio
import hashlib
import time
import uuid
from typing import Dict, Iterable, List, Optional, Sequence, Set

import structlog
from bs4 import BeautifulSoup

from cleanread.errors import ErrorCode, ExtractionError, describe_input
from cleanread.extractor.progress import report_error, report_progress
from cleanread.protocols import (
    BatchExtractionResult,
    CacheStrategy,
    ExtractedContent,
    ExtractionInput,
    ExtractionOptions,
    ExtractionStage,
    Extractor,
    FailedExtraction,
)
from cleanread.utils.urls import is_http_url, normalize_url

logger = structlog.get_logger(__name__)


class ExtractionManager:
    """
    Runs extraction strategies as an ordered fallback chain.

    Features:
    - Strategies sorted by descending priority, ties kept in registration order
    - Strategies that decline an input are skipped without being invoked
    - Result cache keyed by normalized input and output-affecting options
    - Detached, failure-tolerant cache writes
    - Bounded-concurrency batches that never raise
    - Per-strategy performance metrics
    """

    def __init__(
        self,
        extractors: Iterable[Extractor] = (),
        cache: Optional[CacheStrategy] = None,
        *,
        max_concurrency: int = 5,
    ) -> None:
        """
        Initialize the ExtractionManager.

        Args:
            extractors: Strategies to register, in registration order
            cache: Optional result cache
            max_concurrency: Default batch concurrency when options do not override it
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")

        self.cache = cache
        self.max_concurrency = max_concurrency
        self.logger = logger.bind(component="ExtractionManager")

        self._extractors: List[Extractor] = []
        self._extraction_metrics: Dict[str, Dict[str, float]] = {}
        self._background_tasks: Set[asyncio.Task] = set()

        for extractor in extractors:
            self.register_extractor(extractor)

    # ------------------------------------------------------------------
    # Registration and cache management
    # ------------------------------------------------------------------

    def register_extractor(self, extractor: Extractor) -> None:
        """Add a strategy; the chain is re-sorted by descending priority."""
        self._extractors.append(extractor)
        # sorted() is stable, so equal priorities keep registration order
        self._extractors = sorted(self._extractors, key=lambda e: -e.priority)
        self._extraction_metrics.setdefault(
            extractor.name, {"attempts": 0, "successes": 0, "failures": 0, "total_time": 0.0}
        )
        self.logger.debug("Extractor registered", extractor=extractor.name, priority=extractor.priority)

    @property
    def extractors(self) -> Sequence[Extractor]:
        return tuple(self._extractors)

    def set_cache(self, cache: Optional[CacheStrategy]) -> None:
        self.cache = cache

    async def clear_cache(self) -> None:
        if self.cache is not None:
            await self.cache.clear()

    async def cache_size(self) -> int:
        if self.cache is None:
            return 0
        return await self.cache.size()

    @staticmethod
    def cache_key(input: ExtractionInput, options: ExtractionOptions) -> str:
        """Key from the normalized input and the hash of output-affecting options."""
        if isinstance(input, str) and is_http_url(input):
            normalized = normalize_url(input)
        elif isinstance(input, str):
            normalized = "html:" + hashlib.sha256(input.encode("utf-8")).hexdigest()
        else:
            normalized = "doc:" + hashlib.sha256(str(input).encode("utf-8")).hexdigest()

        # The same markup resolves links differently under another base URL
        if options.base_url and not (isinstance(input, str) and is_http_url(input)):
            normalized += "@" + normalize_url(options.base_url)

        return f"{normalized}::{options.fingerprint()}"

    # ------------------------------------------------------------------
    # Single extraction
    # ------------------------------------------------------------------

    async def extract(self, input: ExtractionInput, options: Optional[ExtractionOptions] = None) -> ExtractedContent:
        """
        Extract content with the first strategy that succeeds.

        Raises:
            ExtractionError: ``EXTRACTION_FAILED`` when every eligible strategy
                failed or none supports the input. The message is the last
                strategy error's message.
        """
        options = options or ExtractionOptions()
        label = describe_input(input)
        cache_key = self.cache_key(input, options) if options.cache_enabled and self.cache is not None else None

        if cache_key is not None:
            cached = await self._cache_get(cache_key)
            if cached is not None:
                self.logger.debug("Cache hit", input=label)
                report_progress(options, ExtractionStage.COMPLETE, 100, "Served from cache", input)
                return cached

        last_error: Optional[ExtractionError] = None

        for extractor in self._extractors:
            if not extractor.supports(input):
                continue

            report_progress(options, ExtractionStage.FETCHING, 5, f"Trying {extractor.name}", input)

            metrics = self._extraction_metrics.setdefault(
                extractor.name, {"attempts": 0, "successes": 0, "failures": 0, "total_time": 0.0}
            )
            metrics["attempts"] += 1
            start_time = time.monotonic()

            try:
                self.logger.debug("Attempting extraction", extractor=extractor.name, input=label)
                result = await extractor.extract(input, options)
            except Exception as e:
                # CancelledError is not an Exception subclass and propagates without fallback
                metrics["total_time"] += time.monotonic() - start_time
                metrics["failures"] += 1
                last_error = self._as_extraction_error(e, label)
                self.logger.warning(
                    "Extractor failed",
                    event_type="extractor_failed",
                    extractor=extractor.name,
                    input=label,
                    error=str(e),
                    error_type=type(e).__name__,
                    code=last_error.code.value,
                )
                continue

            metrics["total_time"] += time.monotonic() - start_time
            metrics["successes"] += 1

            self.logger.info(
                "Extraction completed",
                extractor=extractor.name,
                input=label,
                title=result.title,
                word_count=result.metadata.word_count,
                quality=result.metadata.source_quality.value,
            )

            if cache_key is not None:
                self._schedule_cache_write(cache_key, result, options.cache_ttl)

            report_progress(options, ExtractionStage.COMPLETE, 100, "Extraction complete", input)
            return result

        message = last_error.message if last_error else "No suitable extractor found"
        error = ExtractionError(
            ErrorCode.EXTRACTION_FAILED,
            message,
            input=label,
            stage=last_error.stage if last_error else None,
            cause=last_error,
            status_code=last_error.status_code if last_error else None,
        )
        self.logger.warning("All extractors failed", input=label, error=message)
        report_error(options, error)
        raise error

    async def extract_from_url(self, url: str, options: Optional[ExtractionOptions] = None) -> ExtractedContent:
        if not is_http_url(url):
            raise ExtractionError(ErrorCode.INVALID_URL, f"Not an absolute http(s) URL: {url}", input=describe_input(url))
        return await self.extract(url.strip(), options)

    async def extract_from_html(
        self, html: str, url: Optional[str] = None, options: Optional[ExtractionOptions] = None
    ) -> ExtractedContent:
        options = options or ExtractionOptions()
        if url:
            options = options.with_updates(base_url=url)
        return await self.extract(html, options)

    async def extract_from_document(
        self, document: BeautifulSoup, options: Optional[ExtractionOptions] = None
    ) -> ExtractedContent:
        return await self.extract(document, options)

    # ------------------------------------------------------------------
    # Batch extraction
    # ------------------------------------------------------------------

    async def extract_batch(
        self, inputs: Sequence[ExtractionInput], options: Optional[ExtractionOptions] = None
    ) -> BatchExtractionResult:
        """
        Extract every input with at most ``options.max_concurrency`` running at once.

        Never raises for per-item failures; they are collected in ``failed``.
        Progress is reported once per completed item.
        """
        options = options or ExtractionOptions(max_concurrency=self.max_concurrency)
        total = len(inputs)
        start = time.monotonic()

        if total == 0:
            return BatchExtractionResult(successful=(), failed=(), total_processed=0, total_elapsed_ms=0)

        semaphore = asyncio.Semaphore(options.max_concurrency)
        # Per-item progress is replaced by batch progress below
        item_options = options.with_updates(on_progress=None)
        completed = 0

        batch_id = uuid.uuid4().hex[:12]
        structlog.contextvars.bind_contextvars(batch_id=batch_id)
        self.logger.info("Batch started", size=total, max_concurrency=options.max_concurrency)

        async def run_one(item: ExtractionInput) -> ExtractedContent:
            nonlocal completed
            try:
                async with semaphore:
                    return await self.extract(item, item_options)
            finally:
                completed += 1
                report_progress(
                    options,
                    ExtractionStage.COMPLETE if completed == total else ExtractionStage.FETCHING,
                    int(completed * 100 / total),
                    f"Processed {completed}/{total}",
                    item,
                )

        try:
            outcomes = await asyncio.gather(*(run_one(item) for item in inputs), return_exceptions=True)
        finally:
            structlog.contextvars.unbind_contextvars("batch_id")

        successful: List[ExtractedContent] = []
        failed: List[FailedExtraction] = []
        for item, outcome in zip(inputs, outcomes):
            if isinstance(outcome, ExtractedContent):
                successful.append(outcome)
            elif isinstance(outcome, ExtractionError):
                failed.append(FailedExtraction(input=describe_input(item), error=outcome))
            else:
                label = describe_input(item)
                failed.append(FailedExtraction(input=label, error=self._as_extraction_error(outcome, label)))

        elapsed_ms = int((time.monotonic() - start) * 1000)
        self.logger.info(
            "Batch finished",
            batch_id=batch_id,
            successful=len(successful),
            failed=len(failed),
            elapsed_ms=elapsed_ms,
        )
        return BatchExtractionResult(
            successful=tuple(successful),
            failed=tuple(failed),
            total_processed=total,
            total_elapsed_ms=elapsed_ms,
        )

    # ------------------------------------------------------------------
    # Cache plumbing
    # ------------------------------------------------------------------

    async def _cache_get(self, key: str) -> Optional[ExtractedContent]:
        assert self.cache is not None
        try:
            return await self.cache.get(key)
        except Exception as e:
            self.logger.warning("Cache read failed", error=str(e), error_type=type(e).__name__)
            return None

    def _schedule_cache_write(self, key: str, value: ExtractedContent, ttl: float) -> None:
        assert self.cache is not None
        try:
            task = asyncio.create_task(self.cache.set(key, value, ttl))
        except Exception as e:
            self.logger.warning("Cache write failed", error=str(e), error_type=type(e).__name__)
            return
        self._background_tasks.add(task)
        task.add_done_callback(self._on_cache_write_done)

    def _on_cache_write_done(self, task: asyncio.Task) -> None:
        self._background_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.logger.warning("Cache write failed", error=str(error), error_type=type(error).__name__)

    async def flush(self) -> None:
        """Wait for pending cache writes. Failures stay logged, never raised."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    async def aclose(self) -> None:
        await self.flush()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _as_extraction_error(error: BaseException, label: str) -> ExtractionError:
        if isinstance(error, ExtractionError):
            return error
        if isinstance(error, asyncio.TimeoutError):
            return ExtractionError(ErrorCode.TIMEOUT, str(error) or "Operation timed out", input=label, cause=error)
        return ExtractionError(
            ErrorCode.EXTRACTION_FAILED,
            str(error) or type(error).__name__,
            input=label,
            cause=error,
        )

    def get_metrics(self) -> Dict[str, Dict[str, float]]:
        """
        Get extraction performance metrics.

        Returns:
            Dictionary of metrics per extractor
        """
        metrics = {}

        for extractor_name, raw_metrics in self._extraction_metrics.items():
            attempts = raw_metrics["attempts"]
            successes = raw_metrics["successes"]
            total_time = raw_metrics["total_time"]

            metrics[extractor_name] = {
                "attempts": attempts,
                "successes": successes,
                "failures": raw_metrics["failures"],
                "success_rate": successes / attempts if attempts > 0 else 0.0,
                "total_time": total_time,
                "avg_time": total_time / attempts if attempts > 0 else 0.0,
            }

        return metrics
