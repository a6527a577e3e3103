"""
Live-document strategy for callers that already hold a parsed tree
(for example a page rendered by a headless browser and re-parsed).
"""

from __future__ import annotations

import asyncio
import copy
import functools
from typing import Optional, Tuple

import structlog
from bs4 import BeautifulSoup, Tag

from cleanread.errors import ErrorCode, ExtractionError, describe_input
from cleanread.extractor.dom_pipeline import DomPipeline, PageMetadata, pick_title, read_page_metadata, visible_length
from cleanread.extractor.progress import report_progress
from cleanread.extractor.scoring import build_metadata
from cleanread.protocols import (
    ContentKind,
    ExtractedContent,
    ExtractionInput,
    ExtractionMethod,
    ExtractionOptions,
    ExtractionStage,
)

logger = structlog.get_logger(__name__)

# Tried in order; the first container with enough text wins.
CONTENT_SELECTORS = (
    "article",
    '[role="main"]',
    "main",
    ".article-content",
    ".post-content",
    ".entry-content",
    ".content",
    "#content",
    ".markdown-body",
)


class LiveDocumentExtractor:
    """Selector-ranked extraction over an already parsed document."""

    name = ExtractionMethod.LIVE_DOCUMENT.value
    priority = 5

    def __init__(self, pipeline: Optional[DomPipeline] = None) -> None:
        self.pipeline = pipeline or DomPipeline()
        self.logger = logger.bind(component="LiveDocumentExtractor")

    def supports(self, input: ExtractionInput) -> bool:
        return isinstance(input, BeautifulSoup)

    async def extract(self, input: ExtractionInput, options: Optional[ExtractionOptions] = None) -> ExtractedContent:
        options = options or ExtractionOptions()
        if not isinstance(input, BeautifulSoup):
            raise ExtractionError(
                ErrorCode.UNSUPPORTED_FORMAT,
                "Live-document extractor only accepts parsed documents",
                input=describe_input(input),
            )

        # The caller's tree is never modified
        document = copy.copy(input)

        report_progress(options, ExtractionStage.FILTERING, 30, "Filtering document", input)
        loop = asyncio.get_running_loop()
        body, kind, page = await loop.run_in_executor(None, functools.partial(self._run, document, options))

        title = pick_title(page.heading, page.title)
        metadata = build_metadata(
            body,
            kind=kind,
            method=ExtractionMethod.LIVE_DOCUMENT,
            author=page.author,
            language=page.language,
            published_date=page.published_date,
        )
        self.logger.debug("Live document extracted", title=title, word_count=metadata.word_count)
        return ExtractedContent(title=title, body=body, kind=kind, metadata=metadata)

    def _run(self, document: BeautifulSoup, options: ExtractionOptions) -> Tuple[str, ContentKind, PageMetadata]:
        page = read_page_metadata(document)
        base_url = self.pipeline.base_url_for(options, page)
        site_rule = self.pipeline.site_rule_for(options, base_url)

        self.pipeline.clean(document, options, site_rule)

        content = self.select_main_content(document, options.min_content_length, site_rule and site_rule.content_selector)
        if content is None:
            raise ExtractionError(
                ErrorCode.NO_CONTENT,
                f"No content container reached {options.min_content_length} characters",
                input=describe_input(document),
                stage=ExtractionStage.PARSING,
            )

        body, kind = self.pipeline.render(content, options, base_url)
        if not body.strip():
            raise ExtractionError(ErrorCode.NO_CONTENT, "Nothing left after sanitizing", stage=ExtractionStage.CONVERTING)
        return body, kind, page

    @staticmethod
    def select_main_content(
        document: BeautifulSoup, min_length: int, preferred_selector: Optional[str] = None
    ) -> Optional[Tag]:
        """First ranked container whose text reaches ``min_length``, else the body."""
        selectors = ((preferred_selector,) if preferred_selector else ()) + CONTENT_SELECTORS
        threshold = max(min_length, 1)
        for selector in selectors:
            element = document.select_one(selector)
            if element is not None and visible_length(element) >= threshold:
                return element

        body = document.body or document
        if visible_length(body) >= threshold:
            return body
        return None
