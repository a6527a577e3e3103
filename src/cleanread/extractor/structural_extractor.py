"""
Local structural-extraction strategy.

Parses raw markup, removes noise, merges split paragraphs, selects the main
content with readability-lxml, sanitizes it and converts it to the requested
output kind. When built with an ``HttpClient`` it also accepts absolute URLs
and fetches the page itself.
"""

from __future__ import annotations

import asyncio
import functools
from dataclasses import dataclass
from typing import List, Optional, Tuple

import structlog
from bs4 import BeautifulSoup
from readability import Document
from readability.readability import Unparseable

from cleanread.crawler.http_client import HttpClient
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
from cleanread.utils.urls import is_http_url

logger = structlog.get_logger(__name__)

POSITIVE_KEYWORDS = [
    "article", "body", "content", "entry", "hentry", "main", "page",
    "post", "text", "blog", "story",
]

NEGATIVE_KEYWORDS = [
    "combx", "comment", "com-", "contact", "foot", "footer", "footnote",
    "masthead", "media", "meta", "outbrain", "promo", "related", "scroll",
    "shoutbox", "sidebar", "sponsor", "shopping", "tags", "tool", "widget",
]

READABILITY_MIN_TEXT_LENGTH = 25


@dataclass(frozen=True)
class _Selection:
    html: str
    page: PageMetadata
    base_url: Optional[str]
    title: Optional[str] = None


class StructuralExtractor:
    """Readability-based extraction over a locally parsed document tree."""

    name = ExtractionMethod.STRUCTURAL.value
    priority = 10

    def __init__(self, fetcher: Optional[HttpClient] = None, pipeline: Optional[DomPipeline] = None) -> None:
        self.fetcher = fetcher
        self.pipeline = pipeline or DomPipeline()
        self.logger = logger.bind(component="StructuralExtractor")

    def supports(self, input: ExtractionInput) -> bool:
        if not isinstance(input, str):
            return False
        if is_http_url(input):
            return self.fetcher is not None
        return "<" in input

    async def extract(self, input: ExtractionInput, options: Optional[ExtractionOptions] = None) -> ExtractedContent:
        options = options or ExtractionOptions()
        if not isinstance(input, str):
            raise ExtractionError(
                ErrorCode.UNSUPPORTED_FORMAT,
                "Structural extractor only accepts markup strings or URLs",
                input=describe_input(input),
            )
        label = describe_input(input)

        html = input
        if is_http_url(input):
            if self.fetcher is None:
                raise ExtractionError(ErrorCode.UNSUPPORTED_FORMAT, "No page fetcher configured", input=input)
            report_progress(options, ExtractionStage.FETCHING, 15, "Fetching page", input)
            response = await self.fetcher.fetch_html(input.strip())
            html = response.text
            options = options.with_updates(base_url=options.base_url or response.final_url)

        if not html.strip():
            raise ExtractionError(ErrorCode.PARSE_FAILED, "Empty markup", input=label, stage=ExtractionStage.PARSING)

        # Parsing and readability scoring are CPU bound
        loop = asyncio.get_running_loop()

        report_progress(options, ExtractionStage.PARSING, 30, "Parsing and filtering document", input)
        selection = await loop.run_in_executor(None, functools.partial(self._select_content, html, options, label))

        report_progress(options, ExtractionStage.CONVERTING, 70, "Converting main content", input)
        body, kind = await loop.run_in_executor(
            None, functools.partial(self._render, selection.html, options, selection.base_url)
        )

        page = selection.page
        title = pick_title(selection.title, page.title, page.heading)
        metadata = build_metadata(
            body,
            kind=kind,
            method=ExtractionMethod.STRUCTURAL,
            author=page.author,
            language=page.language,
            published_date=page.published_date,
        )

        self.logger.debug(
            "Structural extraction completed",
            input=label,
            title=title,
            word_count=metadata.word_count,
            quality=metadata.source_quality.value,
        )
        return ExtractedContent(title=title, body=body, kind=kind, metadata=metadata)

    def _select_content(self, html: str, options: ExtractionOptions, label: str) -> _Selection:
        soup = BeautifulSoup(html, "lxml")

        page = read_page_metadata(soup)
        base_url = self.pipeline.base_url_for(options, page)
        site_rule = self.pipeline.site_rule_for(options, base_url)

        self.pipeline.clean(soup, options, site_rule)

        if site_rule and site_rule.content_selector:
            selected = soup.select_one(site_rule.content_selector)
            if selected is not None and visible_length(selected) >= max(options.min_content_length, 1):
                self.logger.debug("Site rule selected content", selector=site_rule.content_selector)
                return _Selection(html=str(selected), page=page, base_url=base_url)

        try:
            document = Document(
                str(soup),
                url=base_url,
                min_text_length=READABILITY_MIN_TEXT_LENGTH,
                retry_length=max(options.min_content_length, 1),
                positive_keywords=POSITIVE_KEYWORDS,
                negative_keywords=self._negative_keywords(options),
            )
            summary = document.summary(html_partial=True)
            title = document.short_title() or document.title()
        except Unparseable as e:
            raise ExtractionError(
                ErrorCode.PARSE_FAILED,
                f"Main content could not be parsed: {e}",
                input=label,
                stage=ExtractionStage.PARSING,
                cause=e,
            ) from e

        length = visible_length(BeautifulSoup(summary or "", "lxml"))
        if length == 0 or length < options.min_content_length:
            raise ExtractionError(
                ErrorCode.NO_CONTENT,
                f"Main content too short ({length} < {options.min_content_length} characters)",
                input=label,
                stage=ExtractionStage.PARSING,
            )
        return _Selection(html=summary, page=page, base_url=base_url, title=title)

    @staticmethod
    def _negative_keywords(options: ExtractionOptions) -> List[str]:
        keywords = list(NEGATIVE_KEYWORDS)
        if options.preserve_comments:
            keywords = [k for k in keywords if k not in ("comment", "combx")]
        if options.keep_recommendations:
            keywords = [k for k in keywords if k != "related"]
        return keywords

    def _render(self, content_html: str, options: ExtractionOptions, base_url: Optional[str]) -> Tuple[str, ContentKind]:
        body, kind = self.pipeline.render(BeautifulSoup(content_html, "lxml"), options, base_url)
        if not body.strip():
            raise ExtractionError(ErrorCode.NO_CONTENT, "Nothing left after sanitizing", stage=ExtractionStage.CONVERTING)
        return body, kind
