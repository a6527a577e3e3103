"""
Remote document-reading service strategy.

The reader service fetches the page and returns a markdown rendition with a
short preamble (``Title:``, ``URL Source:``, ``Published Time:``,
``Markdown Content:``). This strategy strips the preamble, derives a title and
scores the result.
"""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import unquote, urlsplit

import structlog

from cleanread.crawler.http_client import HttpClient
from cleanread.errors import ErrorCode, ExtractionError
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

_PREAMBLE_LINE = re.compile(r"^(Title|URL Source|Published Time|Markdown Content):.*$", re.MULTILINE)
_PUBLISHED_TIME = re.compile(r"^Published Time:\s*(.+)$", re.MULTILINE)
_H1 = re.compile(r"^#\s+(.+)$", re.MULTILINE)
_ANY_HEADING = re.compile(r"^#{1,6}\s+(.+)$", re.MULTILINE)
_RECOMMENDATION_LINES = (
    re.compile(r"推荐阅读[^\n]*"),
    re.compile(r"相关文章[^\n]*"),
    re.compile(r"Recommended for you[^\n]*", re.IGNORECASE),
    re.compile(r"Related articles[^\n]*", re.IGNORECASE),
)

TITLE_PARAGRAPH_MIN_LENGTH = 10
TITLE_MAX_LENGTH = 100


def quick_clean(markdown: str) -> str:
    """Remove the reader preamble and collapse blank runs."""
    markdown = _PREAMBLE_LINE.sub("", markdown)
    markdown = re.sub(r"\n{3,}", "\n\n", markdown)
    return markdown.strip()


def remove_recommendations(markdown: str) -> str:
    for pattern in _RECOMMENDATION_LINES:
        markdown = pattern.sub("", markdown)
    markdown = re.sub(r"\n{3,}", "\n\n", markdown)
    return markdown.strip()


def derive_title(markdown: str, url: str) -> str:
    """
    Pick a title for a reader document.

    Order: first level-1 heading, first heading of any level, first
    substantial paragraph (truncated), the last URL path segment de-slugified,
    then the hostname.
    """
    match = _H1.search(markdown)
    if match:
        return match.group(1).strip()

    match = _ANY_HEADING.search(markdown)
    if match:
        return match.group(1).strip()

    for paragraph in markdown.split("\n\n"):
        text = re.sub(r"[#*`]", "", paragraph).strip()
        if len(text) > TITLE_PARAGRAPH_MIN_LENGTH:
            text = " ".join(text.split())
            if len(text) > TITLE_MAX_LENGTH:
                return text[:TITLE_MAX_LENGTH] + "..."
            return text

    parts = urlsplit(url)
    segments = [unquote(s) for s in parts.path.split("/") if s]
    if segments:
        slug = re.sub(r"\.[a-z0-9]+$", "", segments[-1], flags=re.IGNORECASE)
        words = re.sub(r"[-_]+", " ", slug).split()
        if words:
            return " ".join(word[:1].upper() + word[1:] for word in words)

    host = (parts.hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return host or "Untitled"


class RemoteReaderExtractor:
    """Delegates fetching and main-content extraction to the reader service."""

    name = ExtractionMethod.REMOTE_READER.value
    priority = 20

    def __init__(self, http_client: HttpClient) -> None:
        self.http_client = http_client
        self.logger = logger.bind(component="RemoteReaderExtractor")

    def supports(self, input: ExtractionInput) -> bool:
        return is_http_url(input)

    async def extract(self, input: ExtractionInput, options: Optional[ExtractionOptions] = None) -> ExtractedContent:
        options = options or ExtractionOptions()
        if not isinstance(input, str) or not is_http_url(input):
            raise ExtractionError(
                ErrorCode.UNSUPPORTED_FORMAT,
                "Remote reader only accepts absolute http(s) URLs",
                input=input if isinstance(input, str) else None,
            )

        if options.output_kind is not ContentKind.STRUCTURED_DOCUMENT:
            raise ExtractionError(
                ErrorCode.UNSUPPORTED_FORMAT,
                f"Remote reader only produces {ContentKind.STRUCTURED_DOCUMENT.value} output",
                input=input,
            )

        url = input.strip()
        report_progress(options, ExtractionStage.FETCHING, 20, "Requesting reader document", url)
        raw = await self.http_client.fetch_reader_document(url)

        report_progress(options, ExtractionStage.PARSING, 60, "Cleaning reader document", url)
        published = _PUBLISHED_TIME.search(raw)
        markdown = quick_clean(raw)
        if options.remove_recommendations and not options.preserve_related:
            markdown = remove_recommendations(markdown)

        if not markdown:
            raise ExtractionError(
                ErrorCode.NO_CONTENT,
                "Reader service returned an empty document",
                input=url,
                stage=ExtractionStage.PARSING,
            )

        title = derive_title(markdown, url)
        metadata = build_metadata(
            markdown,
            kind=ContentKind.STRUCTURED_DOCUMENT,
            method=ExtractionMethod.REMOTE_READER,
            published_date=published.group(1).strip() if published else None,
        )

        self.logger.debug("Reader document extracted", url=url, title=title, word_count=metadata.word_count)
        return ExtractedContent(title=title, body=markdown, kind=ContentKind.STRUCTURED_DOCUMENT, metadata=metadata)
