"""
Shared metadata scoring.

Every strategy builds its ``ContentMetadata`` here, so results are comparable
no matter which strategy served them. Quality is always derived from the
final body.
"""

from __future__ import annotations

import math
import re
import time
from dataclasses import dataclass
from typing import Optional

from bs4 import BeautifulSoup

from cleanread.protocols import ContentKind, ContentMetadata, ExtractionMethod, SourceQuality

CJK_CHAR = re.compile(r"[一-龥]")
LATIN_WORD = re.compile(r"[a-zA-Z]+")

CJK_CHARS_PER_MINUTE = 400
WORDS_PER_MINUTE = 200

HIGH_QUALITY_SCORE = 7
MEDIUM_QUALITY_SCORE = 4

_MD_IMAGE = re.compile(r"!\[([^\]]*)\]\(([^)]+)\)")
_MD_LINK = re.compile(r"(?<!!)\[([^\]]*)\]\(([^)]+)\)")
_MD_AUTOLINK = re.compile(r"<https?://[^>\s]+>")
_MD_CODE_BLOCK = re.compile(r"```[\s\S]*?```")
_MD_HEADING = re.compile(r"^#{1,6}\s", re.MULTILINE)
_MD_LIST = re.compile(r"^\s*(?:[-*+]|\d+\.)\s", re.MULTILINE)
_MD_QUOTE = re.compile(r"^>", re.MULTILINE)
_MD_LINK_TARGET = re.compile(r"\]\([^)]*\)")


@dataclass(frozen=True)
class _Features:
    text: str
    images: int
    links: int
    code_blocks: int
    has_heading: bool
    has_list: bool
    has_quote: bool


def _markdown_features(body: str) -> _Features:
    return _Features(
        text=_MD_LINK_TARGET.sub("]", body),
        images=len(_MD_IMAGE.findall(body)),
        links=len(_MD_LINK.findall(body)) + len(_MD_AUTOLINK.findall(body)),
        code_blocks=len(_MD_CODE_BLOCK.findall(body)),
        has_heading=bool(_MD_HEADING.search(body)),
        has_list=bool(_MD_LIST.search(body)),
        has_quote=bool(_MD_QUOTE.search(body)),
    )


def _markup_features(body: str) -> _Features:
    soup = BeautifulSoup(body, "lxml")
    return _Features(
        text=soup.get_text(" "),
        images=len(soup.find_all("img")),
        links=len(soup.find_all("a")),
        code_blocks=len(soup.find_all("pre")),
        has_heading=soup.find(re.compile(r"^h[1-6]$")) is not None,
        has_list=soup.find(["ul", "ol"]) is not None,
        has_quote=soup.find("blockquote") is not None,
    )


def _text_features(body: str) -> _Features:
    return _Features(body, 0, 0, 0, False, False, False)


def count_words(text: str) -> int:
    """CJK characters plus Latin-script words."""
    return len(CJK_CHAR.findall(text)) + len(LATIN_WORD.findall(text))


def reading_time_minutes(text: str) -> int:
    cjk = len(CJK_CHAR.findall(text))
    words = len(LATIN_WORD.findall(text))
    return math.ceil(cjk / CJK_CHARS_PER_MINUTE + words / WORDS_PER_MINUTE)


def assess_quality(body: str, features: _Features, author: Optional[str] = None) -> SourceQuality:
    score = 0
    if features.has_heading:
        score += 2
    if features.code_blocks:
        score += 1
    if features.has_list:
        score += 1
    if features.has_quote:
        score += 1
    if features.images:
        score += 1

    length = len(body)
    if length > 2000:
        score += 2
    elif length > 1000:
        score += 1

    paragraphs = [block for block in re.split(r"\n\s*\n", body) if block.strip()]
    if len(paragraphs) > 3:
        score += 1

    if author:
        score += 1

    if score >= HIGH_QUALITY_SCORE:
        return SourceQuality.HIGH
    if score >= MEDIUM_QUALITY_SCORE:
        return SourceQuality.MEDIUM
    return SourceQuality.LOW


def build_metadata(
    body: str,
    *,
    kind: ContentKind,
    method: ExtractionMethod,
    author: Optional[str] = None,
    language: Optional[str] = None,
    published_date: Optional[str] = None,
    extracted_at: Optional[int] = None,
) -> ContentMetadata:
    """Compute counters, reading time and the quality tier for a final body."""
    if kind is ContentKind.STRUCTURED_DOCUMENT:
        features = _markdown_features(body)
    elif kind is ContentKind.RAW_MARKUP:
        features = _markup_features(body)
    else:
        features = _text_features(body)

    return ContentMetadata(
        word_count=count_words(features.text),
        reading_time_minutes=reading_time_minutes(features.text),
        image_count=features.images,
        link_count=features.links,
        code_block_count=features.code_blocks,
        source_quality=assess_quality(body, features, author),
        extracted_at=extracted_at if extracted_at is not None else int(time.time() * 1000),
        extraction_method=method,
        author=author or None,
        language=language or None,
        published_date=published_date or None,
    )
