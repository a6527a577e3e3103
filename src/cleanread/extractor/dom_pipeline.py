"""
Stages shared by the DOM-based strategies: page metadata, site-rule lookup,
noise filtering, paragraph optimization, sanitizing and rendering.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from bs4 import BeautifulSoup, Tag

from cleanread.converters.markdown_converter import DocumentConverter
from cleanread.extractor.sanitizer import sanitize
from cleanread.filters.noise_filter import NoiseFilter
from cleanread.filters.paragraph_optimizer import ParagraphOptimizer
from cleanread.protocols import ContentKind, ExtractionOptions, SiteRule
from cleanread.utils.urls import hostname_of, is_http_url

NO_TITLE = "Untitled"


@dataclass(frozen=True)
class PageMetadata:
    """Document-level facts read before filtering removes the page chrome."""

    title: Optional[str] = None
    heading: Optional[str] = None
    author: Optional[str] = None
    language: Optional[str] = None
    published_date: Optional[str] = None
    canonical_url: Optional[str] = None


def _meta_content(soup: BeautifulSoup, selector: str) -> Optional[str]:
    tag = soup.select_one(selector)
    if tag is None:
        return None
    value = (tag.get("content") or "").strip()
    return value or None


def _text_of(tag: Optional[Tag]) -> Optional[str]:
    if tag is None:
        return None
    text = " ".join(tag.get_text(" ").split())
    return text or None


def read_page_metadata(soup: BeautifulSoup) -> PageMetadata:
    title = _text_of(soup.find("title")) or _meta_content(soup, 'meta[property="og:title"]')

    author = (
        _meta_content(soup, 'meta[name="author"]')
        or _meta_content(soup, 'meta[property="article:author"]')
        or _text_of(soup.select_one('[rel="author"]'))
    )

    html = soup.find("html")
    language = (html.get("lang") or "").strip() if html is not None else ""

    published = _meta_content(soup, 'meta[property="article:published_time"]')
    if published is None:
        time_tag = soup.select_one("time[datetime]")
        if time_tag is not None:
            published = (time_tag.get("datetime") or "").strip() or None

    canonical = None
    link = soup.select_one('link[rel="canonical"]')
    if link is not None and is_http_url(link.get("href")):
        canonical = link["href"].strip()
    if canonical is None:
        og_url = _meta_content(soup, 'meta[property="og:url"]')
        if is_http_url(og_url):
            canonical = og_url

    return PageMetadata(
        title=title,
        heading=_text_of(soup.find("h1")),
        author=author,
        language=language or None,
        published_date=published,
        canonical_url=canonical,
    )


class DomPipeline:
    """Filter, optimize, sanitize and render a parsed document."""

    def __init__(
        self,
        noise_filter: Optional[NoiseFilter] = None,
        paragraph_optimizer: Optional[ParagraphOptimizer] = None,
        converter: Optional[DocumentConverter] = None,
    ) -> None:
        self.noise_filter = noise_filter or NoiseFilter()
        self.paragraph_optimizer = paragraph_optimizer or ParagraphOptimizer()
        self.converter = converter or DocumentConverter()

    @staticmethod
    def base_url_for(options: ExtractionOptions, page: PageMetadata) -> Optional[str]:
        return options.base_url or page.canonical_url

    @staticmethod
    def site_rule_for(options: ExtractionOptions, base_url: Optional[str]) -> Optional[SiteRule]:
        return options.site_rule_for(hostname_of(base_url))

    def clean(self, soup: BeautifulSoup, options: ExtractionOptions, site_rule: Optional[SiteRule]) -> BeautifulSoup:
        self.noise_filter.filter(soup, options, site_rule)
        self.paragraph_optimizer.optimize(soup)
        return soup

    def render(self, content: Tag, options: ExtractionOptions, base_url: Optional[str]) -> Tuple[str, ContentKind]:
        """Sanitize ``content`` and render it in the requested output kind."""
        # Re-parse so the container element itself goes through the allow-list
        if not isinstance(content, BeautifulSoup):
            content = BeautifulSoup(str(content), "lxml")
        sanitize(content, options.preserve_classes)
        kind = options.output_kind

        if kind is ContentKind.RAW_MARKUP:
            return str(content).strip(), kind

        if kind is ContentKind.PLAIN_TEXT:
            text = self.converter.convert_to_text(content)
            return self.noise_filter.post_process_text(text), kind

        markdown = self.converter.convert(content, base_url=base_url)
        return self.noise_filter.post_process_text(markdown), kind


def visible_length(tag: Optional[Tag]) -> int:
    if tag is None:
        return 0
    return len(tag.get_text().strip())


def pick_title(*candidates: Optional[str]) -> str:
    for candidate in candidates:
        if candidate and candidate.strip() and candidate.strip() != "[no-title]":
            return " ".join(candidate.split())
    return NO_TITLE
