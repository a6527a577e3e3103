"""
Unit tests for the live-document strategy.
"""

from __future__ import annotations

import pytest
from bs4 import BeautifulSoup

from cleanread.errors import ErrorCode, ExtractionError
from cleanread.extractor.document_extractor import LiveDocumentExtractor
from cleanread.protocols import ContentKind, ExtractionMethod, ExtractionOptions, ExtractionStage, SiteRule


@pytest.fixture
def extractor():
    return LiveDocumentExtractor()


class TestLiveDocumentExtractor:
    """Extraction from an already parsed tree."""

    def test_supports_only_parsed_documents(self, extractor, article_html):
        assert extractor.supports(BeautifulSoup(article_html, "lxml")) is True
        assert extractor.supports(article_html) is False
        assert extractor.supports("https://example.com/") is False

    @pytest.mark.asyncio
    async def test_extracts_article_container(self, extractor, article_html):
        document = BeautifulSoup(article_html, "lxml")

        result = await extractor.extract(document, ExtractionOptions())

        assert result.title == "Understanding Content Extraction"
        assert result.kind is ContentKind.STRUCTURED_DOCUMENT
        assert result.metadata.extraction_method is ExtractionMethod.LIVE_DOCUMENT
        assert result.metadata.author == "Jane Writer"
        assert "Paragraph 3 explains" in result.body
        assert "[full guide](https://blog.example.com/docs/guide?id=7)" in result.body
        assert "Buy now" not in result.body
        assert "Home" not in result.body

    @pytest.mark.asyncio
    async def test_callers_tree_is_not_modified(self, extractor, article_html):
        document = BeautifulSoup(article_html, "lxml")
        before = str(document)

        await extractor.extract(document, ExtractionOptions())

        assert str(document) == before
        assert document.select_one("div.ad") is not None

    @pytest.mark.asyncio
    async def test_falls_back_to_body(self, extractor):
        text = "A body-level paragraph that is long enough to count as content. " * 3
        document = BeautifulSoup(f"<html><body><div><p>{text}</p></div></body></html>", "lxml")

        result = await extractor.extract(document, ExtractionOptions(min_content_length=100))

        assert "A body-level paragraph" in result.body
        assert result.title == "Untitled"

    @pytest.mark.asyncio
    async def test_site_rule_selector_preferred(self, extractor):
        long_text = "Preferred container text that is clearly the main content. " * 3
        document = BeautifulSoup(
            "<html><head><link rel='canonical' href='https://docs.example.org/page'></head><body>"
            f"<article><p>{'Article text that should be ignored here. ' * 3}</p></article>"
            f"<div class='doc-body'><p>{long_text}</p></div>"
            "</body></html>",
            "lxml",
        )
        options = ExtractionOptions(
            min_content_length=50,
            site_rules={"docs.example.org": SiteRule(content_selector=".doc-body")},
        )

        result = await extractor.extract(document, options)

        assert "Preferred container text" in result.body
        assert "Article text" not in result.body

    @pytest.mark.asyncio
    async def test_no_content(self, extractor):
        document = BeautifulSoup("<html><body><nav>Menu</nav><p>tiny</p></body></html>", "lxml")

        with pytest.raises(ExtractionError) as exc_info:
            await extractor.extract(document, ExtractionOptions())

        assert exc_info.value.code is ErrorCode.NO_CONTENT

    @pytest.mark.asyncio
    async def test_reports_filtering_progress(self, extractor, article_html):
        updates = []
        await extractor.extract(BeautifulSoup(article_html, "lxml"), ExtractionOptions(on_progress=updates.append))
        assert [u.stage for u in updates] == [ExtractionStage.FILTERING]

    def test_select_main_content_ranking(self):
        document = BeautifulSoup(
            "<html><body><main><p>Main text long enough.</p></main>"
            "<article><p>Article text long enough.</p></article></body></html>",
            "lxml",
        )
        selected = LiveDocumentExtractor.select_main_content(document, 10)
        assert selected.name == "article"

        assert LiveDocumentExtractor.select_main_content(document, 10_000) is None
