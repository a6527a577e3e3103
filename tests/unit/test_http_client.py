"""
Unit tests for the HTTP client's reader-service and page-fetch helpers.
"""

import asyncio
import re

import aiohttp
import pytest
import pytest_asyncio
from aioresponses import aioresponses

from cleanread.config import FetcherConfig, ReaderConfig
from cleanread.crawler.http_client import HttpClient
from cleanread.errors import ErrorCode, ExtractionError

READER_URL = re.compile(r"^https://reader\.example/.*")


@pytest_asyncio.fixture
async def http_client():
    client = HttpClient(
        ReaderConfig(host="reader.example", timeout_seconds=2),
        FetcherConfig(timeout_seconds=2, user_agent="TestBrowser/1.0"),
    )
    async with client:
        yield client


def _only_request_kwargs(mocked: aioresponses) -> dict:
    calls = [call for request_calls in mocked.requests.values() for call in request_calls]
    assert len(calls) == 1
    return calls[0].kwargs


@pytest.mark.unit
class TestReaderDocument:
    """Requests to the remote reader service."""

    @pytest.mark.asyncio
    async def test_success_returns_body(self, http_client):
        with aioresponses() as m:
            m.get(READER_URL, status=200, body="# Title\n\nBody text")

            text = await http_client.fetch_reader_document("https://example.com/post")

            assert text == "# Title\n\nBody text"
            headers = _only_request_kwargs(m)["headers"]
            assert headers["Accept"].startswith("text/markdown")
        assert http_client.get_stats() == {"requests": 1, "failures": 0, "timeouts": 0}

    @pytest.mark.asyncio
    async def test_http_error_is_fetch_failed(self, http_client):
        with aioresponses() as m:
            m.get(READER_URL, status=404, body="missing")

            with pytest.raises(ExtractionError) as exc_info:
                await http_client.fetch_reader_document("https://example.com/post")

        error = exc_info.value
        assert error.code is ErrorCode.FETCH_FAILED
        assert error.status_code == 404
        assert error.input == "https://example.com/post"
        assert http_client.get_stats()["failures"] == 1

    @pytest.mark.asyncio
    async def test_timeout(self, http_client):
        with aioresponses() as m:
            m.get(READER_URL, exception=asyncio.TimeoutError())

            with pytest.raises(ExtractionError) as exc_info:
                await http_client.fetch_reader_document("https://example.com/post")

        assert exc_info.value.code is ErrorCode.TIMEOUT
        assert exc_info.value.is_retryable is True
        assert http_client.get_stats()["timeouts"] == 1

    @pytest.mark.asyncio
    async def test_connection_error(self, http_client):
        with aioresponses() as m:
            m.get(READER_URL, exception=aiohttp.ClientConnectionError("refused"))

            with pytest.raises(ExtractionError) as exc_info:
                await http_client.fetch_reader_document("https://example.com/post")

        assert exc_info.value.code is ErrorCode.FETCH_FAILED
        assert isinstance(exc_info.value.cause, aiohttp.ClientConnectionError)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", ["example.com/post", "ftp://example.com/file", ""])
    async def test_invalid_url_not_requested(self, http_client, url):
        with aioresponses() as m:
            with pytest.raises(ExtractionError) as exc_info:
                await http_client.fetch_reader_document(url)
            assert not m.requests

        assert exc_info.value.code is ErrorCode.INVALID_URL


@pytest.mark.unit
class TestFetchHtml:
    """Plain page fetches."""

    @pytest.mark.asyncio
    async def test_browser_headers_and_no_store(self, http_client):
        with aioresponses() as m:
            m.get("https://example.com/page", status=200, body="<html><body>ok</body></html>")

            response = await http_client.fetch_html("https://example.com/page")

            headers = _only_request_kwargs(m)["headers"]
            assert headers["User-Agent"] == "TestBrowser/1.0"
            assert headers["Cache-Control"] == "no-store"
            assert headers["Accept-Language"] == "en-US,en;q=0.9"

        assert response.ok
        assert response.status == 200
        assert "ok" in response.text
        assert response.url == "https://example.com/page"
        assert response.final_url == "https://example.com/page"

    @pytest.mark.asyncio
    async def test_server_error(self, http_client):
        with aioresponses() as m:
            m.get("https://example.com/page", status=503)

            with pytest.raises(ExtractionError) as exc_info:
                await http_client.fetch_html("https://example.com/page")

        assert exc_info.value.code is ErrorCode.FETCH_FAILED
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_invalid_url(self, http_client):
        with pytest.raises(ExtractionError) as exc_info:
            await http_client.fetch_html("not a url")
        assert exc_info.value.code is ErrorCode.INVALID_URL


@pytest.mark.unit
class TestSessionLifecycle:
    @pytest.mark.asyncio
    async def test_session_created_lazily_and_closed(self):
        client = HttpClient()
        assert client.session is None

        with aioresponses() as m:
            m.get("https://example.com/", status=200, body="x")
            await client.fetch_html("https://example.com/")

        assert client.session is not None
        await client.close()
        assert client.session is None
