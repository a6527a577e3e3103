"""
HTTP client for the two upstream collaborators: the remote document-reading
service and the plain page fetcher.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

import aiohttp
import structlog

from cleanread.config.config import FetcherConfig, ReaderConfig
from cleanread.errors import ErrorCode, ExtractionError
from cleanread.protocols import ExtractionStage
from cleanread.utils.urls import is_http_url

logger = structlog.get_logger(__name__)


@dataclass
class HttpResponse:
    """Response body with timing information."""

    status: int
    headers: Dict[str, str]
    text: str
    url: str
    final_url: str
    elapsed_ms: int

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class HttpClient:
    """aiohttp session wrapper with reader-service and page-fetch helpers."""

    def __init__(
        self,
        reader_config: Optional[ReaderConfig] = None,
        fetcher_config: Optional[FetcherConfig] = None,
    ) -> None:
        self.reader_config = reader_config or ReaderConfig()
        self.fetcher_config = fetcher_config or FetcherConfig()

        # Session is created lazily inside the running loop
        self.session: Optional[aiohttp.ClientSession] = None
        self._session_lock: Optional[asyncio.Lock] = None

        self._stats: Dict[str, int] = {"requests": 0, "failures": 0, "timeouts": 0}

    async def initialize(self) -> None:
        """Initialize the HTTP client session."""
        if self.session is None or self.session.closed:
            connector = aiohttp.TCPConnector(
                limit=0,
                ttl_dns_cache=30,
                keepalive_timeout=30,
                enable_cleanup_closed=True,
            )
            self.session = aiohttp.ClientSession(connector=connector)
            logger.info("HTTP client session initialized")

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None
        logger.info("HTTP client closed")

    async def __aenter__(self) -> "HttpClient":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session_lock is None:
            self._session_lock = asyncio.Lock()
        async with self._session_lock:
            if self.session is None or self.session.closed:
                await self.initialize()
        assert self.session is not None
        return self.session

    async def get(self, url: str, *, headers: Mapping[str, str], timeout: float) -> HttpResponse:
        """
        Perform a GET request and return the decoded body.

        Network errors surface as aiohttp / asyncio exceptions; callers translate
        them into ``ExtractionError`` values with the right code.
        """
        session = await self._ensure_session()
        start = time.monotonic()
        self._stats["requests"] += 1
        async with session.get(
            url,
            headers=dict(headers),
            timeout=aiohttp.ClientTimeout(total=timeout),
            allow_redirects=True,
        ) as response:
            text = await response.text(errors="replace")
            return HttpResponse(
                status=response.status,
                headers={k: v for k, v in response.headers.items()},
                text=text,
                url=url,
                final_url=str(response.url),
                elapsed_ms=int((time.monotonic() - start) * 1000),
            )

    async def _get_or_raise(
        self, url: str, *, headers: Mapping[str, str], timeout: float, target: str, label: str
    ) -> HttpResponse:
        try:
            response = await self.get(url, headers=headers, timeout=timeout)
        except asyncio.TimeoutError as e:
            self._stats["timeouts"] += 1
            logger.warning("Request timed out", service=label, url=url, timeout=timeout)
            raise ExtractionError(
                ErrorCode.TIMEOUT,
                f"{label} timed out after {timeout:g}s",
                input=target,
                stage=ExtractionStage.FETCHING,
                cause=e,
            ) from e
        except aiohttp.ClientError as e:
            self._stats["failures"] += 1
            logger.warning("Request failed", service=label, url=url, error=str(e), error_type=type(e).__name__)
            raise ExtractionError(
                ErrorCode.FETCH_FAILED,
                f"{label} request failed: {e}",
                input=target,
                stage=ExtractionStage.FETCHING,
                cause=e,
            ) from e

        if not response.ok:
            self._stats["failures"] += 1
            logger.warning("Non-success response", service=label, url=url, status=response.status)
            raise ExtractionError(
                ErrorCode.FETCH_FAILED,
                f"{label} error: HTTP {response.status}",
                input=target,
                stage=ExtractionStage.FETCHING,
                status_code=response.status,
            )
        return response

    async def fetch_reader_document(self, target_url: str) -> str:
        """Ask the reader service for a canonical-document rendition of ``target_url``."""
        if not is_http_url(target_url):
            raise ExtractionError(ErrorCode.INVALID_URL, f"Not an absolute http(s) URL: {target_url}", input=target_url)

        reader_url = f"https://{self.reader_config.host}/{target_url.strip()}"
        headers = {
            "Accept": "text/markdown,text/plain;q=0.9,text/html;q=0.8",
            "User-Agent": self.reader_config.user_agent,
        }
        response = await self._get_or_raise(
            reader_url,
            headers=headers,
            timeout=self.reader_config.timeout_seconds,
            target=target_url,
            label="Reader service",
        )
        logger.debug("Reader document received", url=target_url, elapsed_ms=response.elapsed_ms, size=len(response.text))
        return response.text

    async def fetch_html(self, url: str) -> HttpResponse:
        """Fetch a page the way a desktop browser would, bypassing caches."""
        if not is_http_url(url):
            raise ExtractionError(ErrorCode.INVALID_URL, f"Not an absolute http(s) URL: {url}", input=url)

        headers = {
            "User-Agent": self.fetcher_config.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": self.fetcher_config.accept_language,
            "Cache-Control": "no-store",
            "Pragma": "no-cache",
        }
        response = await self._get_or_raise(
            url,
            headers=headers,
            timeout=self.fetcher_config.timeout_seconds,
            target=url,
            label="Page fetch",
        )
        logger.debug("Page fetched", url=url, final_url=response.final_url, elapsed_ms=response.elapsed_ms)
        return response

    def get_stats(self) -> Dict[str, int]:
        return dict(self._stats)
