"""
Shared test configuration for cleanread.

Provides sample documents, scripted fake strategies and a controllable clock
so manager and cache behaviour can be tested without network access.
"""

import asyncio
from typing import AsyncGenerator, Callable, List, Optional

import pytest
import pytest_asyncio

from cleanread.errors import ErrorCode, ExtractionError
from cleanread.extractor.scoring import build_metadata
from cleanread.protocols import ContentKind, ExtractedContent, ExtractionInput, ExtractionMethod, ExtractionOptions

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Integration tests across modules")


@pytest_asyncio.fixture(autouse=True)
async def cleanup_tasks() -> AsyncGenerator[None, None]:
    """Cancel tasks a test left behind so they cannot leak into the next one."""
    tasks_before = asyncio.all_tasks()
    yield
    new_tasks = asyncio.all_tasks() - tasks_before

    for task in new_tasks:
        if not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                print(f"Unexpected error during task cleanup: {e}")


# ============================================================================
# Helpers
# ============================================================================


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_content(
    title: str = "Sample",
    body: str = "# Sample\n\nSome body text.",
    method: ExtractionMethod = ExtractionMethod.STRUCTURAL,
) -> ExtractedContent:
    metadata = build_metadata(body, kind=ContentKind.STRUCTURED_DOCUMENT, method=method)
    return ExtractedContent(title=title, body=body, kind=ContentKind.STRUCTURED_DOCUMENT, metadata=metadata)


class FakeExtractor:
    """Scripted strategy that records every call it receives."""

    def __init__(
        self,
        name: str,
        priority: int,
        *,
        result: Optional[ExtractedContent] = None,
        error: Optional[BaseException] = None,
        supports: Callable[[ExtractionInput], bool] = lambda _input: True,
        delay: float = 0.0,
        fail_for: Optional[Callable[[ExtractionInput], bool]] = None,
    ) -> None:
        self.name = name
        self.priority = priority
        self._result = result
        self._error = error
        self._supports = supports
        self._delay = delay
        self._fail_for = fail_for
        self.calls: List[ExtractionInput] = []
        self.options: List[ExtractionOptions] = []
        self.supports_calls = 0
        self.active = 0
        self.max_active = 0

    def supports(self, input: ExtractionInput) -> bool:
        self.supports_calls += 1
        return self._supports(input)

    async def extract(self, input: ExtractionInput, options: ExtractionOptions) -> ExtractedContent:
        self.calls.append(input)
        self.options.append(options)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self._delay:
                await asyncio.sleep(self._delay)
            if self._error is not None:
                raise self._error
            if self._fail_for is not None and self._fail_for(input):
                raise ExtractionError(ErrorCode.NO_CONTENT, f"no content in {input}", input=str(input))
            if self._result is not None:
                return self._result
            return make_content(title=f"{self.name}:{input}", body=f"# {input}\n\nExtracted by {self.name}.")
        finally:
            self.active -= 1


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def article_html() -> str:
    """A realistic article page wrapped in navigation, ads and footer chrome."""
    paragraphs = "\n".join(
        f"<p>Paragraph {i} explains how the cache, the filter and the converter cooperate. "
        f"Each step keeps the article readable, and the output stays deterministic for the same input.</p>"
        for i in range(1, 7)
    )
    return f"""
    <!DOCTYPE html>
    <html lang="en">
    <head>
        <title>Understanding Content Extraction | Example Blog</title>
        <meta name="author" content="Jane Writer">
        <meta property="article:published_time" content="2024-03-01T10:00:00Z">
        <link rel="canonical" href="https://blog.example.com/posts/content-extraction">
    </head>
    <body>
        <nav class="navbar"><a href="/">Home</a> <a href="/about">About</a></nav>
        <div class="sidebar"><h3>Popular</h3><a href="/p/1">Other post</a></div>
        <article class="post">
            <h1>Understanding Content Extraction</h1>
            {paragraphs}
            <pre><code class="language-python">def extract(page):
    return page.body</code></pre>
            <p>Read the <a href="/docs/guide?utm_source=feed&amp;id=7">full guide</a> for details.</p>
            <img data-src="/images/diagram.png" src="data:image/gif;base64,R0lGOD" alt="Pipeline diagram" width="640" height="480">
        </article>
        <div class="ad">Buy now! Limited offer.</div>
        <div class="share">Share this article on every network</div>
        <footer class="site-footer">Copyright 2024 Example</footer>
        <script>trackEverything();</script>
    </body>
    </html>
    """
