"""Shared pytest fixtures and configuration.

Fixture Categories:
1. Infrastructure: mock_settings, mock_logfire, respx_mock, test_client
2. Time: fake_clock, no_sleep
3. Pipeline doubles: FakeStrategy, FakeUrlScraper, make_completion_service
4. Sample data: sample_html, sample_pdf_bytes
"""

import os
from contextlib import contextmanager
from typing import Callable
from unittest.mock import MagicMock, Mock

import fitz
import logfire
import pytest
import respx
from pydantic_ai.messages import ModelMessage, ModelResponse, TextPart
from pydantic_ai.models.function import AgentInfo, FunctionModel

from src.models.scraper_models import PageMetadata, ScrapeBatch, ScrapeOutcome, ScrapeResult
from src.services.scrape_errors import ScrapeError

# Suppress warnings when logfire isn't configured in tests
os.environ.setdefault("LOGFIRE_IGNORE_NO_CONFIG", "1")

# Modules that bind get_settings / logfire at import time
_SETTINGS_CONSUMERS = (
    "src.main",
    "src.logging_config",
    "src.middleware.rate_limiter",
    "src.middleware.rate_limit_gate",
    "src.services.content_cache",
    "src.services.completion_service",
    "src.services.chat_orchestrator",
    "src.services.upstash_redis",
    "src.services.url_scraper",
)
_LOGFIRE_CONSUMERS = (
    "src.main",
    "src.logging_config",
    "src.middleware.rate_limiter",
    "src.middleware.rate_limit_gate",
    "src.services.content_cache",
    "src.services.completion_service",
    "src.services.chat_orchestrator",
    "src.services.page_fetcher",
    "src.services.page_renderer",
    "src.services.url_scraper",
)


# =============================================================================
# Infrastructure
# =============================================================================


@pytest.fixture
def respx_mock():
    """Respx mock fixture for HTTP mocking."""
    with respx.mock:
        yield respx


@pytest.fixture
def mock_settings(monkeypatch):
    """Mock application settings with all delays disabled."""
    from src.config import Settings
    from src.middleware.rate_limiter import reset_request_throttle
    from src.services.content_cache import reset_content_cache

    settings = Settings(
        groq_api_key="test-groq-key",
        env="local",
        logfire_token=None,
        sentry_dsn=None,
        request_delay_seconds=0,
        chunk_delay_seconds=0,
        render_retry_delay_seconds=0,
        rate_limit_gate_enabled=False,
    )

    monkeypatch.setattr("src.config.get_settings", lambda: settings)
    # Patch where get_settings is used so request handlers see the mock
    for module in _SETTINGS_CONSUMERS:
        monkeypatch.setattr(f"{module}.get_settings", lambda: settings)

    reset_request_throttle()
    reset_content_cache()
    yield settings
    reset_request_throttle()
    reset_content_cache()


@pytest.fixture
def mock_logfire(monkeypatch):
    """
    Mock Logfire for testing without actual logging.

    Returns the mock so tests can assert on emitted events.
    """

    @contextmanager
    def mock_span(*args, **kwargs):
        yield {}

    mock_logfire_module = MagicMock()
    mock_logfire_module.info = Mock()
    mock_logfire_module.warning = Mock()
    mock_logfire_module.error = Mock()
    mock_logfire_module.span = mock_span
    mock_logfire_module.configure = Mock()
    mock_logfire_module.instrument_fastapi = Mock()
    mock_logfire_module.instrument_pydantic = Mock()
    mock_logfire_module.instrument_pydantic_ai = Mock()
    mock_logfire_module.instrument_httpx = Mock()

    for attr in ("info", "warning", "error", "span", "configure"):
        if hasattr(logfire, attr):
            monkeypatch.setattr(logfire, attr, getattr(mock_logfire_module, attr))

    # Also patch module-level imports in our code
    for module in _LOGFIRE_CONSUMERS:
        monkeypatch.setattr(f"{module}.logfire", mock_logfire_module)

    return mock_logfire_module


@pytest.fixture
def test_client(mock_settings, mock_logfire):
    """FastAPI TestClient for E2E tests."""
    from fastapi.testclient import TestClient
    from src.main import app

    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


# =============================================================================
# Time
# =============================================================================


class FakeClock:
    """Manually advanced clock returning seconds."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def no_sleep():
    """Async sleep replacement that records requested delays."""
    delays: list[float] = []

    async def sleep(seconds: float) -> None:
        delays.append(seconds)

    sleep.delays = delays
    return sleep


# =============================================================================
# Pipeline doubles
# =============================================================================


class FakeStrategy:
    """Scrape strategy returning canned results or raising canned errors."""

    def __init__(self, name: str, results: dict | None = None, error: Callable | None = None):
        self.name = name
        self._results = results or {}
        self._error = error
        self.calls: list[str] = []

    async def try_extract(self, url: str) -> ScrapeResult:
        self.calls.append(url)
        if url in self._results:
            return ScrapeResult(
                url=url,
                metadata=PageMetadata(title=f"Title of {url}"),
                main_content=self._results[url],
                fetched_at=0.0,
                strategy=self.name,
            )
        if self._error is not None:
            raise self._error(url)
        raise ScrapeError(url, f"{self.name} has no result for {url}")


class FakeUrlScraper:
    """UrlScraper stand-in with fixed per-URL content; unknown URLs fail."""

    def __init__(self, contents: dict[str, str]):
        self._contents = contents
        self.requested: list[list[str]] = []

    async def scrape_many(self, urls) -> ScrapeBatch:
        urls = list(urls)
        self.requested.append(urls)
        outcomes = [
            ScrapeOutcome(url=url, content=self._contents[url])
            if url in self._contents
            else ScrapeOutcome(url=url, error="unreachable")
            for url in urls
        ]
        return ScrapeBatch(outcomes=outcomes)


@pytest.fixture
def fake_strategy():
    """The FakeStrategy class, for building strategy doubles in tests."""
    return FakeStrategy


@pytest.fixture
def fake_url_scraper():
    """The FakeUrlScraper class, for building scraper doubles in tests."""
    return FakeUrlScraper


@pytest.fixture
def make_completion_service(mock_settings):
    """Build a CompletionService backed by a FunctionModel.

    The reply function receives the user prompt of the current call and
    returns the assistant text (or raises to simulate upstream errors).
    Every call's full message list is recorded on service.calls.
    """
    from src.services.completion_service import CompletionService

    def factory(reply: Callable[[str], str]):
        calls: list[list[ModelMessage]] = []

        def model_function(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
            calls.append(messages)
            # Adjacent requests may be merged, so take the last user prompt part
            prompt = [
                part.content
                for part in messages[-1].parts
                if getattr(part, "part_kind", "") == "user-prompt"
            ][-1]
            return ModelResponse(parts=[TextPart(content=reply(prompt))])

        service = CompletionService(
            model=FunctionModel(model_function),
            settings=mock_settings,
            system_prompt="You are a test assistant.",
        )
        service.calls = calls
        return service

    return factory


# =============================================================================
# Sample data
# =============================================================================


@pytest.fixture
def sample_html():
    """Article page with navigation chrome, metadata and a download section."""
    return """<!DOCTYPE html>
<html>
<head>
  <title>Example Article</title>
  <meta name="description" content="An example page for scraper tests.">
  <meta property="og:type" content="article">
  <meta property="og:image" content="https://example.com/cover.png">
  <style>body { color: red; }</style>
  <script>console.log("tracking");</script>
</head>
<body>
  <nav>Home | About | Contact us today for more information</nav>
  <header>Site header with a long enough line of text to pass</header>
  <main>
    <article>
      <h1>Example Article</h1>
      <p>The quick brown fox jumps over the lazy dog while the article explains
      how example domains are reserved for documentation purposes.</p>
    </article>
  </main>
  <section class="downloads">
    <h2>Get the tool</h2>
    <a href="/download">Download for Linux</a>
    <p>Packages are available for every major distribution and architecture.</p>
  </section>
  <footer>Copyright notice and legal text that should never be extracted</footer>
</body>
</html>"""


@pytest.fixture
def sample_pdf_bytes():
    """Two-page PDF with a title in its metadata."""
    doc = fitz.open()
    for text in (
        "First page of the sample report with enough text to keep.",
        "Second page of the sample report discussing results.",
    ):
        page = doc.new_page()
        page.insert_text((72, 72), text)
    doc.set_metadata({"title": "Sample Report"})
    data = doc.tobytes()
    doc.close()
    return data
