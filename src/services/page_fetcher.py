"""Direct-fetch scraping strategy.

This module holds the first (cheap) scraping strategy and the helpers the
other strategies share:
- ScrapeStrategy: Protocol every strategy implements
- validate_url / normalize_url: URL checks and cache-key normalization
- HtmlContentExtractor: metadata and body-text extraction from HTML
- DirectFetchStrategy: httpx GET + HtmlContentExtractor (PDFs via PyMuPDF)

Each component can be mocked independently for testing.
"""

import time
from pathlib import PurePosixPath
from typing import List, Protocol
from urllib.parse import urlparse

import httpx
import logfire
from bs4 import BeautifulSoup, Tag

from src.constants import (
    BROWSER_HEADERS,
    CONTENT_SELECTORS,
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    MIN_CONTENT_BLOCK_CHARS,
    NON_CONTENT_TAGS,
    SECTION_CLASS_SELECTORS,
    SECTION_CONTAINER_SELECTOR,
    SECTION_KEYWORDS,
)
from src.models.scraper_models import PageMetadata, ScrapeResult
from src.services.document_extractor import PDF_CONTENT_TYPE, extract_pdf, is_pdf
from src.services.scrape_errors import (
    FetchError,
    HttpStatusError,
    InvalidUrlError,
    NoContentFoundError,
)


class ScrapeStrategy(Protocol):
    """Protocol for a single way of turning a URL into text."""

    name: str

    async def try_extract(self, url: str) -> ScrapeResult:
        """Extract metadata and plain-text body from a URL.

        Args:
            url: Absolute http(s) URL

        Returns:
            ScrapeResult with non-empty main_content

        Raises:
            ScrapeError: If this strategy cannot produce content
        """
        ...


def validate_url(url: str) -> str:
    """Return the stripped URL, or raise InvalidUrlError if malformed."""
    candidate = (url or "").strip()
    try:
        parsed = urlparse(candidate)
    except ValueError as e:
        raise InvalidUrlError(url) from e
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidUrlError(url)
    if any(ch.isspace() for ch in candidate):
        raise InvalidUrlError(url)
    return candidate


def normalize_url(url: str) -> str:
    """Normalize URL for cache keys.

    Strips fragments and trailing slashes, lowercases scheme and host,
    preserves query strings.
    """
    parsed = urlparse(url.strip())
    path = parsed.path.rstrip("/") or "/"
    normalized = f"{parsed.scheme.lower()}://{parsed.netloc.lower()}{path}"
    if parsed.query:
        normalized += "?" + parsed.query
    return normalized


class HtmlContentExtractor:
    """Extract metadata and content blocks from static HTML."""

    def __init__(
        self,
        selectors: tuple[str, ...] = CONTENT_SELECTORS,
        min_block_chars: int = MIN_CONTENT_BLOCK_CHARS,
    ):
        self._selectors = selectors
        self._min_block_chars = min_block_chars

    def extract(self, html: str) -> tuple[PageMetadata, List[str]]:
        """Parse HTML into metadata and de-duplicated text blocks.

        Args:
            html: Raw HTML content

        Returns:
            Tuple of (metadata, content_blocks) with blocks in first-seen order
        """
        soup = BeautifulSoup(html, "html.parser")
        metadata = self._extract_metadata(soup)

        for tag in soup(list(NON_CONTENT_TAGS)):
            tag.decompose()

        # dict keys keep insertion order, so this is an ordered set
        blocks: dict[str, None] = {}
        for selector in self._selectors:
            for element in soup.select(selector):
                self._add_block(blocks, element)

        for element in self._section_markers(soup):
            section = element.css.closest(SECTION_CONTAINER_SELECTOR)
            if section is not None:
                self._add_block(blocks, section)

        return metadata, list(blocks)

    def _add_block(self, blocks: dict[str, None], element: Tag) -> None:
        text = element.get_text(" ", strip=True)
        if len(text) > self._min_block_chars:
            blocks.setdefault(text, None)

    def _section_markers(self, soup: BeautifulSoup) -> List[Tag]:
        """Anchors mentioning a section keyword, plus download/install classes."""
        markers: List[Tag] = []
        for anchor in soup.find_all("a"):
            text = anchor.get_text(" ", strip=True)
            if any(keyword in text for keyword in SECTION_KEYWORDS):
                markers.append(anchor)
        for selector in SECTION_CLASS_SELECTORS:
            markers.extend(soup.select(selector))
        return markers

    @staticmethod
    def _meta_content(soup: BeautifulSoup, **attrs: str) -> str | None:
        tag = soup.find("meta", attrs=attrs)
        if tag is None:
            return None
        content = (tag.get("content") or "").strip()
        return content or None

    def _extract_metadata(self, soup: BeautifulSoup) -> PageMetadata:
        title = ""
        if soup.title and soup.title.string:
            title = soup.title.string.strip()
        description = self._meta_content(
            soup, name="description"
        ) or self._meta_content(soup, property="og:description")
        return PageMetadata(
            title=title,
            description=description,
            content_type=self._meta_content(soup, property="og:type"),
            image_url=self._meta_content(soup, property="og:image"),
        )


class DirectFetchStrategy:
    """Fetch pages with a plain httpx GET and browser-like headers."""

    name = "direct"

    def __init__(
        self,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        headers: dict[str, str] | None = None,
        extractor: HtmlContentExtractor | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the direct fetch strategy.

        Args:
            timeout: HTTP timeout in seconds
            headers: Optional custom headers (defaults to browser-like headers)
            extractor: HTML extractor (defaults to HtmlContentExtractor)
            transport: Optional httpx transport (for testing)
        """
        self._timeout = timeout
        self._headers = headers or BROWSER_HEADERS.copy()
        self._extractor = extractor or HtmlContentExtractor()
        self._transport = transport

    async def try_extract(self, url: str) -> ScrapeResult:
        url = validate_url(url)
        start_time = time.time()
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                headers=self._headers,
                transport=self._transport,
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logfire.info(
                "Direct fetch returned error status",
                url=url,
                status_code=e.response.status_code,
            )
            raise HttpStatusError(url, e.response.status_code) from e
        except httpx.HTTPError as e:
            logfire.info(
                "Direct fetch failed",
                url=url,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise FetchError(url, f"Failed to fetch {url}: {e}") from e

        content_type = response.headers.get("content-type", "")
        if is_pdf(content_type, response.content):
            result = self._extract_pdf(url, response.content)
        else:
            result = self._extract_html(url, response.text)

        logfire.info(
            "Page fetched (direct)",
            url=url,
            status_code=response.status_code,
            content_length=len(result.main_content),
            response_time_ms=(time.time() - start_time) * 1000,
        )
        return result

    def _extract_html(self, url: str, html: str) -> ScrapeResult:
        metadata, blocks = self._extractor.extract(html)
        if not blocks:
            raise NoContentFoundError(url, self.name)
        return ScrapeResult(
            url=url,
            metadata=metadata,
            main_content="\n\n".join(blocks),
            fetched_at=time.time(),
            strategy=self.name,
        )

    def _extract_pdf(self, url: str, data: bytes) -> ScrapeResult:
        try:
            title, text = extract_pdf(data)
        except Exception as e:
            raise FetchError(url, f"Failed to read PDF from {url}: {e}") from e
        if not text:
            raise NoContentFoundError(url, self.name)
        return ScrapeResult(
            url=url,
            metadata=PageMetadata(
                title=title or PurePosixPath(urlparse(url).path).name or url,
                content_type=PDF_CONTENT_TYPE,
            ),
            main_content=text,
            fetched_at=time.time(),
            strategy=self.name,
        )
