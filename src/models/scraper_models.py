"""Models for scraper results: page metadata, extracted content, per-URL outcomes."""

from dataclasses import dataclass, field
from typing import List


@dataclass
class PageMetadata:
    """Metadata pulled from a page head (or a document's info dictionary)."""

    title: str = ""
    description: str | None = None
    content_type: str | None = None
    image_url: str | None = None


@dataclass
class ScrapeResult:
    """Plain-text content extracted from one URL by one strategy.

    main_content is markup-free and non-empty; strategies that find only
    metadata raise NoContentFoundError instead of returning a result.
    """

    url: str
    metadata: PageMetadata
    main_content: str
    fetched_at: float
    strategy: str = "direct"


@dataclass
class ScrapeOutcome:
    """Isolated result of scraping one URL inside a chat request."""

    url: str
    content: str | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.content is not None


@dataclass
class ScrapeBatch:
    """All outcomes of one request's scraping stage, in request order."""

    outcomes: List[ScrapeOutcome] = field(default_factory=list)
    skipped_urls: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> List[ScrapeOutcome]:
        return [o for o in self.outcomes if o.succeeded]

    @property
    def failed_urls(self) -> List[str]:
        failed = [o.url for o in self.outcomes if not o.succeeded]
        return failed + list(self.skipped_urls)


@dataclass
class Attachment:
    """A file uploaded alongside a multipart chat request."""

    filename: str
    content_type: str
    data: bytes
