"""URL scraping coordinator.

Each URL is served from the content cache when fresh, otherwise the
scrape strategies are tried in order (direct fetch, then headless render)
and the first success is formatted and cached.
"""

import asyncio
import time
from typing import List, Sequence

import logfire

from src.config import Settings, get_settings
from src.models.scraper_models import ScrapeBatch, ScrapeOutcome
from src.services.content_cache import ContentCache, get_content_cache
from src.services.page_fetcher import DirectFetchStrategy, ScrapeStrategy, validate_url
from src.services.page_renderer import RenderStrategy
from src.services.scrape_errors import InvalidUrlError, ScrapeError
from src.services.summarizer import format_scrape_result


class UrlScraper:
    """Scrape URLs through the cache and an ordered list of strategies."""

    def __init__(
        self,
        strategies: Sequence[ScrapeStrategy],
        cache: ContentCache,
        max_urls: int,
        max_concurrency: int,
    ):
        """
        Initialize the scraper.

        Args:
            strategies: Strategies tried in order until one succeeds
            cache: Cache of formatted content keyed by normalized URL
            max_urls: URLs beyond this many are reported failed without an attempt
            max_concurrency: Maximum scrapes in flight at once
        """
        if not strategies:
            raise ValueError("At least one scrape strategy is required")
        self._strategies = list(strategies)
        self._cache = cache
        self._max_urls = max_urls
        self._max_concurrency = max_concurrency

    async def scrape(self, url: str) -> str:
        """
        Get formatted content for one URL.

        Args:
            url: Absolute http(s) URL

        Returns:
            Formatted content block (see format_scrape_result)

        Raises:
            InvalidUrlError: If the URL is malformed (no strategy is tried)
            ScrapeError: The last strategy's error when every strategy fails
        """
        url = validate_url(url)
        cached = self._cache.get(url)
        if cached is not None:
            return cached

        last_error: ScrapeError | None = None
        for strategy in self._strategies:
            try:
                result = await strategy.try_extract(url)
            except InvalidUrlError:
                raise
            except ScrapeError as e:
                logfire.info(
                    "Scrape strategy failed, trying next",
                    url=url,
                    strategy=strategy.name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                last_error = e
                continue

            content = format_scrape_result(result)
            self._cache.put(url, content)
            return content

        raise last_error

    async def scrape_many(self, urls: Sequence[str]) -> ScrapeBatch:
        """
        Scrape URLs concurrently with per-URL failure isolation.

        Args:
            urls: URLs in request order

        Returns:
            ScrapeBatch with one outcome per attempted URL, in input order
        """
        urls = list(urls)
        attempted = urls[: self._max_urls]
        skipped = urls[self._max_urls :]
        if skipped:
            logfire.warning(
                "Too many URLs in request, skipping overflow",
                max_urls=self._max_urls,
                skipped_count=len(skipped),
            )

        semaphore = asyncio.Semaphore(self._max_concurrency)
        start_time = time.time()

        async def scrape_one(url: str) -> ScrapeOutcome:
            async with semaphore:
                try:
                    content = await self.scrape(url)
                except ScrapeError as e:
                    logfire.warning(
                        "URL scrape failed",
                        url=url,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    return ScrapeOutcome(url=url, error=str(e))
                except Exception as e:
                    logfire.error(
                        "Unexpected error while scraping URL",
                        url=url,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    return ScrapeOutcome(url=url, error=str(e))
                return ScrapeOutcome(url=url, content=content)

        outcomes: List[ScrapeOutcome] = list(
            await asyncio.gather(*(scrape_one(url) for url in attempted))
        )
        batch = ScrapeBatch(outcomes=outcomes, skipped_urls=skipped)
        logfire.info(
            "URL scraping completed",
            requested=len(urls),
            succeeded=len(batch.succeeded),
            failed=len(batch.failed_urls),
            duration_ms=(time.time() - start_time) * 1000,
        )
        return batch


def build_url_scraper(
    settings: Settings | None = None, cache: ContentCache | None = None
) -> UrlScraper:
    """Build a UrlScraper with direct fetch and render strategies from settings."""
    settings = settings or get_settings()
    strategies: List[ScrapeStrategy] = [
        DirectFetchStrategy(timeout=settings.scraper_timeout_seconds),
        RenderStrategy(
            page_load_timeout=settings.browser_page_load_timeout_seconds,
            content_wait_timeout=settings.browser_content_wait_timeout_seconds,
            max_attempts=settings.render_max_attempts,
            retry_delay=settings.render_retry_delay_seconds,
        ),
    ]
    return UrlScraper(
        strategies=strategies,
        cache=cache or get_content_cache(),
        max_urls=settings.max_urls_per_request,
        max_concurrency=settings.max_scrape_concurrency,
    )
