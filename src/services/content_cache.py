"""In-memory cache of scraped URL content.

Entries expire lazily: a stale entry is reported as a miss and left in
place until the next successful scrape of the same URL overwrites it.
"""

import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable

import logfire

from src.config import get_settings
from src.constants import URL_CACHE_TTL_SECONDS
from src.services.page_fetcher import normalize_url


@dataclass
class CacheEntry:
    """Formatted content for one URL and when it was stored."""

    content: str
    timestamp: float


class ContentCache:
    """Thread-safe URL → formatted content cache with a fixed TTL."""

    def __init__(
        self,
        ttl_seconds: float = URL_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the cache.

        Args:
            ttl_seconds: How long an entry stays fresh after it is written.
            clock: Returns the current time in seconds (injectable for tests).
        """
        self._entries: dict[str, CacheEntry] = {}
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = Lock()

    def get(self, url: str) -> str | None:
        """Return fresh content for a URL, or None on a miss or stale entry."""
        key = normalize_url(url)
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
        if entry is None:
            return None
        if now - entry.timestamp < self._ttl:
            logfire.info("URL cache hit", url=key, age_seconds=now - entry.timestamp)
            return entry.content
        return None

    def put(self, url: str, content: str) -> None:
        """Store content for a URL, replacing any previous entry."""
        key = normalize_url(url)
        with self._lock:
            self._entries[key] = CacheEntry(content=content, timestamp=self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


# Global instance
_content_cache: ContentCache | None = None


def get_content_cache() -> ContentCache:
    """Get the process-wide content cache.

    Returns:
        The singleton ContentCache instance.
    """
    global _content_cache
    if _content_cache is None:
        _content_cache = ContentCache(ttl_seconds=get_settings().url_cache_ttl_seconds)
    return _content_cache


def reset_content_cache() -> None:
    """Reset the global content cache (primarily for testing)."""
    global _content_cache
    _content_cache = None
