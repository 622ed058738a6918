"""Typed failures raised by scraping strategies.

Every strategy failure is a ScrapeError so callers can isolate per-URL
failures with a single except clause. InvalidUrlError is terminal; the
others make the coordinator try the next strategy.
"""


class ScrapeError(Exception):
    """Base exception for scraping failures."""

    def __init__(self, url: str, message: str):
        super().__init__(message)
        self.url = url


class InvalidUrlError(ScrapeError):
    """The URL is not a well-formed absolute http(s) URL."""

    def __init__(self, url: str):
        super().__init__(url, f"Invalid URL: {url!r}")


class HttpStatusError(ScrapeError):
    """Direct fetch returned a non-2xx status."""

    def __init__(self, url: str, status_code: int):
        super().__init__(url, f"HTTP error {status_code} for {url}")
        self.status_code = status_code


class FetchError(ScrapeError):
    """Direct fetch failed below the HTTP layer (DNS, TLS, timeout...)."""


class NoContentFoundError(ScrapeError):
    """The page loaded but no usable body text was extracted."""

    def __init__(self, url: str, strategy: str):
        super().__init__(url, f"No content found with {strategy} for {url}")
        self.strategy = strategy


class RenderError(ScrapeError):
    """Headless rendering failed after all retries."""

    def __init__(self, url: str, cause: BaseException | None = None):
        detail = f": {cause}" if cause else ""
        super().__init__(url, f"Failed to render {url}{detail}")
        self.cause = cause
