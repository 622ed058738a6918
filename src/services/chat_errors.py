"""Exceptions raised while answering a chat request.

The chat route maps each class to an HTTP status; anything not listed here
is reported as a generic server error.
"""


class ChatProcessingError(Exception):
    """Base exception for chat processing failures."""


class RateLimitedError(ChatProcessingError):
    """The client exceeded the request throttle."""

    def __init__(self, retry_after: int):
        self.retry_after = retry_after
        super().__init__(f"Rate limit exceeded, retry after {retry_after}s")


class PayloadTooLargeError(ChatProcessingError):
    """The prompt (or every chunk of it) exceeds what the upstream accepts."""


class UpstreamError(ChatProcessingError):
    """Unclassified completion API failure."""


class UpstreamRateLimitedError(UpstreamError):
    """The completion API rejected the call for rate limiting."""


class ChatValidationError(ChatProcessingError):
    """The request is malformed or an attachment cannot be read."""


class EmptyRequestError(ChatValidationError):
    """Nothing is left to answer once blank URLs and text are dropped."""
