"""Per-client request throttle for the chat endpoint.

Counts requests in a window that starts with a client's first request and
resets completely once it has elapsed (no gradual decay).
"""

import math
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable

import logfire

from src.config import get_settings
from src.constants import THROTTLE_MAX_REQUESTS, THROTTLE_WINDOW_SECONDS
from src.logging_config import mask_pii


@dataclass
class RateState:
    """Request count for one client and when its window started."""

    count: int
    window_start: float


class RequestThrottle:
    """Thread-safe in-memory throttle with reset-window semantics."""

    def __init__(
        self,
        max_requests: int = THROTTLE_MAX_REQUESTS,
        window_seconds: float = THROTTLE_WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the throttle.

        Args:
            max_requests: Requests allowed per client per window.
            window_seconds: Window length in seconds.
            clock: Returns the current time in seconds (injectable for tests).
        """
        self._states: dict[str, RateState] = {}
        self._max_requests = max_requests
        self._window = window_seconds
        self._clock = clock
        self._lock = Lock()

    def should_throttle(self, client_id: str) -> bool:
        """Record a request and report whether it must be rejected.

        A request that arrives after the window has elapsed starts a new
        window with a count of 1. Inside the window the count is compared
        with the cap before incrementing, so rejected requests are not
        counted.

        Args:
            client_id: Client identifier (usually the forwarded IP).

        Returns:
            True if the client is over the limit, False otherwise.
        """
        now = self._clock()
        with self._lock:
            state = self._states.get(client_id)
            if state is None or now - state.window_start > self._window:
                self._prune(now)
                self._states[client_id] = RateState(count=1, window_start=now)
                return False

            if state.count >= self._max_requests:
                logfire.warning(
                    "Request throttled",
                    client_id=mask_pii(client_id),
                    request_count=state.count,
                    max_requests=self._max_requests,
                    window_seconds=self._window,
                )
                return True

            state.count += 1
            return False

    def _prune(self, now: float) -> None:
        """Drop clients whose window has elapsed. Caller holds the lock."""
        expired = [
            client_id
            for client_id, state in self._states.items()
            if now - state.window_start > self._window
        ]
        for client_id in expired:
            del self._states[client_id]

    def __len__(self) -> int:
        """Number of clients currently tracked."""
        with self._lock:
            return len(self._states)

    def retry_after_seconds(self, client_id: str) -> int:
        """Whole seconds until the client's current window ends (at least 1)."""
        now = self._clock()
        with self._lock:
            state = self._states.get(client_id)
            if state is None:
                return 1
            remaining = state.window_start + self._window - now
        return max(1, math.ceil(remaining))

    def reset(self, client_id: str | None = None) -> None:
        """Reset throttle tracking.

        Args:
            client_id: If provided, reset only this client. Otherwise reset all.
        """
        with self._lock:
            if client_id:
                self._states.pop(client_id, None)
            else:
                self._states.clear()


# Global instance
_request_throttle: RequestThrottle | None = None


def get_request_throttle() -> RequestThrottle:
    """Get the global request throttle instance.

    Returns:
        The singleton RequestThrottle instance.
    """
    global _request_throttle
    if _request_throttle is None:
        settings = get_settings()
        _request_throttle = RequestThrottle(
            max_requests=settings.throttle_max_requests,
            window_seconds=settings.throttle_window_seconds,
        )
    return _request_throttle


def reset_request_throttle() -> None:
    """Reset the global request throttle (primarily for testing)."""
    global _request_throttle
    _request_throttle = None
