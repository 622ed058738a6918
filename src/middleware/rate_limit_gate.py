"""Sliding-window rate limit gate in front of the chat endpoint.

Counters live in Upstash Redis so the limit holds across processes. The
window is approximated from two fixed windows: the previous window's
count is weighted by how much of it still overlaps the sliding window.
"""

import math
import time
from dataclasses import dataclass
from typing import Callable, Iterable

import logfire
from fastapi import Request, Response
from fastapi.responses import PlainTextResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from src.config import get_settings
from src.constants import (
    GATE_REJECTION_TEXT,
    RATE_LIMIT_GATE_KEY_PREFIX,
    RATE_LIMIT_GATE_MAX_REQUESTS,
    RATE_LIMIT_GATE_WINDOW_SECONDS,
    RATE_LIMITED_PATHS,
)
from src.logging_config import mask_pii
from src.services.upstash_redis import UpstashRedis, get_upstash_redis


def get_client_id(request: Request) -> str:
    """Client identifier: first X-Forwarded-For hop, else the peer address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


@dataclass
class RateLimitDecision:
    """Outcome of one gate check; reset_ms is the epoch ms the window ends."""

    success: bool
    limit: int
    remaining: int
    reset_ms: int


class SlidingWindowRateLimiter:
    """Approximate sliding-window limiter over Upstash INCR/GET counters."""

    def __init__(
        self,
        redis: UpstashRedis,
        max_requests: int = RATE_LIMIT_GATE_MAX_REQUESTS,
        window_seconds: float = RATE_LIMIT_GATE_WINDOW_SECONDS,
        key_prefix: str = RATE_LIMIT_GATE_KEY_PREFIX,
        clock_ms: Callable[[], float] = lambda: time.time() * 1000,
    ):
        self._redis = redis
        self._max_requests = max_requests
        self._window_ms = int(window_seconds * 1000)
        self._key_prefix = key_prefix
        self._clock_ms = clock_ms

    async def limit(self, identifier: str) -> RateLimitDecision:
        """
        Count one request for identifier and decide whether it may pass.

        Rejected requests are not counted.

        Raises:
            UpstashRedisError, httpx.HTTPError: If the store is unreachable
        """
        now = int(self._clock_ms())
        current_window = now // self._window_ms
        current_key = f"{self._key_prefix}:{identifier}:{current_window}"
        previous_key = f"{self._key_prefix}:{identifier}:{current_window - 1}"
        reset_ms = (current_window + 1) * self._window_ms

        previous_count = await self._redis.get_int(previous_key)
        current_count = await self._redis.get_int(current_key)
        elapsed_fraction = (now % self._window_ms) / self._window_ms
        weighted_previous = math.floor(previous_count * (1 - elapsed_fraction))

        if weighted_previous + current_count >= self._max_requests:
            return RateLimitDecision(
                success=False,
                limit=self._max_requests,
                remaining=0,
                reset_ms=reset_ms,
            )

        new_count = await self._redis.incr(current_key)
        if new_count == 1:
            # Keep the key alive while it can still be the "previous" window
            await self._redis.pexpire(current_key, self._window_ms * 2 + 1000)

        remaining = max(0, self._max_requests - (weighted_previous + new_count))
        return RateLimitDecision(
            success=True,
            limit=self._max_requests,
            remaining=remaining,
            reset_ms=reset_ms,
        )


def build_gate_limiter() -> SlidingWindowRateLimiter | None:
    """Build the gate limiter from settings, or None when the gate is disabled."""
    settings = get_settings()
    if not settings.rate_limit_gate_enabled:
        return None
    return SlidingWindowRateLimiter(
        redis=get_upstash_redis(),
        max_requests=settings.rate_limit_gate_max_requests,
        window_seconds=settings.rate_limit_gate_window_seconds,
    )


class RateLimitGateMiddleware(BaseHTTPMiddleware):
    """
    Reject requests to rate-limited paths once a client exceeds the gate.

    Store failures let the request through; the per-process throttle in
    the chat pipeline still applies.
    """

    def __init__(
        self,
        app: ASGIApp,
        limiter_factory: Callable[[], SlidingWindowRateLimiter | None] = build_gate_limiter,
        paths: Iterable[str] = RATE_LIMITED_PATHS,
    ):
        """
        Initialize the gate middleware.

        Args:
            app: ASGI application
            limiter_factory: Returns the limiter, or None to disable the gate
            paths: Request paths the gate applies to
        """
        super().__init__(app)
        self._limiter_factory = limiter_factory
        self._limiter: SlidingWindowRateLimiter | None = None
        self._resolved = False
        self._paths = frozenset(paths)

    def _get_limiter(self) -> SlidingWindowRateLimiter | None:
        if not self._resolved:
            self._limiter = self._limiter_factory()
            self._resolved = True
        return self._limiter

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path not in self._paths:
            return await call_next(request)

        limiter = self._get_limiter()
        if limiter is None:
            return await call_next(request)

        client_id = get_client_id(request)
        try:
            decision = await limiter.limit(client_id)
        except Exception as e:
            logfire.error(
                "Rate limit gate unavailable, allowing request",
                error=str(e),
                error_type=type(e).__name__,
            )
            return await call_next(request)

        if not decision.success:
            logfire.warning(
                "Rate limit gate rejected request",
                client_id=mask_pii(client_id),
                path=request.url.path,
                limit=decision.limit,
                reset_ms=decision.reset_ms,
            )
            return PlainTextResponse(
                GATE_REJECTION_TEXT,
                status_code=429,
                headers={
                    "X-RateLimit-Limit": str(decision.limit),
                    "X-RateLimit-Remaining": str(decision.remaining),
                    "X-RateLimit-Reset": str(decision.reset_ms),
                },
            )

        return await call_next(request)
