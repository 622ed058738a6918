"""Minimal async client for the Upstash Redis REST API."""

import json
from typing import Any, List

import httpx

from src.config import get_settings
from src.constants import UPSTASH_TIMEOUT_SECONDS


class UpstashRedisError(RuntimeError):
    """The REST API answered with an error payload or is not configured."""


class UpstashRedis:
    """Send Redis commands as JSON arrays to an Upstash REST endpoint."""

    def __init__(
        self,
        rest_url: str | None = None,
        rest_token: str | None = None,
        timeout: float = UPSTASH_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.rest_url = rest_url
        self.rest_token = rest_token
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def is_configured(self) -> bool:
        return bool(self.rest_url and self.rest_token)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout, connect=self._timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def command(self, args: List[Any]) -> Any:
        """Run one command, e.g. ["INCR", "key"], and return its result."""
        if not self.is_configured():
            raise UpstashRedisError("Upstash Redis is not configured")

        client = self._get_client()
        resp = await client.post(
            self.rest_url,
            headers={"Authorization": f"Bearer {self.rest_token}"},
            content=json.dumps(args),
        )
        resp.raise_for_status()
        payload = resp.json()

        if isinstance(payload, dict) and payload.get("error"):
            raise UpstashRedisError(str(payload.get("error")))

        if isinstance(payload, dict) and "result" in payload:
            return payload.get("result")

        return payload

    async def get_int(self, key: str) -> int:
        res = await self.command(["GET", key])
        return int(res) if res is not None else 0

    async def incr(self, key: str) -> int:
        res = await self.command(["INCR", key])
        return int(res)

    async def pexpire(self, key: str, ttl_ms: int) -> None:
        await self.command(["PEXPIRE", key, int(ttl_ms)])


# Global instance
_upstash_redis: UpstashRedis | None = None


def get_upstash_redis() -> UpstashRedis:
    """Get the global Upstash client built from settings."""
    global _upstash_redis
    if _upstash_redis is None:
        settings = get_settings()
        _upstash_redis = UpstashRedis(
            rest_url=settings.upstash_redis_rest_url,
            rest_token=settings.upstash_redis_rest_token,
        )
    return _upstash_redis


async def close_upstash_redis() -> None:
    """Close and drop the global client (called on shutdown)."""
    global _upstash_redis
    if _upstash_redis is not None:
        await _upstash_redis.close()
        _upstash_redis = None
