"""In-process TTL cache for pre-serialized JSON responses."""

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from fastapi import Request, Response
from pydantic import BaseModel

from .config import settings


@dataclass
class _CacheEntry:
    expires_at: float
    payload: bytes


class ResponseCache:
    """Map of request keys to serialized response bodies with a time-to-live.

    Entries are only evicted lazily on lookup or by purge_expired(), which the
    scheduler calls periodically.
    """

    def __init__(
        self,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, _CacheEntry] = {}

    def get(self, key: str) -> bytes | None:
        """Return the cached payload for key, or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._entries[key]
            return None
        return entry.payload

    def set(self, key: str, payload: bytes) -> None:
        if self.ttl_seconds <= 0:
            return
        self._entries[key] = _CacheEntry(
            expires_at=self._clock() + self.ttl_seconds,
            payload=payload,
        )

    def purge_expired(self) -> int:
        """Drop expired entries and return how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


response_cache = ResponseCache(ttl_seconds=settings.response_cache_ttl_seconds)


def request_cache_key(request: Request) -> str:
    """Key a request by path and raw query string."""
    return f"{request.url.path}?{request.url.query}"


async def cached_json_response(
    request: Request,
    build: Callable[[], Awaitable[BaseModel]],
    cache: ResponseCache | None = None,
) -> Response:
    """Serve a JSON body from the cache, building and storing it on a miss.

    The ``X-Cache`` header reports HIT or MISS.
    """
    cache = cache if cache is not None else response_cache
    key = request_cache_key(request)

    payload = cache.get(key)
    if payload is not None:
        return Response(content=payload, media_type="application/json", headers={"X-Cache": "HIT"})

    model = await build()
    payload = model.model_dump_json().encode()
    cache.set(key, payload)
    return Response(content=payload, media_type="application/json", headers={"X-Cache": "MISS"})
