"""
utils/cache.py — Time-boxed, request-coalescing cache for one async fetch.

The location catalog changes rarely but is needed by every query. Within
the freshness window all callers reuse the cached value; once it expires the
next caller starts exactly one refetch and every caller that arrives while
it is in flight awaits the same task.

Usage:
    cache = CatalogCache(client.get_metadata, ttl=300.0)
    metadata, from_cache = await cache.get()
    cache.invalidate()

Tests inject a fake clock:
    now = [0.0]
    cache = CatalogCache(fetch, ttl=10.0, clock=lambda: now[0])
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

import structlog

log = structlog.get_logger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]


class CatalogCache(Generic[T]):
    """Single-value TTL cache with an injectable clock and coalesced refetch."""

    def __init__(
        self,
        fetch: Callable[[], Awaitable[T]],
        *,
        ttl: float = 300.0,
        clock: Clock = time.monotonic,
        serve_stale_on_error: bool = True,
    ) -> None:
        self._fetch = fetch
        self._ttl = ttl
        self._clock = clock
        self._serve_stale_on_error = serve_stale_on_error
        self._value: T | None = None
        self._fetched_at: float | None = None
        self._inflight: asyncio.Task[tuple[T, bool]] | None = None
        self.fetch_count = 0

    @property
    def is_fresh(self) -> bool:
        if self._value is None or self._fetched_at is None:
            return False
        return (self._clock() - self._fetched_at) < self._ttl

    async def get(self, force_refresh: bool = False) -> tuple[T, bool]:
        """
        Return (value, from_cache).

        from_cache is False for every caller that shared a refetch, and True
        when a stale value was served because the refetch failed.
        """
        if not force_refresh and self.is_fresh:
            return self._value, True  # type: ignore[return-value]

        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._refresh())
        else:
            log.debug("cache_refetch_joined")
        # One waiter being cancelled must not cancel the shared refetch
        return await asyncio.shield(self._inflight)

    def invalidate(self) -> None:
        """Drop the cached value; the next get() refetches."""
        self._value = None
        self._fetched_at = None

    async def _refresh(self) -> tuple[T, bool]:
        self.fetch_count += 1
        try:
            value = await self._fetch()
        except Exception as exc:
            if self._serve_stale_on_error and self._value is not None:
                log.warning("cache_refetch_failed_serving_stale", error=str(exc))
                return self._value, True
            raise
        finally:
            self._inflight = None

        self._value = value
        self._fetched_at = self._clock()
        log.debug("cache_refreshed", ttl=self._ttl)
        return value, False
