"""Time-bounded roster cache.

Holds the most recent successful roster fetch and serves it until its TTL
elapses. The clock is injected so tests can advance time deterministically.

Example:
    cache = RosterCache(RosterSource(url), ttl_seconds=300)
    cached = await cache.get_roster()
    if cached.from_cache:
        ...
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

import structlog

from gatong_pass.errors import FetchError
from gatong_pass.models import RosterParseResult, StudentRecord

logger = structlog.get_logger()


class RosterFetcher(Protocol):
    """Anything that can produce a fresh roster."""

    async def fetch_roster(self) -> RosterParseResult:
        ...


@dataclass(frozen=True)
class CachedRoster:
    """A roster snapshot as returned to callers.

    Attributes:
        result: Parsed roster and diagnostics.
        fetched_at: Clock reading when the snapshot was fetched.
        from_cache: True if no fetch happened for this call.
        stale: True if the snapshot is past its TTL (serve-stale policy only).
    """

    result: RosterParseResult
    fetched_at: float
    from_cache: bool
    stale: bool = False

    @property
    def students(self) -> list[StudentRecord]:
        return self.result.students


class RosterCache:
    """Single-snapshot cache in front of a roster fetcher.

    A snapshot is valid while ``clock() - fetched_at < ttl_seconds``. An
    expired snapshot is replaced only when a refetch succeeds. When a refetch
    fails the error propagates unless ``serve_stale_on_error`` is set and a
    snapshot exists; with no snapshot at all the failure is always raised.

    Concurrent callers during a refresh share one fetch.
    """

    DEFAULT_TTL_SECONDS = 300.0

    def __init__(
        self,
        source: RosterFetcher,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        serve_stale_on_error: bool = False,
    ) -> None:
        self._source = source
        self._ttl_seconds = ttl_seconds if ttl_seconds is not None else self.DEFAULT_TTL_SECONDS
        self._clock = clock
        self._serve_stale_on_error = serve_stale_on_error

        self._snapshot: Optional[RosterParseResult] = None
        self._fetched_at: float = 0.0
        self._refresh_lock = asyncio.Lock()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_seconds

    def _fresh_snapshot(self) -> Optional[RosterParseResult]:
        """The snapshot if it is still within its TTL, else None."""
        if self._snapshot is None or self._clock() - self._fetched_at >= self._ttl_seconds:
            return None
        return self._snapshot

    async def get_roster(self) -> CachedRoster:
        """Return the cached roster, refetching if it has expired.

        Raises:
            FetchError: If a refetch fails and no snapshot may be served.
        """
        snapshot = self._fresh_snapshot()
        if snapshot is not None:
            logger.debug("roster_cache_hit")
            return CachedRoster(snapshot, self._fetched_at, from_cache=True)

        async with self._refresh_lock:
            # Another caller may have refreshed while we waited
            snapshot = self._fresh_snapshot()
            if snapshot is not None:
                return CachedRoster(snapshot, self._fetched_at, from_cache=True)

            try:
                result = await self._source.fetch_roster()
            except FetchError:
                if self._serve_stale_on_error and self._snapshot is not None:
                    logger.warning(
                        "roster_serving_stale",
                        age_seconds=round(self._clock() - self._fetched_at, 1),
                    )
                    return CachedRoster(
                        self._snapshot, self._fetched_at, from_cache=True, stale=True
                    )
                raise

            self._snapshot, self._fetched_at = result, self._clock()
            logger.info("roster_cache_refreshed", students=len(result.students))
            return CachedRoster(result, self._fetched_at, from_cache=False)
