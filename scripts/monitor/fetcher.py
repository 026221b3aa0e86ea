"""
Aggregate fetcher: polls every source concurrently once per cycle.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Sequence

import httpx

from monitor.config import DEFAULT_TIMEOUT
from monitor.providers import PollStats, Snapshot
from monitor.sources import HEALTH, Source, timed_poll

logger = logging.getLogger(__name__)


class DataFetcher:
    """Runs all sources for one cycle and merges the results.

    The cycle waits for every source to finish or time out; the wall time
    is bounded by the slowest source's own timeout. Only the primary
    source feeds :class:`PollStats`.
    """

    def __init__(
        self,
        sources: Sequence[Source],
        primary: str = HEALTH,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        names = [s.name for s in sources]
        if len(set(names)) != len(names):
            raise ValueError(f"duplicate source names: {names}")
        if primary not in names:
            raise ValueError(f"primary source {primary!r} is not configured")
        self._sources = tuple(sources)
        self._primary = primary
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def source_names(self) -> tuple[str, ...]:
        return tuple(s.name for s in self._sources)

    @property
    def primary(self) -> str:
        return self._primary

    async def fetch_all(self, previous_stats: PollStats) -> tuple[Snapshot, PollStats]:
        """Poll every source and return the snapshot plus updated stats."""
        taken_at = datetime.now(timezone.utc)
        started = time.perf_counter()

        # Each task returns its own result; nothing shared is written here.
        results = await asyncio.gather(
            *(timed_poll(source, self._client, started) for source in self._sources)
        )
        snapshot = Snapshot(taken_at=taken_at, results=tuple(results))

        primary = snapshot.get(self._primary)
        if primary.ok:
            stats = previous_stats.record_success(primary.elapsed_ms)
        else:
            stats = previous_stats.record_failure()

        failed = [r.name for r in snapshot.results if not r.ok]
        if failed:
            logger.info("cycle finished with failures: %s", ", ".join(failed))
        else:
            logger.debug("cycle finished in %.0fms", (time.perf_counter() - started) * 1000)
        return snapshot, stats

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
