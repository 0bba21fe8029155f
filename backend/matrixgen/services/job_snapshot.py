"""Job snapshot persistence — keeps the job list across restarts.

The whole (capped) job list is stored as one JSON document. The writer
subscribes to queue changes and saves from a background task; bursts of
changes collapse into one write of the latest snapshot.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Protocol

import redis.asyncio as aioredis

from matrixgen.services.job_queue import JobQueue

logger = logging.getLogger(__name__)


class JobSnapshotStore(Protocol):
    async def load(self) -> list[dict[str, Any]]:
        ...

    async def save(self, records: list[dict[str, Any]]) -> None:
        ...


class InMemoryJobSnapshotStore:
    """Process-local store; contents are lost on exit."""

    def __init__(self, records: list[dict[str, Any]] | None = None) -> None:
        self.records: list[dict[str, Any]] = list(records or [])
        self.saves = 0

    async def load(self) -> list[dict[str, Any]]:
        return list(self.records)

    async def save(self, records: list[dict[str, Any]]) -> None:
        self.records = list(records)
        self.saves += 1


class RedisJobSnapshotStore:
    """JSON list under a single Redis key."""

    def __init__(self, redis_url: str, key: str, client: aioredis.Redis | None = None) -> None:
        self._client = client or aioredis.from_url(redis_url, decode_responses=True)
        self.key = key

    async def load(self) -> list[dict[str, Any]]:
        raw = await self._client.get(self.key)
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Job snapshot under %s is not valid JSON, ignoring", self.key)
            return []
        return [r for r in data if isinstance(r, dict)] if isinstance(data, list) else []

    async def save(self, records: list[dict[str, Any]]) -> None:
        await self._client.set(self.key, json.dumps(records, ensure_ascii=False))

    async def aclose(self) -> None:
        await self._client.aclose()


class JobSnapshotWriter:
    """Coalescing background writer from a ``JobQueue`` to a ``JobSnapshotStore``."""

    def __init__(self, queue: JobQueue, store: JobSnapshotStore) -> None:
        self._queue = queue
        self._store = store
        self._dirty = asyncio.Event()
        self._task: asyncio.Task | None = None
        queue.add_listener(self._dirty.set)

    async def restore(self) -> int:
        """Load the persisted snapshot into the queue."""
        try:
            records = await self._store.load()
        except Exception:
            logger.warning("Failed to load job snapshot, starting empty", exc_info=True)
            return 0
        return self._queue.restore(records)

    async def flush(self) -> None:
        self._dirty.clear()
        try:
            await self._store.save(self._queue.snapshot())
        except Exception:
            logger.warning("Failed to save job snapshot", exc_info=True)

    async def _run(self) -> None:
        while True:
            await self._dirty.wait()
            await self.flush()

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(), name="matrixgen-snapshot-writer")

    async def stop(self) -> None:
        """Stop the background task and write the final state."""
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
        await self.flush()
