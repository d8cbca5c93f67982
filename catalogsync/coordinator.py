"""Sync coordinator: decides between cache hit and refresh, publishes state.

States are derived from the three signals on ``StateChannel``:

- Idle: data present, not loading, no error
- Refreshing: loading, previous data retained
- Failed: error, not loading, previous data retained

A refresh runs as a single task that concurrent callers join. Its commit
phase (replace the cached collection, then record the freshness marker) runs
under one lock and is shielded from cancellation once started.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Sequence

from .cache import NEVER, EntityStore, FreshnessStore
from .errors import DecodeError, StorageError, TransportError
from .models import Entity
from .remote import RemoteSourceClient
from .state import StateChannel

logger = logging.getLogger(__name__)

NANOS_PER_MINUTE = 60 * 1_000_000_000

# Cached data younger than this is served without touching the network
DEFAULT_TTL_NS = 10 * NANOS_PER_MINUTE


class SyncCoordinator:
    """Orchestrates the entity store, freshness store and remote client.

    One coordinator corresponds to one consumer session. The stores and the
    remote client are shared and owned by the caller.
    """

    def __init__(
        self,
        cache: EntityStore,
        freshness: FreshnessStore,
        remote: RemoteSourceClient,
        ttl_ns: int = DEFAULT_TTL_NS,
        clock: Callable[[], int] = time.time_ns,
    ):
        """Initialize the coordinator.

        Args:
            cache: Durable entity cache.
            freshness: Store for the last-sync marker.
            remote: Client for the remote source.
            ttl_ns: Freshness window in nanoseconds.
            clock: Returns the current time in nanoseconds since the epoch.
        """
        self._cache = cache
        self._freshness = freshness
        self._remote = remote
        self.ttl_ns = ttl_ns
        self._clock = clock
        self.state = StateChannel()
        self._commit_lock = asyncio.Lock()
        self._refresh_task: asyncio.Task | None = None
        self._commit_task: asyncio.Task | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def refreshing(self) -> bool:
        """True while a refresh task is in flight."""
        return self._refresh_task is not None and not self._refresh_task.done()

    def snapshot(self) -> dict[str, Any]:
        return self.state.snapshot()

    def _is_fresh(self, last_sync: int, now: int) -> bool:
        if last_sync == NEVER:
            return False
        # A marker in the future means the clock moved; treat as stale.
        age = now - last_sync
        return 0 <= age < self.ttl_ns

    # ==================== Public operations ====================

    async def sync(self, force_refresh: bool = False) -> None:
        """Serve from cache if fresh, otherwise refresh from the remote.

        Args:
            force_refresh: Skip the freshness check and always refresh.
        """
        if self._closed:
            logger.debug("sync() called on closed coordinator")
            return

        if not force_refresh:
            last_sync = await asyncio.to_thread(self._freshness.last_sync_time)
            if self._is_fresh(last_sync, self._clock()):
                try:
                    entities = await asyncio.to_thread(self._cache.read_all)
                except StorageError as e:
                    logger.warning(f"Cache read failed, refreshing instead: {e}")
                else:
                    logger.debug(f"Serving {len(entities)} entities from cache")
                    self._show(entities, settle=not self.refreshing)
                    return

        await self._join_refresh()

    async def reset_and_resync(self) -> None:
        """Clear the cache and freshness marker, then force a refresh.

        The refresh runs once. If it fails, the error signal is published and
        nothing retries automatically.
        """
        if self._closed:
            logger.debug("reset_and_resync() called on closed coordinator")
            return

        await self._cancel_refresh()

        try:
            async with self._commit_lock:
                await asyncio.to_thread(self._cache.clear)
                await asyncio.to_thread(self._freshness.clear)
        except StorageError as e:
            logger.error(f"Reset failed: {e}")
            self._fail()
            return

        logger.info("Cache reset, forcing refresh")
        self._show(())
        await self._join_refresh()

    async def get_entity(self, uuid: int) -> Entity:
        """Load one cached entity.

        Raises:
            NotFound: If no cached entity has this identifier.
        """
        return await asyncio.to_thread(self._cache.read_by_id, uuid)

    async def read_cached(self) -> list[Entity]:
        """Read the cached collection without syncing or publishing."""
        return await asyncio.to_thread(self._cache.read_all)

    async def cache_status(self) -> dict[str, Any]:
        """Cache statistics plus the freshness marker and whether it is fresh."""
        stats = await asyncio.to_thread(self._cache.get_stats)
        last_sync = await asyncio.to_thread(self._freshness.last_sync_time)
        return {
            **stats,
            "last_sync_time": last_sync,
            "fresh": self._is_fresh(last_sync, self._clock()),
        }

    async def close(self) -> None:
        """End the session.

        Cancels an in-flight refresh and stops all further publishing. A commit
        that has already started is allowed to finish.
        """
        if self._closed:
            return

        self._closed = True
        self.state.close()
        await self._cancel_refresh()

        if self._commit_task is not None and not self._commit_task.done():
            await asyncio.gather(self._commit_task, return_exceptions=True)

        logger.info("SyncCoordinator closed")

    # ==================== Refresh ====================

    async def _join_refresh(self) -> None:
        """Start a refresh, or wait for the one already in flight."""
        task = self._refresh_task
        if task is None or task.done():
            task = asyncio.create_task(self._refresh())
            self._refresh_task = task
        else:
            logger.debug("Joining in-flight refresh")

        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            # Refresh torn down by close() or a reset; this caller was not cancelled
            if task.cancelled():
                return
            raise

    async def _refresh(self) -> None:
        self.state.loading.set(True)
        self.state.error.set(False)

        try:
            fetched = await self._remote.fetch_all()
        except (TransportError, DecodeError) as e:
            logger.warning(f"Refresh failed: {e}")
            self._fail()
            return

        commit = asyncio.ensure_future(self._commit(fetched))
        commit.add_done_callback(_retrieve_commit_result)
        self._commit_task = commit

        try:
            stored = await asyncio.shield(commit)
        except StorageError as e:
            logger.error(f"Refresh commit failed: {e}")
            self._fail()
            return

        logger.info(f"Refresh committed {len(stored)} entities")
        self._show(stored)

    async def _commit(self, entities: Sequence[Entity]) -> list[Entity]:
        async with self._commit_lock:
            stored = await asyncio.to_thread(self._cache.replace_all, entities)
            await asyncio.to_thread(self._freshness.record_sync_time, self._clock())
        return stored

    async def _cancel_refresh(self) -> None:
        task = self._refresh_task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            logger.debug("In-flight refresh cancelled")
        self._refresh_task = None

    # ==================== Publishing ====================

    def _show(self, entities: Sequence[Entity], settle: bool = True) -> None:
        self.state.data.set(tuple(entities))
        if settle:
            self.state.loading.set(False)
            self.state.error.set(False)

    def _fail(self) -> None:
        # loading is cleared before error is raised
        self.state.loading.set(False)
        self.state.error.set(True)


def _retrieve_commit_result(task: asyncio.Task) -> None:
    """Mark a detached commit's outcome as retrieved."""
    if not task.cancelled() and task.exception() is not None:
        logger.debug(f"Commit finished with {task.exception()!r}")
