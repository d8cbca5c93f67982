"""Composition root owning the process-wide stores and remote client."""

import logging
import threading

from .cache import EntityStore, FreshnessStore
from .config import Config
from .coordinator import NANOS_PER_MINUTE, SyncCoordinator
from .remote import RemoteSourceClient

logger = logging.getLogger(__name__)


class Container:
    """Builds each shared collaborator at most once, on first use.

    Construction is guarded by double-checked locking so concurrent first
    access from several threads still yields a single instance.
    """

    def __init__(self, config: Config):
        self.config = config
        self._lock = threading.Lock()
        self._entity_store: EntityStore | None = None
        self._freshness_store: FreshnessStore | None = None
        self._remote: RemoteSourceClient | None = None

    @property
    def entity_store(self) -> EntityStore:
        if self._entity_store is None:
            with self._lock:
                if self._entity_store is None:
                    store = EntityStore(self.config.cache.db_path)
                    store.connect()
                    self._entity_store = store
        return self._entity_store

    @property
    def freshness_store(self) -> FreshnessStore:
        if self._freshness_store is None:
            with self._lock:
                if self._freshness_store is None:
                    # Connects on first use; an unopenable store reads as never synced
                    self._freshness_store = FreshnessStore(self.config.freshness.db_path)
        return self._freshness_store

    @property
    def remote(self) -> RemoteSourceClient:
        if self._remote is None:
            with self._lock:
                if self._remote is None:
                    self._remote = RemoteSourceClient(
                        base_url=self.config.remote.base_url,
                        path=self.config.remote.path,
                        timeout=self.config.remote.timeout,
                    )
        return self._remote

    def create_coordinator(self) -> SyncCoordinator:
        """Create a coordinator for a new consumer session."""
        return SyncCoordinator(
            cache=self.entity_store,
            freshness=self.freshness_store,
            remote=self.remote,
            ttl_ns=self.config.freshness.ttl_minutes * NANOS_PER_MINUTE,
        )

    async def close(self) -> None:
        """Release every collaborator that was built."""
        if self._remote is not None:
            await self._remote.close()
        if self._entity_store is not None:
            self._entity_store.close()
        if self._freshness_store is not None:
            self._freshness_store.close()
        logger.info("Container closed")
