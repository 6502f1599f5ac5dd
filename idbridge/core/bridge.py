"""Bridge Module.

Wires configuration, storage, the anime table, provider clients and the
resolver into one object that owns their lifecycles.
"""

from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError

from idbridge import log
from idbridge.config.database import IdBridgeDB
from idbridge.config.settings import IdBridgeConfig
from idbridge.core.animap import AnimeMappingTable
from idbridge.core.id_cache import IdCacheStore
from idbridge.core.maintenance import IdCacheManager
from idbridge.core.metrics import MetricsChannel
from idbridge.core.providers.registry import ClientRegistry
from idbridge.core.resolver import IdResolver
from idbridge.exceptions import StorageError
from idbridge.models.db.housekeeping import Housekeeping

__all__ = ["IdBridge"]

ANIME_DATASET_KEY = "anime_dataset_hash"


class IdBridge:
    """Application container for one data path."""

    def __init__(self, config: IdBridgeConfig, db: IdBridgeDB | None = None) -> None:
        """Initialize the bridge.

        Args:
            config (IdBridgeConfig): Application configuration.
            db (IdBridgeDB | None): Database manager. One is created for the
                configured data path if not given.
        """
        self.config = config
        self.db = db or IdBridgeDB(config.data_path)
        self.store = IdCacheStore(
            self.db, ttl_days=config.cache.ttl_days, max_size=config.cache.max_size
        )
        self.manager = IdCacheManager(self.store)
        self.metrics = MetricsChannel(maxsize=config.metrics_queue_size)
        self.registry = ClientRegistry(config.providers, metrics=self.metrics)
        self.anime_table: AnimeMappingTable | None = None
        self._resolver: IdResolver | None = None

    @property
    def resolver(self) -> IdResolver:
        """The resolver, available after `initialize`."""
        if self._resolver is None:
            raise RuntimeError("IdBridge.initialize() has not been awaited")
        return self._resolver

    async def initialize(self) -> None:
        """Load the anime table and build the default resolver.

        Raises:
            AnimeMappingError: If the anime dataset cannot be loaded.
        """
        log.info("Loading anime mapping table")
        self.anime_table = AnimeMappingTable.from_file(self.config.anime_mappings_path)
        self._record_dataset_hash(self.anime_table.dataset_hash)

        self._resolver = IdResolver(
            self.anime_table, self.store, self.registry.clients_for()
        )
        self.metrics.start()
        log.success(
            f"IdBridge ready with $$'{len(self.anime_table)}'$$ anime mappings and "
            f"$$'{self.store.count()}'$$ cached entries"
        )

    def _record_dataset_hash(self, dataset_hash: str) -> None:
        try:
            with self.db() as ctx:
                previous = Housekeeping.set_value(
                    ctx.session, ANIME_DATASET_KEY, dataset_hash
                )
                ctx.session.commit()
            if previous is not None and previous != dataset_hash:
                log.info("Anime mapping dataset changed since the last start")
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to record the anime dataset hash: {e}") from e

    async def close(self) -> None:
        """Close provider sessions, stop metrics and release the database."""
        await self.registry.close()
        await self.metrics.stop()
        self.db.dispose()

    async def __aenter__(self) -> IdBridge:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
