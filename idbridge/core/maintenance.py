"""Cache maintenance and administrative operations for the equivalence cache."""

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from itertools import batched
from typing import Any

from pydantic import ValidationError
from sqlalchemy import case, delete, func, select
from sqlalchemy.exc import SQLAlchemyError

from idbridge import log
from idbridge.config.database import IdBridgeDB
from idbridge.core.id_cache import IdCacheStore
from idbridge.exceptions import InvalidArgumentError, StorageError
from idbridge.models.db.housekeeping import Housekeeping
from idbridge.models.db.id_mapping import IdMapping
from idbridge.models.identity import ContentType, IdentityRecord
from idbridge.models.schemas.cache import CacheStats, ContentTypeStats, OptimizeResult

__all__ = ["IdCacheManager"]

LAST_OPTIMIZED_KEY = "last_optimized"


class IdCacheManager:
    """Maintenance and operator tooling for an `IdCacheStore`.

    Expire, enforce-size and housekeeping are idempotent and can be run on
    their own or together through `optimize`.
    """

    # Thresholds used by `recommendations`
    USAGE_WARNING_PERCENT = 80
    SIZE_WARNING_KB = 10 * 1024
    ENTRIES_WARNING = 50_000

    def __init__(self, store: IdCacheStore, db: IdBridgeDB | None = None) -> None:
        self.store = store
        self.db = db or store.db

    @property
    def ttl_days(self) -> int:
        return self.store.ttl_days

    @property
    def max_size(self) -> int:
        return self.store.max_size

    def _execute_delete(self, statement, operation: str) -> int:
        try:
            with self.db() as ctx:
                result = ctx.session.execute(
                    statement.execution_options(synchronize_session=False)
                )
                ctx.session.commit()
                return result.rowcount or 0
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to {operation}: {e}") from e

    def expire(self, days: int | None = None) -> int:
        """Delete rows whose `updated_at` is older than `days` (default: TTL).

        Returns:
            int: Number of rows deleted.
        """
        days = self.ttl_days if days is None else days
        if days < 0:
            raise InvalidArgumentError("days must not be negative")

        removed = self._execute_delete(
            delete(IdMapping).where(IdMapping.updated_at < self.store.cutoff(days)),
            "expire cache rows",
        )
        if removed:
            log.info(
                f"Cleared $$'{removed}'$$ cache entries older than $$'{days}'$$ days"
            )
        return removed

    def clear_older_than(self, days: int) -> int:
        """Operator alias of `expire` with an explicit age."""
        return self.expire(days)

    def clear_all(self) -> int:
        """Delete every cached row.

        Returns:
            int: Number of rows deleted.
        """
        removed = self._execute_delete(delete(IdMapping), "clear the cache")
        log.info(f"Cleared all $$'{removed}'$$ cache entries")
        return removed

    def enforce_size(self) -> int:
        """Delete the oldest rows until the row count is at most `max_size`.

        Returns:
            int: Number of rows evicted.
        """
        current = self.store.count()
        if current <= self.max_size:
            return 0

        to_remove = current - self.max_size
        oldest = (
            select(IdMapping.id)
            .order_by(IdMapping.updated_at.asc(), IdMapping.id.asc())
            .limit(to_remove)
        )
        removed = self._execute_delete(
            delete(IdMapping).where(IdMapping.id.in_(oldest)),
            "enforce the cache size limit",
        )
        log.info(
            f"Enforced size limit of $$'{self.max_size}'$$: removed $$'{removed}'$$ "
            "oldest entries"
        )
        return removed

    def housekeeping(self) -> None:
        """Compact the database file and refresh planner statistics.

        Does not change the logical contents of the cache.
        """
        try:
            with self.db.engine.connect().execution_options(
                isolation_level="AUTOCOMMIT"
            ) as conn:
                if self.db.engine.dialect.name == "sqlite":
                    conn.exec_driver_sql("VACUUM")
                    conn.exec_driver_sql("ANALYZE")
                else:
                    conn.exec_driver_sql(f"ANALYZE {IdMapping.__tablename__}")
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to compact the cache database: {e}") from e
        log.debug("Database vacuumed and statistics updated")

    def optimize(self) -> OptimizeResult:
        """Run expire, enforce-size and housekeeping in sequence.

        Returns:
            OptimizeResult: Rows removed by the expire and eviction steps.
        """
        log.info("Starting storage optimization")
        expired = self.expire()
        evicted = self.enforce_size()
        self.housekeeping()
        self._set_housekeeping(LAST_OPTIMIZED_KEY, datetime.now(UTC).isoformat())

        log.success(
            f"Storage optimization complete: $$'{expired}'$$ expired, "
            f"$$'{evicted}'$$ evicted"
        )
        return OptimizeResult(expired=expired, evicted=evicted)

    def _set_housekeeping(self, key: str, value: str | None) -> None:
        try:
            with self.db() as ctx:
                Housekeeping.set_value(ctx.session, key, value)
                ctx.session.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to record '{key}': {e}") from e

    def _get_housekeeping(self, key: str) -> str | None:
        try:
            with self.db() as ctx:
                return Housekeeping.get_value(ctx.session, key)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read '{key}': {e}") from e

    def stats(self) -> CacheStats:
        """Collect per-content-type coverage and storage estimates."""
        cutoff = self.store.cutoff()

        def _count_when(condition):
            return func.count(case((condition, 1)))

        by_type_query = (
            select(
                IdMapping.content_type,
                func.count(IdMapping.id),
                _count_when(IdMapping.tmdb_id.is_not(None)),
                _count_when(IdMapping.tvdb_id.is_not(None)),
                _count_when(IdMapping.imdb_id.is_not(None)),
                _count_when(IdMapping.tvmaze_id.is_not(None)),
                _count_when(
                    IdMapping.tmdb_id.is_not(None)
                    & IdMapping.tvdb_id.is_not(None)
                    & IdMapping.imdb_id.is_not(None)
                ),
                _count_when(IdMapping.updated_at < cutoff),
            )
            .group_by(IdMapping.content_type)
            .order_by(IdMapping.content_type)
        )
        size_query = select(
            func.count(IdMapping.id),
            func.sum(
                func.coalesce(func.length(IdMapping.tmdb_id), 0)
                + func.coalesce(func.length(IdMapping.tvdb_id), 0)
                + func.coalesce(func.length(IdMapping.imdb_id), 0)
                + func.coalesce(func.length(IdMapping.tvmaze_id), 0)
            ),
        )

        try:
            with self.db() as ctx:
                rows = ctx.session.execute(by_type_query).all()
                total_entries, total_size = ctx.session.execute(size_query).one()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to collect cache statistics: {e}") from e

        last_optimized = self._get_housekeeping(LAST_OPTIMIZED_KEY)
        return CacheStats(
            by_type=[
                ContentTypeStats(
                    content_type=row[0],
                    total=row[1],
                    with_tmdb=row[2],
                    with_tvdb=row[3],
                    with_imdb=row[4],
                    with_tvmaze=row[5],
                    complete=row[6],
                    expired=row[7],
                )
                for row in rows
            ],
            total_entries=total_entries or 0,
            estimated_size_kb=round((total_size or 0) / 1024),
            max_size=self.max_size,
            ttl_days=self.ttl_days,
            last_optimized=(
                datetime.fromisoformat(last_optimized) if last_optimized else None
            ),
        )

    def recommendations(self, stats: CacheStats | None = None) -> list[str]:
        """Suggest operator actions based on the current cache statistics."""
        stats = stats or self.stats()
        recommendations = []
        if stats.usage_percentage > self.USAGE_WARNING_PERCENT:
            recommendations.append(
                "Cache is nearly full. Consider increasing cache.max_size or "
                "clearing old entries."
            )
        if stats.estimated_size_kb > self.SIZE_WARNING_KB:
            recommendations.append(
                "Cache size is large. Consider clearing old entries or lowering "
                "cache.ttl_days."
            )
        if stats.total_entries > self.ENTRIES_WARNING:
            recommendations.append(
                "Large number of entries. Consider a shorter "
                "cache.maintenance_interval for more frequent cleanup."
            )
        return recommendations

    def add_mapping(
        self,
        content_type: ContentType | str,
        tmdb_id: int | str | None = None,
        tvdb_id: int | str | None = None,
        imdb_id: str | None = None,
        tvmaze_id: int | str | None = None,
        *,
        overwrite: bool = False,
    ) -> bool:
        """Manually add a mapping, making room for it first.

        Args:
            content_type (ContentType | str): `movie` or `series`.
            tmdb_id, tvdb_id, imdb_id, tvmaze_id: Identifiers to correlate.
            overwrite (bool): Replace conflicting values on an existing row.

        Returns:
            bool: True if a row was written, False if fewer than two
                identifiers were given.

        Raises:
            InvalidArgumentError: If the content type or an identifier is invalid.
        """
        record = self._build_record(
            {
                "content_type": content_type,
                "tmdb_id": tmdb_id,
                "tvdb_id": tvdb_id,
                "imdb_id": imdb_id,
                "tvmaze_id": tvmaze_id,
            }
        )
        self.enforce_size()
        added = self.store.put(record, overwrite=overwrite)
        if added:
            log.info(f"Added mapping $$'{record}'$$")
        return added

    def batch_add_mappings(
        self,
        mappings: Iterable[IdentityRecord | Mapping[str, Any]],
        batch_size: int = 100,
    ) -> int:
        """Add many mappings, enforcing the size cap every ten batches.

        Invalid mappings are logged and skipped.

        Returns:
            int: Number of mappings written.
        """
        added = 0
        for index, batch in enumerate(batched(mappings, batch_size)):
            for mapping in batch:
                try:
                    record = (
                        mapping
                        if isinstance(mapping, IdentityRecord)
                        else self._build_record(mapping)
                    )
                except InvalidArgumentError as e:
                    log.warning(f"Skipping invalid mapping {mapping!r}: {e}")
                    continue
                if self.store.put(record):
                    added += 1
            if index % 10 == 0:
                self.enforce_size()

        self.enforce_size()
        log.info(f"Batch added $$'{added}'$$ mappings")
        return added

    @staticmethod
    def _build_record(values: Mapping[str, Any]) -> IdentityRecord:
        try:
            return IdentityRecord.model_validate(dict(values))
        except ValidationError as e:
            raise InvalidArgumentError(f"Invalid mapping: {e}") from e
