"""Equivalence cache store.

A durable multi-key index of previously resolved identity records. Each row is
one equivalence class of general-purpose identifiers and can be found through
any of its populated identifier columns.
"""

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta

from pydantic import ValidationError
from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError

from idbridge import log
from idbridge.config.database import IdBridgeDB
from idbridge.exceptions import StorageError
from idbridge.models.db.id_mapping import IdMapping
from idbridge.models.identity import (
    GENERAL_PROVIDERS,
    CachedIdentity,
    ContentType,
    IdentityRecord,
    Provider,
)

__all__ = ["IdCacheStore"]

KnownIdentifiers = IdentityRecord | Mapping[Provider, int | str | None]


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to {operation}: {e}") from e


class IdCacheStore:
    """Equivalence cache backed by the `id_mappings` table.

    Writes are fill-if-empty upserts without any locking. Reads by the resolver
    ignore rows whose `updated_at` is older than the TTL window.
    """

    def __init__(
        self, db: IdBridgeDB, ttl_days: int = 90, max_size: int = 100_000
    ) -> None:
        """Initialize the store.

        Args:
            db (IdBridgeDB): Database manager used to open sessions.
            ttl_days (int): Age in days after which a row is treated as a miss.
            max_size (int): Row cap enforced by cache maintenance.
        """
        self.db = db
        self.ttl_days = ttl_days
        self.max_size = max_size

    def cutoff(self, days: int | None = None) -> datetime:
        """Return the oldest `updated_at` still inside the TTL window."""
        days = self.ttl_days if days is None else days
        return datetime.now(UTC) - timedelta(days=days)

    @staticmethod
    def _known_values(known: KnownIdentifiers) -> list[tuple[Provider, str]]:
        if isinstance(known, IdentityRecord):
            values = {p: known.get(p) for p in GENERAL_PROVIDERS}
        else:
            values = {Provider(p): v for p, v in known.items()}
        return [
            (p, str(values[p]))
            for p in GENERAL_PROVIDERS
            if values.get(p) not in (None, "")
        ]

    @staticmethod
    def _to_record(row: IdMapping) -> CachedIdentity | None:
        try:
            return row.to_record()
        except ValidationError as e:
            log.warning(f"Ignoring unreadable cache row $$'{row.id}'$$: {e}")
            return None

    def get(
        self, content_type: ContentType | str, known: KnownIdentifiers
    ) -> CachedIdentity | None:
        """Look up the cached equivalence class for any of the known identifiers.

        Each known general identifier is tried in turn (tmdb, tvdb, imdb,
        tvmaze); the first non-expired match is returned.

        Args:
            content_type (ContentType | str): Content type of the title.
            known (KnownIdentifiers): Identifiers already known to the caller.

        Returns:
            CachedIdentity | None: The matching row, or None on a miss.

        Raises:
            StorageError: If the database query fails.
        """
        content_type = ContentType(content_type)
        known_values = self._known_values(known)
        if not known_values:
            return None

        cutoff = self.cutoff()
        with _storage_errors("read from the id cache"), self.db() as ctx:
            for provider, value in known_values:
                column = getattr(IdMapping, provider.field)
                row = ctx.session.scalar(
                    select(IdMapping)
                    .where(
                        IdMapping.content_type == str(content_type),
                        column == value,
                        IdMapping.updated_at >= cutoff,
                    )
                    .order_by(IdMapping.updated_at.desc(), IdMapping.id.desc())
                    .limit(1)
                )
                if row is None:
                    continue
                record = self._to_record(row)
                if record is not None:
                    log.debug(
                        f"Cache hit for $$'{provider}:{value}'$$ "
                        f"({content_type}): $$'{record}'$$"
                    )
                    return record
        return None

    def put(self, record: IdentityRecord, *, overwrite: bool = False) -> bool:
        """Upsert a record into the cache.

        Records with fewer than two populated general identifiers are rejected.
        If a row for the same content type matches any populated identifier,
        the most recently updated one is merged into (fill-if-empty) and its
        `updated_at` bumped; otherwise a new row is inserted.

        Args:
            record (IdentityRecord): The record to persist.
            overwrite (bool): Replace conflicting non-null values instead of
                keeping them. Reserved for correction tooling.

        Returns:
            bool: True if a row was written.

        Raises:
            StorageError: If the database write fails.
        """
        known_values = self._known_values(record)
        if len(known_values) < 2:
            log.debug(
                f"Not caching $$'{record}'$$: fewer than two general identifiers"
            )
            return False

        content_type = str(record.content_type)
        with _storage_errors("write to the id cache"), self.db() as ctx:
            row = ctx.session.scalar(
                select(IdMapping)
                .where(
                    IdMapping.content_type == content_type,
                    or_(
                        *(
                            getattr(IdMapping, provider.field) == value
                            for provider, value in known_values
                        )
                    ),
                )
                .order_by(IdMapping.updated_at.desc(), IdMapping.id.desc())
                .limit(1)
            )

            if row is None:
                ctx.session.add(IdMapping.from_record(record))
                log.debug(f"Cached new mapping $$'{record}'$$")
            else:
                for provider, value in known_values:
                    current = getattr(row, provider.field)
                    if current is None:
                        setattr(row, provider.field, value)
                    elif current != value:
                        if overwrite:
                            log.info(
                                f"Overwriting $$'{provider}'$$ on cache row "
                                f"$$'{row.id}'$$: $$'{current}'$$ -> $$'{value}'$$"
                            )
                            setattr(row, provider.field, value)
                        else:
                            log.debug(
                                f"Keeping $$'{provider}:{current}'$$ on cache row "
                                f"$$'{row.id}'$$, ignoring $$'{value}'$$"
                            )
                row.updated_at = datetime.now(UTC)
                log.debug(f"Merged $$'{record}'$$ into cache row $$'{row.id}'$$")

            ctx.session.commit()
        return True

    def search(
        self,
        any_identifier: str | int,
        content_type: ContentType | str | None = None,
        limit: int = 10,
        offset: int = 0,
    ) -> list[CachedIdentity]:
        """Find rows where any identifier column equals `any_identifier`.

        A `provider:` prefix (e.g. `tmdb:603`) restricts the search to that
        provider's column. Expired rows are included.

        Raises:
            StorageError: If the database query fails.
        """
        value = str(any_identifier).strip()
        providers: tuple[Provider, ...] = GENERAL_PROVIDERS
        if ":" in value:
            prefix, _, rest = value.partition(":")
            try:
                provider = Provider(prefix)
            except ValueError:
                provider = None
            if provider in GENERAL_PROVIDERS:
                providers = (provider,)
                value = rest.strip()

        query = select(IdMapping).where(
            or_(*(getattr(IdMapping, p.field) == value for p in providers))
        )
        if content_type is not None:
            query = query.where(
                IdMapping.content_type == str(ContentType(content_type))
            )
        query = (
            query.order_by(IdMapping.updated_at.desc(), IdMapping.id.desc())
            .limit(limit)
            .offset(offset)
        )

        with _storage_errors("search the id cache"), self.db() as ctx:
            rows = ctx.session.scalars(query).all()
            return [r for row in rows if (r := self._to_record(row)) is not None]

    def list_by_type(
        self, content_type: ContentType | str, limit: int = 100, offset: int = 0
    ) -> list[CachedIdentity]:
        """Page through the rows of one content type, most recently updated first.

        Raises:
            StorageError: If the database query fails.
        """
        query = (
            select(IdMapping)
            .where(IdMapping.content_type == str(ContentType(content_type)))
            .order_by(IdMapping.updated_at.desc(), IdMapping.id.desc())
            .limit(limit)
            .offset(offset)
        )
        with _storage_errors("list the id cache"), self.db() as ctx:
            rows = ctx.session.scalars(query).all()
            return [r for row in rows if (r := self._to_record(row)) is not None]

    def count(self, content_type: ContentType | str | None = None) -> int:
        """Count cached rows, optionally for a single content type.

        Raises:
            StorageError: If the database query fails.
        """
        query = select(func.count(IdMapping.id))
        if content_type is not None:
            query = query.where(
                IdMapping.content_type == str(ContentType(content_type))
            )
        with _storage_errors("count the id cache"), self.db() as ctx:
            return ctx.session.scalar(query) or 0
