"""Equivalence Cache Row Model."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql.sqltypes import DateTime, Integer, String

from idbridge.models.db.base import Base
from idbridge.models.identity import GENERAL_PROVIDERS, CachedIdentity, IdentityRecord

__all__ = ["IdMapping"]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class IdMapping(Base):
    """One equivalence class of general-purpose identifiers.

    Every identifier column is indexed on its own so that any populated
    identifier resolves the whole row. Identifiers are stored as strings.
    """

    __tablename__ = "id_mappings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content_type: Mapped[str] = mapped_column(String, nullable=False, index=True)

    tmdb_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    tvdb_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    imdb_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    tvmaze_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=_utcnow, index=True
    )

    @classmethod
    def from_record(cls, record: IdentityRecord) -> IdMapping:
        """Build a new row from the general identifiers of `record`."""
        now = _utcnow()
        row = cls(content_type=str(record.content_type), created_at=now, updated_at=now)
        for provider in GENERAL_PROVIDERS:
            value = record.get(provider)
            setattr(row, provider.field, None if value is None else str(value))
        return row

    def to_record(self) -> CachedIdentity:
        """Convert the row back to a validated identity record."""
        return CachedIdentity(
            content_type=self.content_type,
            tmdb_id=self.tmdb_id,
            tvdb_id=self.tvdb_id,
            imdb_id=self.imdb_id,
            tvmaze_id=self.tvmaze_id,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def __repr__(self) -> str:
        return (
            f"<IdMapping {self.id} {self.content_type} tmdb={self.tmdb_id} "
            f"tvdb={self.tvdb_id} imdb={self.imdb_id} tvmaze={self.tvmaze_id}>"
        )
