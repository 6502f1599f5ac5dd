"""Key/value facts about the cache that outlive a single process."""

from datetime import UTC, datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, Session, mapped_column

from idbridge.models.db.base import Base

__all__ = ["Housekeeping"]


class Housekeeping(Base):
    """One stored fact, such as the last optimize time or the anime dataset hash."""

    __tablename__ = "house_keeping"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[str | None] = mapped_column(String, nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    @classmethod
    def get_value(cls, session: Session, key: str) -> str | None:
        entry = session.get(cls, key)
        return entry.value if entry is not None else None

    @classmethod
    def set_value(cls, session: Session, key: str, value: str | None) -> str | None:
        """Store `value` under `key` and return the value it replaced.

        The caller owns the transaction and must commit.
        """
        entry = session.get(cls, key)
        now = datetime.now(UTC)
        if entry is None:
            session.add(cls(key=key, value=value, updated_at=now))
            return None
        previous = entry.value
        entry.value = value
        entry.updated_at = now
        return previous
