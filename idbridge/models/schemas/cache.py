"""Equivalence cache reporting schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

__all__ = ["CacheStats", "ContentTypeStats", "OptimizeResult"]


class ContentTypeStats(BaseModel):
    """Coverage counters for the rows of a single content type."""

    content_type: str
    total: int = 0
    with_tmdb: int = 0
    with_tvdb: int = 0
    with_imdb: int = 0
    with_tvmaze: int = 0
    complete: int = Field(
        default=0, description="Rows with tmdb, tvdb and imdb identifiers"
    )
    expired: int = 0


class CacheStats(BaseModel):
    """Summary of the equivalence cache contents."""

    by_type: list[ContentTypeStats] = Field(default_factory=list)
    total_entries: int = 0
    estimated_size_kb: int = 0
    max_size: int
    ttl_days: int
    last_optimized: datetime | None = None

    @property
    def usage_percentage(self) -> int:
        """Share of the configured capacity in use, rounded to a whole percent."""
        if not self.total_entries or not self.max_size:
            return 0
        return round(self.total_entries / self.max_size * 100)


class OptimizeResult(BaseModel):
    """Row counts removed by one optimize pass."""

    expired: int = 0
    evicted: int = 0
