"""Anime Mapping Dataset Schema."""

from __future__ import annotations

from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from idbridge.models.identity import ANIME_PROVIDERS, ContentType, IdentityRecord

__all__ = ["AnimeMappingEntry"]

# Dataset `type` values describing episodic releases
SERIES_TYPES = frozenset({"tv", "ova", "ona", "special"})


class AnimeMappingEntry(BaseModel):
    """One row of the community anime-list dataset.

    Identifier fields are parsed leniently: values that are missing, blank or
    not positive integers become None. A row without any animation identifier
    is rejected.
    """

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    mal_id: int | None = None
    kitsu_id: int | None = None
    anidb_id: int | None = None
    anilist_id: int | None = None
    tvdb_id: int | None = Field(
        default=None, validation_alias=AliasChoices("thetvdb_id", "tvdb_id")
    )
    tmdb_id: int | None = Field(
        default=None, validation_alias=AliasChoices("themoviedb_id", "tmdb_id")
    )
    imdb_id: str | None = None
    tvmaze_id: int | None = None
    type: str | None = None

    @field_validator(
        "mal_id",
        "kitsu_id",
        "anidb_id",
        "anilist_id",
        "tvdb_id",
        "tmdb_id",
        "tvmaze_id",
        mode="before",
    )
    @classmethod
    def lenient_int(cls, value: Any) -> int | None:
        """Coerce identifier values, mapping unusable ones to None."""
        if isinstance(value, list):
            value = value[0] if value else None
        if isinstance(value, bool):
            return None
        if isinstance(value, str):
            value = value.strip()
            if not value.isdigit():
                return None
            value = int(value)
        if isinstance(value, int) and value > 0:
            return value
        return None

    @field_validator("imdb_id", mode="before")
    @classmethod
    def lenient_imdb(cls, value: Any) -> str | None:
        """Keep only well-formed `tt<digits>` identifiers."""
        if isinstance(value, list):
            value = value[0] if value else None
        if not isinstance(value, str):
            return None
        value = value.strip()
        if value.startswith("tt") and value[2:].isdigit():
            return value
        return None

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, value: Any) -> str | None:
        """Lower-case the release type."""
        if isinstance(value, str) and value.strip():
            return value.strip().lower()
        return None

    @model_validator(mode="after")
    def require_anime_id(self) -> AnimeMappingEntry:
        """Reject rows that carry no animation identifier at all."""
        if all(getattr(self, p.field) is None for p in ANIME_PROVIDERS):
            raise ValueError("entry has no mal, kitsu, anidb or anilist id")
        return self

    @property
    def content_type(self) -> ContentType:
        """Movie or series, derived from the dataset release type."""
        if self.type is None or self.type in SERIES_TYPES:
            return ContentType.SERIES
        return ContentType.MOVIE

    def to_record(self, content_type: ContentType | None = None) -> IdentityRecord:
        """Convert the entry to an identity record."""
        return IdentityRecord(
            content_type=content_type or self.content_type,
            mal_id=self.mal_id,
            kitsu_id=self.kitsu_id,
            anidb_id=self.anidb_id,
            anilist_id=self.anilist_id,
            tvdb_id=self.tvdb_id,
            tmdb_id=self.tmdb_id,
            imdb_id=self.imdb_id,
            tvmaze_id=self.tvmaze_id,
        )
