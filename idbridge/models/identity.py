"""Identity Record Models Module."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    PositiveInt,
    ValidationError,
    field_validator,
)

from idbridge.config.settings import BaseStrEnum

__all__ = [
    "ANIME",
    "ANIME_PROVIDERS",
    "GENERAL_PROVIDERS",
    "CachedIdentity",
    "ContentType",
    "IdentityRecord",
    "Provider",
]

# Accepted by the resolver as a content type, never persisted
ANIME = "anime"


def _as_utc(dt: datetime) -> datetime:
    # SQLite hands back naive timestamps that were written as UTC
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


UTCDateTime = Annotated[datetime, AfterValidator(_as_utc)]


class ContentType(BaseStrEnum):
    """Kind of title an identity record describes."""

    MOVIE = "movie"
    SERIES = "series"

    @property
    def native_provider(self) -> Provider:
        """The provider whose identifier is authoritative for this content type."""
        return Provider.TMDB if self is ContentType.MOVIE else Provider.TVDB


class Provider(BaseStrEnum):
    """Identifier namespaces known to IdBridge."""

    TMDB = "tmdb"
    TVDB = "tvdb"
    IMDB = "imdb"
    TVMAZE = "tvmaze"
    MAL = "mal"
    KITSU = "kitsu"
    ANIDB = "anidb"
    ANILIST = "anilist"

    @property
    def field(self) -> str:
        """Name of the IdentityRecord attribute holding this provider's id."""
        return f"{self.value}_id"

    @property
    def is_anime(self) -> bool:
        """Whether this is one of the animation-specific namespaces."""
        return self in ANIME_PROVIDERS


GENERAL_PROVIDERS: tuple[Provider, ...] = (
    Provider.TMDB,
    Provider.TVDB,
    Provider.IMDB,
    Provider.TVMAZE,
)
ANIME_PROVIDERS: tuple[Provider, ...] = (
    Provider.MAL,
    Provider.KITSU,
    Provider.ANIDB,
    Provider.ANILIST,
)


class IdentityRecord(BaseModel):
    """The set of known cross-provider identifiers for one title.

    Identifier fields are only ever filled while empty on the resolution path
    (`fill_if_empty` / `merge`). Overwriting a populated field is reserved for
    correction tooling, which assigns attributes directly.
    """

    model_config = ConfigDict(validate_assignment=True)

    content_type: ContentType

    tmdb_id: PositiveInt | None = None
    tvdb_id: PositiveInt | None = None
    imdb_id: str | None = Field(default=None, pattern=r"^tt\d+$")
    tvmaze_id: PositiveInt | None = None

    mal_id: PositiveInt | None = None
    kitsu_id: PositiveInt | None = None
    anidb_id: PositiveInt | None = None
    anilist_id: PositiveInt | None = None

    @field_validator(
        "tmdb_id",
        "tvdb_id",
        "imdb_id",
        "tvmaze_id",
        "mal_id",
        "kitsu_id",
        "anidb_id",
        "anilist_id",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        """Treat blank strings as an unknown identifier."""
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    def get(self, provider: Provider) -> int | str | None:
        """Return the identifier stored for `provider`, if any."""
        return getattr(self, provider.field)

    def populated(self) -> set[Provider]:
        """Return every provider that has a known identifier."""
        return {p for p in Provider if self.get(p) is not None}

    def general_populated(self) -> set[Provider]:
        """Return the populated general-purpose providers."""
        return {p for p in GENERAL_PROVIDERS if self.get(p) is not None}

    def known_ids(self) -> dict[Provider, int | str]:
        """Return the populated identifiers keyed by provider."""
        return {p: v for p in Provider if (v := self.get(p)) is not None}

    def fill_if_empty(self, provider: Provider, value: Any) -> bool:
        """Write `value` into the provider's field only if it is currently empty.

        Values that fail validation are ignored rather than raised, since they
        come from upstream payloads that are not trusted.

        Returns:
            bool: True if the field was filled.
        """
        if value is None or value == "":
            return False
        if self.get(provider) is not None:
            return False
        try:
            setattr(self, provider.field, value)
        except ValidationError:
            return False
        return self.get(provider) is not None

    def merge(self, other: IdentityRecord) -> set[Provider]:
        """Fill every empty field from `other`.

        Returns:
            set[Provider]: The providers that were newly filled.
        """
        return {p for p, v in other.known_ids().items() if self.fill_if_empty(p, v)}

    def __str__(self) -> str:
        ids = ", ".join(f"{p}: {v}" for p, v in self.known_ids().items())
        return f"{self.content_type} {{{ids}}}"


class CachedIdentity(IdentityRecord):
    """An identity record as stored in the equivalence cache."""

    created_at: UTCDateTime | None = None
    updated_at: UTCDateTime | None = None
