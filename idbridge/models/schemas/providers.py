"""Response schemas for the external identifier providers.

Only the fields that carry cross-references are modelled; everything else in
the upstream payloads is ignored.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

__all__ = [
    "CinemetaMeta",
    "CinemetaResponse",
    "TmdbDetails",
    "TmdbExternalIds",
    "TmdbFindResult",
    "TvdbExtended",
    "TvdbLogin",
    "TvdbRemoteIdResult",
    "TvmazeShow",
]


class ProviderBaseModel(BaseModel):
    """Base model for provider payloads."""

    model_config = ConfigDict(extra="ignore")


# TMDB v3


class TmdbExternalIds(ProviderBaseModel):
    imdb_id: str | None = None
    tvdb_id: int | None = None


class TmdbDetails(ProviderBaseModel):
    """`/movie/{id}` or `/tv/{id}` with `append_to_response=external_ids`."""

    id: int
    external_ids: TmdbExternalIds = Field(default_factory=TmdbExternalIds)


class TmdbFindItem(ProviderBaseModel):
    id: int


class TmdbFindResult(ProviderBaseModel):
    """`/find/{external_id}` response."""

    movie_results: list[TmdbFindItem] = Field(default_factory=list)
    tv_results: list[TmdbFindItem] = Field(default_factory=list)


# TVDB v4


class TvdbBaseModel(ProviderBaseModel):
    model_config = ConfigDict(
        extra="ignore", alias_generator=to_camel, populate_by_name=True
    )


class TvdbLoginData(TvdbBaseModel):
    token: str


class TvdbLogin(TvdbBaseModel):
    data: TvdbLoginData


class TvdbRecordRef(TvdbBaseModel):
    id: int


class TvdbRemoteIdMatch(TvdbBaseModel):
    series: TvdbRecordRef | None = None
    movie: TvdbRecordRef | None = None


class TvdbRemoteIdResult(TvdbBaseModel):
    """`/search/remoteid/{id}` response."""

    data: list[TvdbRemoteIdMatch] = Field(default_factory=list)


class TvdbRemoteId(TvdbBaseModel):
    id: int | str
    source_name: str | None = None


class TvdbExtendedData(TvdbBaseModel):
    id: int
    remote_ids: list[TvdbRemoteId] = Field(default_factory=list)


class TvdbExtended(TvdbBaseModel):
    """`/series/{id}/extended` or `/movies/{id}/extended` response."""

    data: TvdbExtendedData

    def remote_id(self, source_name: str) -> str | None:
        """Return the first cross-reference published under `source_name`."""
        for remote in self.data.remote_ids:
            if remote.source_name == source_name and remote.id:
                return str(remote.id)
        return None


# TVmaze


class TvmazeExternals(ProviderBaseModel):
    imdb: str | None = None
    thetvdb: int | None = None
    themoviedb: int | None = None


class TvmazeShow(ProviderBaseModel):
    """`/shows/{id}` and `/lookup/shows` response."""

    id: int
    externals: TvmazeExternals = Field(default_factory=TvmazeExternals)


# Cinemeta


class CinemetaMeta(ProviderBaseModel):
    imdb_id: str | None = None
    moviedb_id: int | str | None = None
    tvdb_id: int | str | None = None


class CinemetaResponse(ProviderBaseModel):
    """`/meta/{type}/{imdb_id}.json` response."""

    meta: CinemetaMeta | None = None
