"""Cinemeta community meta-bridge client."""

from idbridge.core.providers.base import BaseProviderClient, partial_record
from idbridge.exceptions import NotFoundError
from idbridge.models.identity import ContentType, IdentityRecord
from idbridge.models.schemas.providers import CinemetaResponse

__all__ = ["CinemetaClient"]


class CinemetaClient(BaseProviderClient):
    """Meta-bridge exposing TMDB and TVDB ids for an IMDb id."""

    NAME = "cinemeta"
    API_URL = "https://cinemeta-live.strem.io"

    async def get_external_ids(
        self, imdb_id: str, content_type: ContentType
    ) -> IdentityRecord:
        """Return the tmdb and tvdb ids Cinemeta knows for an IMDb id.

        Raises:
            NotFoundError: If Cinemeta returns no meta object.
        """
        meta_type = "movie" if content_type == ContentType.MOVIE else "series"
        payload = await self._request_json(
            "GET", f"/meta/{meta_type}/{imdb_id}.json"
        )
        response = self._parse(CinemetaResponse, payload)
        if response.meta is None:
            raise NotFoundError(self.NAME, f"No {meta_type} meta for {imdb_id}")
        return partial_record(
            content_type,
            imdb=imdb_id,
            tmdb=response.meta.moviedb_id,
            tvdb=response.meta.tvdb_id,
        )
