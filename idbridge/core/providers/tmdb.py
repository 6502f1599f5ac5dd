"""TMDB v3 client."""

from pydantic import SecretStr

from idbridge.core.providers.base import BaseProviderClient, partial_record
from idbridge.exceptions import NotFoundError, ProviderAuthError
from idbridge.models.identity import ContentType, IdentityRecord
from idbridge.models.schemas.providers import TmdbDetails, TmdbFindResult

__all__ = ["TmdbClient"]


class TmdbClient(BaseProviderClient):
    """Film/TV database client authenticated with a v3 API key."""

    NAME = "tmdb"
    API_URL = "https://api.themoviedb.org/3"

    def __init__(self, api_key: SecretStr | str | None, **kwargs) -> None:
        super().__init__(**kwargs)
        if isinstance(api_key, SecretStr):
            api_key = api_key.get_secret_value()
        self._api_key = api_key or None

    def _auth_params(self) -> dict[str, str]:
        if not self._api_key:
            raise ProviderAuthError(self.NAME, "No API key configured")
        return {"api_key": self._api_key}

    @staticmethod
    def _media_path(content_type: ContentType) -> str:
        return "movie" if content_type == ContentType.MOVIE else "tv"

    async def get_external_ids(
        self, tmdb_id: int, content_type: ContentType
    ) -> IdentityRecord:
        """Fetch a title's detail record and return its external identifiers.

        The returned record carries the tmdb id and, when TMDB knows them, the
        imdb and tvdb ids.
        """
        payload = await self._request_json(
            "GET",
            f"/{self._media_path(content_type)}/{tmdb_id}",
            params={"append_to_response": "external_ids"},
        )
        details = self._parse(TmdbDetails, payload)
        return partial_record(
            content_type,
            tmdb=details.id,
            imdb=details.external_ids.imdb_id,
            tvdb=details.external_ids.tvdb_id,
        )

    async def find_by_imdb(
        self, imdb_id: str, content_type: ContentType
    ) -> IdentityRecord:
        """Resolve an IMDb id to a TMDB id through the find endpoint.

        Raises:
            NotFoundError: If TMDB has no title of this content type for the id.
        """
        payload = await self._request_json(
            "GET", f"/find/{imdb_id}", params={"external_source": "imdb_id"}
        )
        result = self._parse(TmdbFindResult, payload)
        matches = (
            result.movie_results
            if content_type == ContentType.MOVIE
            else result.tv_results
        )
        if not matches:
            raise NotFoundError(self.NAME, f"No {content_type} found for {imdb_id}")
        return partial_record(content_type, tmdb=matches[0].id, imdb=imdb_id)
