"""TVmaze client."""

from idbridge.core.providers.base import BaseProviderClient, partial_record
from idbridge.models.identity import ContentType, IdentityRecord
from idbridge.models.schemas.providers import TvmazeShow
from idbridge.utils.cache import gattl_cache

__all__ = ["TvmazeClient"]


class TvmazeClient(BaseProviderClient):
    """TV-schedule service client. Needs no credentials and only knows series."""

    NAME = "tvmaze"
    API_URL = "https://api.tvmaze.com"

    def _to_record(self, payload) -> IdentityRecord:
        show = self._parse(TvmazeShow, payload)
        return partial_record(
            ContentType.SERIES,
            tvmaze=show.id,
            imdb=show.externals.imdb,
            tvdb=show.externals.thetvdb,
            tmdb=show.externals.themoviedb,
        )

    @gattl_cache(ttl=300, key=lambda self, tvmaze_id: (self.NAME, tvmaze_id))
    async def get_show(self, tvmaze_id: int) -> IdentityRecord:
        """Fetch a show and return its externals block."""
        return self._to_record(await self._request_json("GET", f"/shows/{tvmaze_id}"))

    async def lookup_by_imdb(self, imdb_id: str) -> IdentityRecord:
        """Look up a show by IMDb id."""
        return self._to_record(
            await self._request_json("GET", "/lookup/shows", params={"imdb": imdb_id})
        )

    async def lookup_by_tvdb(self, tvdb_id: int) -> IdentityRecord:
        """Look up a show by TVDB id."""
        return self._to_record(
            await self._request_json(
                "GET", "/lookup/shows", params={"thetvdb": tvdb_id}
            )
        )
