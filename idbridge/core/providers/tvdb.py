"""TVDB v4 client."""

import asyncio
import time
from typing import Any

from pydantic import SecretStr

from idbridge import log
from idbridge.core.providers.base import BaseProviderClient, partial_record
from idbridge.exceptions import NotFoundError, ProviderAuthError
from idbridge.models.identity import ContentType, IdentityRecord
from idbridge.models.schemas.providers import (
    TvdbExtended,
    TvdbLogin,
    TvdbRemoteIdResult,
)
from idbridge.utils.cache import gattl_cache

__all__ = ["TvdbClient"]

# Source names used in `remoteIds` of extended records
SOURCE_IMDB = "IMDB"
SOURCE_TMDB = "TheMovieDB.com"
SOURCE_TVMAZE = "TV Maze"


class TvdbClient(BaseProviderClient):
    """Episodic-TV database client.

    Logs in with the API key to obtain a bearer token, which is reused for
    28 days and refreshed once when a request is rejected with 401.
    """

    NAME = "tvdb"
    API_URL = "https://api4.thetvdb.com/v4"
    TOKEN_LIFETIME = 28 * 24 * 60 * 60

    def __init__(self, api_key: SecretStr | str | None, **kwargs) -> None:
        super().__init__(**kwargs)
        if isinstance(api_key, SecretStr):
            api_key = api_key.get_secret_value()
        self._api_key = api_key or None
        self._token: str | None = None
        self._token_expiry = 0.0
        self._login_lock: asyncio.Lock | None = None

    def _token_valid(self) -> bool:
        return self._token is not None and time.monotonic() < self._token_expiry

    def invalidate_token(self) -> None:
        """Forget the cached bearer token."""
        self._token = None
        self._token_expiry = 0.0

    async def _login(self) -> str:
        if not self._api_key:
            raise ProviderAuthError(self.NAME, "No API key configured")

        if self._login_lock is None:
            self._login_lock = asyncio.Lock()
        async with self._login_lock:
            if self._token_valid():
                return self._token

            payload = await self._request_json(
                "POST", "/login", json={"apikey": self._api_key}, auth=False
            )
            login = self._parse(TvdbLogin, payload)
            self._token = login.data.token
            self._token_expiry = time.monotonic() + self.TOKEN_LIFETIME
            log.debug("Obtained a new TVDB bearer token")
            return self._token

    async def _auth_headers(self) -> dict[str, str]:
        token = self._token if self._token_valid() else await self._login()
        return {"Authorization": f"Bearer {token}"}

    async def _authorized_get(self, path: str) -> Any:
        try:
            return await self._request_json("GET", path)
        except ProviderAuthError:
            if not self._api_key:
                raise
            log.debug("TVDB token rejected, logging in again")
            self.invalidate_token()
            return await self._request_json("GET", path)

    async def _find_by_remote_id(
        self, remote_id: str | int, content_type: ContentType
    ) -> int:
        payload = await self._authorized_get(f"/search/remoteid/{remote_id}")
        result = self._parse(TvdbRemoteIdResult, payload)
        for match in result.data:
            ref = match.movie if content_type == ContentType.MOVIE else match.series
            if ref is not None:
                return ref.id
        raise NotFoundError(
            self.NAME, f"No {content_type} found for remote id {remote_id}"
        )

    async def find_by_tmdb(
        self, tmdb_id: int, content_type: ContentType
    ) -> IdentityRecord:
        """Find the TVDB id cross-referenced to a TMDB id."""
        tvdb_id = await self._find_by_remote_id(tmdb_id, content_type)
        return partial_record(content_type, tvdb=tvdb_id, tmdb=tmdb_id)

    async def find_by_imdb(
        self, imdb_id: str, content_type: ContentType
    ) -> IdentityRecord:
        """Find the TVDB id cross-referenced to an IMDb id."""
        tvdb_id = await self._find_by_remote_id(imdb_id, content_type)
        return partial_record(content_type, tvdb=tvdb_id, imdb=imdb_id)

    @gattl_cache(
        ttl=300,
        key=lambda self, tvdb_id, content_type: (
            self.NAME,
            tvdb_id,
            str(content_type),
        ),
    )
    async def get_extended(
        self, tvdb_id: int, content_type: ContentType
    ) -> IdentityRecord:
        """Fetch the extended record and extract its remote identifiers.

        The TVmaze id is only taken for series.
        """
        kind = "movies" if content_type == ContentType.MOVIE else "series"
        payload = await self._authorized_get(f"/{kind}/{tvdb_id}/extended")
        extended = self._parse(TvdbExtended, payload)
        return partial_record(
            content_type,
            tvdb=extended.data.id,
            imdb=extended.remote_id(SOURCE_IMDB),
            tmdb=extended.remote_id(SOURCE_TMDB),
            tvmaze=(
                extended.remote_id(SOURCE_TVMAZE)
                if content_type == ContentType.SERIES
                else None
            ),
        )
