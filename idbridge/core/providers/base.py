"""Shared HTTP plumbing and collaborator protocols for the provider clients."""

import asyncio
import time
from typing import Any, ClassVar, Protocol, TypeVar

import aiohttp
from pydantic import BaseModel, ValidationError

from idbridge import __version__, log
from idbridge.core.metrics import MetricsChannel, ProviderCall
from idbridge.exceptions import (
    MalformedResponseError,
    NetworkError,
    NotFoundError,
    ProviderAuthError,
    ProviderError,
)
from idbridge.models.identity import ContentType, IdentityRecord, Provider

__all__ = [
    "BaseProviderClient",
    "EpisodicDatabase",
    "FilmTvDatabase",
    "MetaBridge",
    "ScheduleService",
]

ModelT = TypeVar("ModelT", bound=BaseModel)

# Longest Retry-After we are willing to honour, in seconds
MAX_RETRY_AFTER = 60


class FilmTvDatabase(Protocol):
    """Film/TV database (TMDB)."""

    async def get_external_ids(
        self, tmdb_id: int, content_type: ContentType
    ) -> IdentityRecord: ...

    async def find_by_imdb(
        self, imdb_id: str, content_type: ContentType
    ) -> IdentityRecord: ...


class EpisodicDatabase(Protocol):
    """Episodic-TV database (TVDB)."""

    async def find_by_tmdb(
        self, tmdb_id: int, content_type: ContentType
    ) -> IdentityRecord: ...

    async def find_by_imdb(
        self, imdb_id: str, content_type: ContentType
    ) -> IdentityRecord: ...

    async def get_extended(
        self, tvdb_id: int, content_type: ContentType
    ) -> IdentityRecord: ...


class ScheduleService(Protocol):
    """TV-schedule service (TVmaze). Series only."""

    async def get_show(self, tvmaze_id: int) -> IdentityRecord: ...

    async def lookup_by_imdb(self, imdb_id: str) -> IdentityRecord: ...

    async def lookup_by_tvdb(self, tvdb_id: int) -> IdentityRecord: ...


class MetaBridge(Protocol):
    """Community meta-bridge keyed by IMDb id (Cinemeta)."""

    async def get_external_ids(
        self, imdb_id: str, content_type: ContentType
    ) -> IdentityRecord: ...


def partial_record(content_type: ContentType, **ids: Any) -> IdentityRecord:
    """Build a record from untrusted upstream values, dropping invalid ones."""
    record = IdentityRecord(content_type=content_type)
    for name, value in ids.items():
        record.fill_if_empty(Provider(name), value)
    return record


class BaseProviderClient:
    """Base class for the aiohttp provider clients.

    Each client owns one `aiohttp.ClientSession`, created lazily and closed
    with `close()` or by leaving the async context. `_request_json` retries
    timeouts, connection errors, 429 and 5xx responses with exponential
    back-off and maps every other failure to a `ProviderError` subclass.
    """

    NAME: ClassVar[str]
    API_URL: ClassVar[str]

    def __init__(
        self,
        *,
        timeout: float = 15.0,
        max_retries: int = 3,
        metrics: MetricsChannel | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            timeout (float): Per-request timeout in seconds.
            max_retries (int): Retries for transient failures.
            metrics (MetricsChannel | None): Channel receiving one event per request.
        """
        self.timeout = timeout
        self.max_retries = max_retries
        self.metrics = metrics
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session.

        Returns:
            aiohttp.ClientSession: The active session for making HTTP requests.
        """
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={
                    "Accept": "application/json",
                    "User-Agent": f"IdBridge/{__version__}",
                },
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self):
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context manager and close the session."""
        await self.close()

    async def _auth_headers(self) -> dict[str, str]:
        """Headers authenticating a request. Overridden by keyed providers."""
        return {}

    def _auth_params(self) -> dict[str, str]:
        """Query parameters authenticating a request."""
        return {}

    def _record_call(
        self, started: float, success: bool, status: int | None = None
    ) -> None:
        if self.metrics is not None:
            self.metrics.record(
                ProviderCall(
                    provider=self.NAME,
                    elapsed=time.perf_counter() - started,
                    success=success,
                    status=status,
                )
            )

    @staticmethod
    def _backoff(retry_count: int) -> float:
        return float(2**retry_count)

    @staticmethod
    def _retry_after(header: str | None, default: float) -> float:
        try:
            return min(max(float(header), 0.0), MAX_RETRY_AFTER)
        except (TypeError, ValueError):
            return default

    async def _request_json(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        auth: bool = True,
        retry_count: int = 0,
    ) -> Any:
        """Make a request to the provider and decode its JSON body.

        Args:
            method (str): HTTP method.
            path (str): Path appended to `API_URL`.
            params (dict | None): Query parameters.
            json (Any): JSON request body.
            auth (bool): Attach the provider's credentials.
            retry_count (int): Number of retries attempted so far.

        Returns:
            Any: The decoded JSON payload.

        Raises:
            NotFoundError: On a 404 response.
            ProviderAuthError: On a 401 or 403 response.
            MalformedResponseError: If the body is not valid JSON.
            NetworkError: If the request still fails after `max_retries` retries.
            ProviderError: On any other unexpected status.
        """
        if retry_count > self.max_retries:
            raise NetworkError(
                self.NAME, f"Failed to request {path} after {retry_count} tries"
            )

        session = await self._get_session()
        headers = await self._auth_headers() if auth else {}
        query = {**(self._auth_params() if auth else {}), **(params or {})}

        async def _retry(delay: float) -> Any:
            await asyncio.sleep(delay)
            return await self._request_json(
                method,
                path,
                params=params,
                json=json,
                auth=auth,
                retry_count=retry_count + 1,
            )

        started = time.perf_counter()
        try:
            async with session.request(
                method,
                f"{self.API_URL}{path}",
                params=query or None,
                json=json,
                headers=headers,
            ) as response:
                status = response.status

                if status == 429:
                    self._record_call(started, False, status)
                    delay = self._retry_after(
                        response.headers.get("Retry-After"),
                        self._backoff(retry_count),
                    )
                    log.warning(
                        f"Rate limited by {self.NAME}, waiting $$'{delay}'$$ seconds"
                    )
                    return await _retry(delay)
                if status >= 500:
                    self._record_call(started, False, status)
                    log.warning(
                        f"Received {status} from {self.NAME} for $$'{path}'$$, "
                        "retrying"
                    )
                    return await _retry(self._backoff(retry_count))
                if status == 404:
                    self._record_call(started, True, status)
                    raise NotFoundError(self.NAME, f"No match for {path}")
                if status in (401, 403):
                    self._record_call(started, False, status)
                    raise ProviderAuthError(
                        self.NAME, f"Request to {path} was rejected ({status})"
                    )
                if status >= 400:
                    self._record_call(started, False, status)
                    body = await response.text(errors="replace")
                    raise ProviderError(
                        self.NAME, f"Unexpected status {status} for {path}: {body}"
                    )

                try:
                    payload = await response.json(content_type=None)
                except ValueError as e:
                    self._record_call(started, False, status)
                    raise MalformedResponseError(
                        self.NAME, f"Invalid JSON returned for {path}"
                    ) from e

                self._record_call(started, True, status)
                return payload

        except (TimeoutError, aiohttp.ClientError) as e:
            self._record_call(started, False)
            log.warning(
                f"Connection error while requesting $$'{path}'$$ from "
                f"{self.NAME}: {e!r}"
            )
            return await _retry(self._backoff(retry_count))

    def _parse(self, model: type[ModelT], payload: Any) -> ModelT:
        """Validate a payload against a response schema.

        Raises:
            MalformedResponseError: If the payload does not match the schema.
        """
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise MalformedResponseError(
                self.NAME, f"Unexpected {model.__name__} payload: {e}"
            ) from e

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.NAME}>"
