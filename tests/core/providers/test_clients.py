"""Tests for the provider HTTP clients and the client registry."""

from typing import Any

import aiohttp
import pytest
from pydantic import SecretStr

from idbridge.config.settings import ProviderConfig
from idbridge.core.metrics import MetricsChannel
from idbridge.core.providers.base import BaseProviderClient
from idbridge.core.providers.cinemeta import CinemetaClient
from idbridge.core.providers.registry import ClientRegistry
from idbridge.core.providers.tmdb import TmdbClient
from idbridge.core.providers.tvdb import TvdbClient
from idbridge.core.providers.tvmaze import TvmazeClient
from idbridge.exceptions import (
    MalformedResponseError,
    NetworkError,
    NotFoundError,
    ProviderAuthError,
    ProviderError,
)
from idbridge.models.identity import ContentType


class FakeResponse:
    def __init__(self, status: int, payload: Any = None, headers=None) -> None:
        self.status = status
        self.payload = payload
        self.headers = headers or {}

    async def json(self, content_type=None) -> Any:
        if isinstance(self.payload, str):
            raise ValueError("not json")
        return self.payload

    async def text(self, errors: str = "strict") -> str:
        if isinstance(self.payload, bytes):
            return self.payload.decode("utf-8", errors=errors)
        return str(self.payload)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None


class FakeSession:
    """Replays responses (or raises exceptions) in order."""

    closed = False

    def __init__(self, *responses) -> None:
        self.responses = list(responses)
        self.requests: list[tuple[str, str, dict]] = []

    def request(self, method: str, url: str, **kwargs):
        self.requests.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self) -> None:
        self.closed = True


class EchoClient(BaseProviderClient):
    NAME = "echo"
    API_URL = "https://echo.invalid"


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(BaseProviderClient, "_backoff", staticmethod(lambda n: 0.0))


def _with_session(client: BaseProviderClient, *responses) -> FakeSession:
    session = FakeSession(*responses)
    client._session = session
    return session


def _canned(client: BaseProviderClient, monkeypatch, payloads: dict[str, Any]):
    """Answer `_request_json` by path, recording each request."""
    requests: list[tuple[str, str, dict]] = []

    async def fake_request_json(method: str, path: str, **kwargs):
        requests.append((method, path, kwargs))
        if path not in payloads:
            raise NotFoundError(client.NAME, f"No match for {path}")
        return payloads[path]

    monkeypatch.setattr(client, "_request_json", fake_request_json)
    return requests


@pytest.mark.asyncio
async def test_request_json_returns_payload_and_records_metrics() -> None:
    """A successful call decodes JSON and emits one metrics event."""
    metrics = MetricsChannel()
    client = EchoClient(metrics=metrics)
    session = _with_session(client, FakeResponse(200, {"ok": True}))

    assert await client._request_json("GET", "/ping", params={"q": 1}) == {"ok": True}
    assert session.requests[0][1] == "https://echo.invalid/ping"
    assert session.requests[0][2]["params"] == {"q": 1}
    assert metrics.snapshot()["echo"].calls == 1


@pytest.mark.asyncio
async def test_transient_failures_are_retried() -> None:
    """429, 5xx and connection errors are retried until a success."""
    metrics = MetricsChannel()
    client = EchoClient(max_retries=3, metrics=metrics)
    _with_session(
        client,
        FakeResponse(429, headers={"Retry-After": "0"}),
        FakeResponse(503),
        aiohttp.ClientConnectionError("reset"),
        FakeResponse(200, [1, 2]),
    )

    assert await client._request_json("GET", "/flaky") == [1, 2]
    stats = metrics.snapshot()["echo"]
    assert (stats.calls, stats.errors) == (4, 3)


@pytest.mark.asyncio
async def test_retries_are_bounded() -> None:
    """Once retries run out the failure becomes a NetworkError."""
    client = EchoClient(max_retries=1)
    _with_session(client, TimeoutError(), FakeResponse(500))

    with pytest.raises(NetworkError):
        await client._request_json("GET", "/down")


@pytest.mark.parametrize(
    ("response", "error"),
    [
        (FakeResponse(404), NotFoundError),
        (FakeResponse(401), ProviderAuthError),
        (FakeResponse(403), ProviderAuthError),
        (FakeResponse(400, "bad request"), ProviderError),
        (FakeResponse(200, "<html>"), MalformedResponseError),
    ],
)
@pytest.mark.asyncio
async def test_status_codes_map_to_provider_errors(response, error) -> None:
    """Non-retryable answers raise the matching provider error."""
    client = EchoClient()
    _with_session(client, response)

    with pytest.raises(error):
        await client._request_json("GET", "/x")


@pytest.mark.asyncio
async def test_undecodable_error_body_is_a_provider_error() -> None:
    """A 4xx body that is not valid UTF-8 still surfaces as a ProviderError."""
    client = EchoClient()
    _with_session(client, FakeResponse(400, b"\xff\xfe\xfa bad"))

    with pytest.raises(ProviderError, match="Unexpected status 400") as excinfo:
        await client._request_json("GET", "/x")

    assert "bad" in str(excinfo.value)


@pytest.mark.parametrize(
    ("header", "expected"),
    [("5", 5.0), ("-3", 0.0), ("3600", 60.0), ("soon", 2.0), (None, 2.0)],
)
def test_retry_after_is_clamped(header, expected) -> None:
    assert BaseProviderClient._retry_after(header, 2.0) == expected


@pytest.mark.asyncio
async def test_close_releases_the_session() -> None:
    client = EchoClient()
    session = _with_session(client)

    async with client:
        pass

    assert session.closed is True
    assert client._session is None


@pytest.mark.asyncio
async def test_tmdb_get_external_ids(monkeypatch: pytest.MonkeyPatch) -> None:
    """The detail lookup reads ids from the appended external_ids block."""
    client = TmdbClient("key")
    requests = _canned(
        client,
        monkeypatch,
        {
            "/tv/1399": {
                "id": 1399,
                "name": "Game of Thrones",
                "external_ids": {"imdb_id": "tt0944947", "tvdb_id": 121361},
            }
        },
    )

    record = await client.get_external_ids(1399, ContentType.SERIES)

    assert (record.tmdb_id, record.imdb_id, record.tvdb_id) == (
        1399,
        "tt0944947",
        121361,
    )
    assert requests[0][2]["params"] == {"append_to_response": "external_ids"}


@pytest.mark.asyncio
async def test_tmdb_find_by_imdb(monkeypatch: pytest.MonkeyPatch) -> None:
    """Find picks the result list matching the content type."""
    client = TmdbClient("key")
    _canned(
        client,
        monkeypatch,
        {
            "/find/tt0133093": {"movie_results": [{"id": 603}], "tv_results": []},
        },
    )

    record = await client.find_by_imdb("tt0133093", ContentType.MOVIE)

    assert (record.tmdb_id, record.imdb_id) == (603, "tt0133093")
    with pytest.raises(NotFoundError):
        await client.find_by_imdb("tt0133093", ContentType.SERIES)


def test_tmdb_without_key_is_an_auth_error() -> None:
    with pytest.raises(ProviderAuthError):
        TmdbClient(None)._auth_params()


@pytest.mark.asyncio
async def test_tmdb_drops_empty_external_ids(monkeypatch: pytest.MonkeyPatch) -> None:
    """Blank upstream ids are ignored instead of failing the lookup."""
    client = TmdbClient(SecretStr("key"))
    _canned(
        client,
        monkeypatch,
        {"/movie/603": {"id": 603, "external_ids": {"imdb_id": "", "tvdb_id": None}}},
    )

    record = await client.get_external_ids(603, ContentType.MOVIE)

    assert record.known_ids() == {"tmdb": 603}


@pytest.mark.asyncio
async def test_tvdb_logs_in_once_and_reuses_the_token() -> None:
    """The bearer token from /login is attached to later requests."""
    client = TvdbClient("key")
    search = {"data": [{"series": {"id": 121361}}]}
    session = _with_session(
        client,
        FakeResponse(200, {"data": {"token": "abc"}}),
        FakeResponse(200, search),
        FakeResponse(200, search),
    )

    first = await client.find_by_tmdb(1399, ContentType.SERIES)
    await client.find_by_imdb("tt0944947", ContentType.SERIES)

    assert (first.tvdb_id, first.tmdb_id) == (121361, 1399)
    assert [url for _, url, _ in session.requests] == [
        "https://api4.thetvdb.com/v4/login",
        "https://api4.thetvdb.com/v4/search/remoteid/1399",
        "https://api4.thetvdb.com/v4/search/remoteid/tt0944947",
    ]
    assert session.requests[1][2]["headers"] == {"Authorization": "Bearer abc"}


@pytest.mark.asyncio
async def test_tvdb_refreshes_a_rejected_token() -> None:
    """A 401 invalidates the token and the request is repeated once."""
    client = TvdbClient("key")
    session = _with_session(
        client,
        FakeResponse(200, {"data": {"token": "old"}}),
        FakeResponse(401),
        FakeResponse(200, {"data": {"token": "new"}}),
        FakeResponse(200, {"data": [{"movie": {"id": 7}}]}),
    )

    record = await client.find_by_imdb("tt0133093", ContentType.MOVIE)

    assert record.tvdb_id == 7
    assert session.requests[-1][2]["headers"] == {"Authorization": "Bearer new"}


@pytest.mark.asyncio
async def test_tvdb_remote_id_without_matching_type(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    client = TvdbClient("key")
    _canned(
        client,
        monkeypatch,
        {"/search/remoteid/603": {"data": [{"series": {"id": 1}}]}},
    )

    with pytest.raises(NotFoundError):
        await client.find_by_tmdb(603, ContentType.MOVIE)


@pytest.mark.asyncio
async def test_tvdb_get_extended_reads_remote_ids(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Remote ids are picked by source name and the record is memoised."""
    client = TvdbClient("key")
    requests = _canned(
        client,
        monkeypatch,
        {
            "/series/121361/extended": {
                "data": {
                    "id": 121361,
                    "remoteIds": [
                        {"id": "tt0944947", "sourceName": "IMDB"},
                        {"id": "1399", "sourceName": "TheMovieDB.com"},
                        {"id": "82", "sourceName": "TV Maze"},
                        {"id": "x", "sourceName": "Wikidata"},
                    ],
                }
            }
        },
    )

    first = await client.get_extended(121361, ContentType.SERIES)
    second = await client.get_extended(121361, ContentType.SERIES)

    assert (first.imdb_id, first.tmdb_id, first.tvmaze_id) == ("tt0944947", 1399, 82)
    assert second == first
    assert len(requests) == 1


@pytest.mark.asyncio
async def test_tvdb_movies_carry_no_tvmaze_id(monkeypatch: pytest.MonkeyPatch) -> None:
    client = TvdbClient("key")
    _canned(
        client,
        monkeypatch,
        {
            "/movies/9/extended": {
                "data": {"id": 9, "remoteIds": [{"id": 5, "sourceName": "TV Maze"}]}
            }
        },
    )

    record = await client.get_extended(9, ContentType.MOVIE)

    assert record.tvmaze_id is None


@pytest.mark.asyncio
async def test_tvdb_extended_records_are_shared_between_clients(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Clients for different credentials reuse a memoised extended record."""
    first_client = TvdbClient("key-a")
    second_client = TvdbClient("key-b")
    payloads = {
        "/series/305288/extended": {
            "data": {
                "id": 305288,
                "remoteIds": [{"id": "tt4574334", "sourceName": "IMDB"}],
            }
        }
    }
    first_requests = _canned(first_client, monkeypatch, payloads)
    second_requests = _canned(second_client, monkeypatch, payloads)

    first = await first_client.get_extended(305288, ContentType.SERIES)
    second = await second_client.get_extended(305288, ContentType.SERIES)

    assert first == second
    assert (len(first_requests), len(second_requests)) == (1, 0)
    assert repr(first_client) == repr(second_client) == "<TvdbClient tvdb>"


@pytest.mark.asyncio
async def test_tvmaze_lookups(monkeypatch: pytest.MonkeyPatch) -> None:
    """Show and lookup endpoints all read the externals block."""
    client = TvmazeClient()
    show = {
        "id": 82,
        "externals": {"imdb": "tt0944947", "thetvdb": 121361, "themoviedb": 1399},
    }
    requests = _canned(client, monkeypatch, {"/shows/82": show, "/lookup/shows": show})

    by_id = await client.get_show(82)
    by_imdb = await client.lookup_by_imdb("tt0944947")
    by_tvdb = await client.lookup_by_tvdb(121361)

    assert by_id == by_imdb == by_tvdb
    assert by_id.content_type == ContentType.SERIES
    assert (by_id.tvdb_id, by_id.tmdb_id) == (121361, 1399)
    assert requests[1][2]["params"] == {"imdb": "tt0944947"}
    assert requests[2][2]["params"] == {"thetvdb": 121361}


@pytest.mark.asyncio
async def test_cinemeta_get_external_ids(monkeypatch: pytest.MonkeyPatch) -> None:
    """Cinemeta ids may arrive as strings and are coerced."""
    client = CinemetaClient()
    _canned(
        client,
        monkeypatch,
        {
            "/meta/series/tt0944947.json": {
                "meta": {
                    "imdb_id": "tt0944947",
                    "moviedb_id": "1399",
                    "tvdb_id": 121361,
                }
            },
            "/meta/movie/tt0000001.json": {},
        },
    )

    record = await client.get_external_ids("tt0944947", ContentType.SERIES)

    assert (record.tmdb_id, record.tvdb_id) == (1399, 121361)
    with pytest.raises(NotFoundError):
        await client.get_external_ids("tt0000001", ContentType.MOVIE)


@pytest.mark.asyncio
async def test_registry_shares_clients_per_credential() -> None:
    """Each distinct key gets its own client, reused across calls."""
    registry = ClientRegistry(ProviderConfig(tmdb_api_key="default"))

    default = registry.clients_for()
    again = registry.clients_for()
    custom = registry.clients_for(tmdb_api_key="caller", tvdb_api_key="tvdb")

    assert default.tmdb is again.tmdb
    assert custom.tmdb is not default.tmdb
    assert default.tvdb is None
    assert isinstance(custom.tvdb, TvdbClient)
    assert custom.tvmaze is default.tvmaze
    assert custom.cinemeta is default.cinemeta
    assert len(registry) == 5

    await registry.close()
    assert len(registry) == 0
