"""Explicit registry of provider clients keyed by credential."""

from dataclasses import dataclass

from pydantic import SecretStr

from idbridge import log
from idbridge.config.settings import ProviderConfig
from idbridge.core.metrics import MetricsChannel
from idbridge.core.providers.base import (
    BaseProviderClient,
    EpisodicDatabase,
    FilmTvDatabase,
    MetaBridge,
    ScheduleService,
)
from idbridge.core.providers.cinemeta import CinemetaClient
from idbridge.core.providers.tmdb import TmdbClient
from idbridge.core.providers.tvdb import TvdbClient
from idbridge.core.providers.tvmaze import TvmazeClient

__all__ = ["BridgeClients", "ClientRegistry"]


@dataclass(frozen=True, slots=True)
class BridgeClients:
    """The collaborators one resolution may call. Missing ones are skipped."""

    tmdb: FilmTvDatabase | None = None
    tvdb: EpisodicDatabase | None = None
    tvmaze: ScheduleService | None = None
    cinemeta: MetaBridge | None = None


def _secret(value: SecretStr | str | None) -> str | None:
    if isinstance(value, SecretStr):
        value = value.get_secret_value()
    return value or None


def _key_suffix(key: str) -> str:
    return f"...{key[-4:]}" if len(key) > 4 else "..."


class ClientRegistry:
    """Builds each provider client once per credential and hands them out.

    Credential-free providers (TVmaze, Cinemeta) get a single shared client.
    Keyed providers get one client per distinct API key, so per-caller keys
    are honoured without any process-wide mutable state.
    """

    def __init__(
        self, config: ProviderConfig, metrics: MetricsChannel | None = None
    ) -> None:
        self.config = config
        self.metrics = metrics
        self._clients: dict[tuple[str, str | None], BaseProviderClient] = {}

    def _client_kwargs(self) -> dict:
        return {
            "timeout": self.config.request_timeout,
            "max_retries": self.config.max_retries,
            "metrics": self.metrics,
        }

    def _get_or_create(self, cls: type[BaseProviderClient], api_key: str | None):
        registry_key = (cls.NAME, api_key)
        client = self._clients.get(registry_key)
        if client is None:
            if api_key is None:
                client = cls(**self._client_kwargs())
                log.debug(f"Created $$'{cls.NAME}'$$ client")
            else:
                client = cls(api_key, **self._client_kwargs())
                log.debug(
                    f"Created $$'{cls.NAME}'$$ client for key "
                    f"$$'{_key_suffix(api_key)}'$$"
                )
            self._clients[registry_key] = client
        return client

    def clients_for(
        self,
        tmdb_api_key: SecretStr | str | None = None,
        tvdb_api_key: SecretStr | str | None = None,
    ) -> BridgeClients:
        """Return the clients for a set of credentials.

        Keys default to the configured ones. A keyed provider without any key
        is left out.
        """
        tmdb_key = _secret(tmdb_api_key) or _secret(self.config.tmdb_api_key)
        tvdb_key = _secret(tvdb_api_key) or _secret(self.config.tvdb_api_key)

        return BridgeClients(
            tmdb=self._get_or_create(TmdbClient, tmdb_key) if tmdb_key else None,
            tvdb=self._get_or_create(TvdbClient, tvdb_key) if tvdb_key else None,
            tvmaze=self._get_or_create(TvmazeClient, None),
            cinemeta=self._get_or_create(CinemetaClient, None),
        )

    def __len__(self) -> int:
        return len(self._clients)

    async def close(self) -> None:
        """Close every client session built by this registry."""
        for client in self._clients.values():
            await client.close()
        self._clients.clear()
