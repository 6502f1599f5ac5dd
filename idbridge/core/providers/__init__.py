"""External identifier provider clients."""

from idbridge.core.providers.base import (
    BaseProviderClient,
    EpisodicDatabase,
    FilmTvDatabase,
    MetaBridge,
    ScheduleService,
)
from idbridge.core.providers.cinemeta import CinemetaClient
from idbridge.core.providers.registry import BridgeClients, ClientRegistry
from idbridge.core.providers.tmdb import TmdbClient
from idbridge.core.providers.tvdb import TvdbClient
from idbridge.core.providers.tvmaze import TvmazeClient

__all__ = [
    "BaseProviderClient",
    "BridgeClients",
    "CinemetaClient",
    "ClientRegistry",
    "EpisodicDatabase",
    "FilmTvDatabase",
    "MetaBridge",
    "ScheduleService",
    "TmdbClient",
    "TvdbClient",
    "TvmazeClient",
]
