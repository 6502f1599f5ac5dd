"""IdBridge models."""

from idbridge.models.identity import (
    ANIME,
    ANIME_PROVIDERS,
    GENERAL_PROVIDERS,
    CachedIdentity,
    ContentType,
    IdentityRecord,
    Provider,
)

__all__ = [
    "ANIME",
    "ANIME_PROVIDERS",
    "GENERAL_PROVIDERS",
    "CachedIdentity",
    "ContentType",
    "IdentityRecord",
    "Provider",
]
