"""Cross-provider identifier resolver.

Given one seed identifier, the resolver fills in as many of the other known
identifiers as it can. Animation titles are answered from the static anime
mapping table; everything else goes through the equivalence cache first and,
on a miss, through a sequential walk over the provider bridge clients whose
result is written back to the cache.
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, NamedTuple

from idbridge import log
from idbridge.core.animap import AnimeMappingTable
from idbridge.core.id_cache import IdCacheStore
from idbridge.core.providers.registry import BridgeClients
from idbridge.exceptions import (
    InvalidArgumentError,
    NotFoundError,
    ProviderError,
    StorageError,
)
from idbridge.models.identity import (
    ANIME,
    ANIME_PROVIDERS,
    ContentType,
    IdentityRecord,
    Provider,
)

__all__ = ["IdResolver", "SeedIdentifier"]

_SEED_PATTERN = re.compile(r"^(?:(?P<provider>[A-Za-z]+):)?(?P<value>[^:\s]+)$")
_IMDB_PATTERN = re.compile(r"^tt\d+$")


class SeedIdentifier(NamedTuple):
    """A parsed `provider:value` seed."""

    provider: Provider
    value: int | str

    @classmethod
    def parse(cls, raw: Any) -> SeedIdentifier:
        """Parse `tmdb:603`, `imdb:tt0133093` or a bare `tt0133093`.

        Raises:
            InvalidArgumentError: If the seed is missing or malformed.
        """
        if not isinstance(raw, str) or not raw.strip():
            raise InvalidArgumentError("A seed identifier is required")

        match = _SEED_PATTERN.match(raw.strip())
        if not match:
            raise InvalidArgumentError(f"Malformed seed identifier '{raw}'")

        prefix, value = match.group("provider"), match.group("value")
        if prefix is None:
            if not _IMDB_PATTERN.match(value):
                raise InvalidArgumentError(
                    f"Seed identifier '{raw}' needs a provider prefix"
                )
            return cls(Provider.IMDB, value)

        try:
            provider = Provider(prefix)
        except ValueError:
            raise InvalidArgumentError(
                f"Unknown provider '{prefix}' in seed identifier '{raw}'"
            ) from None

        if provider == Provider.IMDB:
            if not _IMDB_PATTERN.match(value):
                raise InvalidArgumentError(f"Malformed IMDb id in seed '{raw}'")
            return cls(provider, value)
        if not value.isdigit() or int(value) <= 0:
            raise InvalidArgumentError(f"Malformed {provider} id in seed '{raw}'")
        return cls(provider, int(value))

    def __str__(self) -> str:
        return f"{self.provider}:{self.value}"


@dataclass
class _Walk:
    """State of one bridge walk."""

    record: IdentityRecord
    clients: BridgeClients
    calls: dict[tuple, IdentityRecord | None] = field(default_factory=dict)

    @property
    def content_type(self) -> ContentType:
        return self.record.content_type

    @property
    def is_series(self) -> bool:
        return self.content_type == ContentType.SERIES

    def has(self, provider: Provider) -> bool:
        return self.record.get(provider) is not None

    def missing(self, *providers: Provider) -> list[Provider]:
        """Providers still unresolved, ignoring TVmaze for movies."""
        return [
            p
            for p in providers
            if not self.has(p) and (p != Provider.TVMAZE or self.is_series)
        ]


class IdResolver:
    """Resolves a seed identifier into an identity record.

    `resolve` never raises for missing data or provider failures: each bridge
    call that fails is logged and its field left unresolved. Only malformed
    arguments raise `InvalidArgumentError`.
    """

    def __init__(
        self,
        anime_table: AnimeMappingTable,
        cache: IdCacheStore,
        clients: BridgeClients | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            anime_table (AnimeMappingTable): Loaded static anime mapping table.
            cache (IdCacheStore): Equivalence cache store.
            clients (BridgeClients | None): Default bridge clients, used when a
                call does not pass its own.
        """
        self.anime_table = anime_table
        self.cache = cache
        self.clients = clients or BridgeClients()

    @staticmethod
    def _parse_content_type(content_type: Any) -> str:
        value = str(content_type).strip().lower() if content_type else ""
        if value not in (ContentType.MOVIE, ContentType.SERIES, ANIME):
            raise InvalidArgumentError(
                f"Content type must be movie, series or anime, not '{content_type}'"
            )
        return value

    @staticmethod
    def _parse_targets(
        target_providers: Iterable[Provider | str] | None,
    ) -> tuple[Provider, ...]:
        if not target_providers:
            return ()
        try:
            return tuple(Provider(p) for p in target_providers)
        except ValueError as e:
            raise InvalidArgumentError(f"Unknown target provider: {e}") from e

    @staticmethod
    def _apply_seed_pairs(
        record: IdentityRecord,
        seed_pairs: IdentityRecord | Mapping[Provider | str, Any] | None,
    ) -> None:
        if not seed_pairs:
            return
        if isinstance(seed_pairs, IdentityRecord):
            record.merge(seed_pairs)
            return
        for name, value in seed_pairs.items():
            key = str(name).removesuffix("_id")
            try:
                provider = Provider(key)
            except ValueError:
                raise InvalidArgumentError(
                    f"Unknown provider '{name}' in seed pairs"
                ) from None
            if value is not None and not record.fill_if_empty(provider, value):
                if record.get(provider) is None:
                    log.debug(f"Ignoring invalid seed pair $$'{provider}:{value}'$$")

    @staticmethod
    def _satisfied(record: IdentityRecord, targets: tuple[Provider, ...]) -> bool:
        """Whether the record already answers the request."""
        if targets:
            return all(record.get(p) is not None for p in targets)
        native = record.content_type.native_provider
        return record.imdb_id is not None and record.get(native) is not None

    async def resolve(
        self,
        content_type: ContentType | str,
        seed_identifier: str,
        seed_pairs: IdentityRecord | Mapping[Provider | str, Any] | None = None,
        target_providers: Iterable[Provider | str] | None = None,
        clients: BridgeClients | None = None,
    ) -> IdentityRecord:
        """Resolve every identifier reachable from the seed.

        Args:
            content_type (ContentType | str): `movie`, `series` or `anime`.
            seed_identifier (str): The identifier to start from, such as
                `tmdb:603` or `tt0133093`.
            seed_pairs (IdentityRecord | Mapping | None): Identifiers the caller
                already knows.
            target_providers (Iterable | None): Providers the caller needs. When
                they are all known the resolver stops early.
            clients (BridgeClients | None): Bridge clients to use for this call,
                for example ones built with per-caller API keys.

        Returns:
            IdentityRecord: The best-effort record, at least containing the seed.

        Raises:
            InvalidArgumentError: If the content type or seed is missing or malformed.
        """
        requested_type = self._parse_content_type(content_type)
        seed = SeedIdentifier.parse(seed_identifier)
        targets = self._parse_targets(target_providers)
        clients = clients or self.clients

        record = IdentityRecord(
            content_type=(
                ContentType.SERIES if requested_type == ANIME else requested_type
            )
        )
        if not record.fill_if_empty(seed.provider, seed.value):
            raise InvalidArgumentError(f"Invalid seed identifier '{seed}'")
        self._apply_seed_pairs(record, seed_pairs)

        is_anime = requested_type == ANIME or any(
            record.get(p) is not None for p in ANIME_PROVIDERS
        )
        log.debug(
            f"Resolving $$'{seed}'$$ ({requested_type}, "
            f"{'animation' if is_anime else 'general'})"
        )

        if is_anime:
            return await self._resolve_anime(record, requested_type, targets, clients)
        return await self._resolve_general(record, targets, clients)

    async def _resolve_anime(
        self,
        record: IdentityRecord,
        requested_type: str,
        targets: tuple[Provider, ...],
        clients: BridgeClients,
    ) -> IdentityRecord:
        """Static table lookup, then a bridge walk that is never cached."""
        type_decided = requested_type != ANIME
        for provider in ANIME_PROVIDERS:
            value = record.get(provider)
            if value is None:
                continue
            entry = self.anime_table.entry(provider, value)
            if entry is None:
                continue
            if not type_decided:
                record.content_type = entry.content_type
                type_decided = True
            filled = record.merge(entry.to_record(record.content_type))
            if filled:
                log.debug(
                    f"Anime mapping for $$'{provider}:{value}'$$ filled "
                    f"$$'{', '.join(sorted(filled))}'$$"
                )

        if not self._satisfied(record, targets) and record.general_populated():
            await self._walk(_Walk(record=record, clients=clients))

        log.debug(f"Resolved animation title to $$'{record}'$$")
        return record

    async def _resolve_general(
        self,
        record: IdentityRecord,
        targets: tuple[Provider, ...],
        clients: BridgeClients,
    ) -> IdentityRecord:
        """Cache short-circuit, bridge walk, write-back."""
        try:
            cached = self.cache.get(record.content_type, record)
        except StorageError as e:
            log.warning(f"Cache lookup failed, resolving live: {e}")
            cached = None

        if cached is not None:
            record.merge(cached)
            if self._satisfied(record, targets):
                log.debug(f"Served $$'{record}'$$ from the cache")
                return record

        await self._walk(_Walk(record=record, clients=clients))

        if len(record.general_populated()) >= 2:
            try:
                self.cache.put(record)
            except StorageError as e:
                log.warning(f"Could not cache $$'{record}'$$: {e}")

        log.debug(f"Resolved $$'{record}'$$")
        return record

    async def _call(
        self,
        walk: _Walk,
        label: str,
        fn: Callable[..., Awaitable[IdentityRecord]],
        *args: Any,
    ) -> None:
        """Run one bridge call and merge its result, absorbing provider errors.

        Identical calls within the same walk are made once.
        """
        key = (label, *args)
        if key in walk.calls:
            result = walk.calls[key]
        else:
            call = f"{label}({', '.join(str(a) for a in args)})"
            try:
                result = await fn(*args)
            except NotFoundError as e:
                log.debug(f"$$'{call}'$$ found nothing: {e}")
                result = None
            except ProviderError as e:
                log.warning(f"$$'{call}'$$ failed: {e}")
                result = None
            walk.calls[key] = result

        if result is not None:
            filled = walk.record.merge(result)
            if filled:
                log.debug(f"{label} filled $$'{', '.join(sorted(filled))}'$$")

    async def _walk(self, walk: _Walk) -> None:
        """Run every bridge step whose precondition holds, in passes.

        A step runs at most once per walk. After each pass the steps that have
        not run yet are checked again, since earlier steps may have discovered
        the identifier they start from.
        """
        steps: list[tuple[Callable[[_Walk], bool], Callable[[_Walk], Awaitable]]] = [
            (
                lambda w: w.has(Provider.TMDB)
                and bool(w.missing(Provider.IMDB, Provider.TVDB, Provider.TVMAZE)),
                self._from_tmdb,
            ),
            (
                lambda w: w.has(Provider.TVDB)
                and bool(w.missing(Provider.IMDB, Provider.TMDB, Provider.TVMAZE)),
                self._from_tvdb,
            ),
            (
                lambda w: w.has(Provider.IMDB)
                and bool(w.missing(Provider.TMDB, Provider.TVDB, Provider.TVMAZE)),
                self._from_imdb,
            ),
            (
                lambda w: w.has(Provider.TVMAZE)
                and bool(w.missing(Provider.IMDB, Provider.TMDB, Provider.TVDB)),
                self._from_tvmaze,
            ),
        ]

        attempted: set[int] = set()
        while True:
            ran = False
            for index, (precondition, step) in enumerate(steps):
                if index in attempted or not precondition(walk):
                    continue
                attempted.add(index)
                await step(walk)
                ran = True
            if not ran:
                break

    async def _from_tmdb(self, walk: _Walk) -> None:
        tmdb, tvdb = walk.clients.tmdb, walk.clients.tvdb
        ct = walk.content_type
        tmdb_id = walk.record.tmdb_id

        if tmdb is not None and walk.missing(Provider.IMDB, Provider.TVDB):
            await self._call(
                walk, "tmdb.get_external_ids", tmdb.get_external_ids, tmdb_id, ct
            )
        if tvdb is None:
            return
        if walk.missing(Provider.TVDB):
            await self._call(walk, "tvdb.find_by_tmdb", tvdb.find_by_tmdb, tmdb_id, ct)
        if walk.is_series and walk.has(Provider.TVDB) and walk.missing(Provider.TVMAZE):
            tvdb_id = walk.record.tvdb_id
            await self._call(walk, "tvdb.get_extended", tvdb.get_extended, tvdb_id, ct)

    async def _from_tvdb(self, walk: _Walk) -> None:
        tvdb, tvmaze = walk.clients.tvdb, walk.clients.tvmaze
        ct = walk.content_type
        tvdb_id = walk.record.tvdb_id

        if tvdb is not None:
            await self._call(walk, "tvdb.get_extended", tvdb.get_extended, tvdb_id, ct)
        if tvmaze is not None and walk.missing(Provider.TVMAZE):
            await self._call(
                walk, "tvmaze.lookup_by_tvdb", tvmaze.lookup_by_tvdb, tvdb_id
            )

    async def _from_imdb(self, walk: _Walk) -> None:
        clients, ct = walk.clients, walk.content_type
        imdb_id = walk.record.imdb_id

        if clients.cinemeta is not None and walk.missing(Provider.TMDB, Provider.TVDB):
            await self._call(
                walk,
                "cinemeta.get_external_ids",
                clients.cinemeta.get_external_ids,
                imdb_id,
                ct,
            )
        if clients.tmdb is not None and walk.missing(Provider.TMDB):
            await self._call(
                walk, "tmdb.find_by_imdb", clients.tmdb.find_by_imdb, imdb_id, ct
            )
        if clients.tvdb is not None and walk.missing(Provider.TVDB):
            await self._call(
                walk, "tvdb.find_by_imdb", clients.tvdb.find_by_imdb, imdb_id, ct
            )
        if clients.tvmaze is not None and walk.missing(Provider.TVMAZE):
            await self._call(
                walk, "tvmaze.lookup_by_imdb", clients.tvmaze.lookup_by_imdb, imdb_id
            )

    async def _from_tvmaze(self, walk: _Walk) -> None:
        tvmaze = walk.clients.tvmaze
        if tvmaze is not None:
            tvmaze_id = walk.record.tvmaze_id
            await self._call(walk, "tvmaze.get_show", tvmaze.get_show, tvmaze_id)
