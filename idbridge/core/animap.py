"""Static anime mapping table.

An immutable in-memory index over the community anime-list dataset that
correlates the animation identifier spaces (MAL, Kitsu, AniDB, AniList) with
the general-purpose ones. The dataset is loaded once and validated row by row;
there is no reload hook, a restart picks up dataset updates.
"""

from __future__ import annotations

import json
from hashlib import md5
from pathlib import Path
from types import MappingProxyType

from pydantic import ValidationError

from idbridge import log
from idbridge.exceptions import AnimeMappingError
from idbridge.models.identity import ANIME_PROVIDERS, IdentityRecord, Provider
from idbridge.models.schemas.anime import AnimeMappingEntry

__all__ = ["BUNDLED_DATASET", "AnimeMappingTable"]

BUNDLED_DATASET = Path(__file__).resolve().parent.parent / "data" / "anime-list.json"


class AnimeMappingTable:
    """Read-only index of anime mapping entries keyed by each animation id."""

    def __init__(
        self, entries: list[AnimeMappingEntry], dataset_hash: str = ""
    ) -> None:
        """Build the four lookup indexes from validated entries.

        When several entries share an identifier, the first one wins.

        Args:
            entries (list[AnimeMappingEntry]): Validated dataset rows.
            dataset_hash (str): Hash of the source file, used for change tracking.
        """
        indexes: dict[Provider, dict[int, AnimeMappingEntry]] = {
            provider: {} for provider in ANIME_PROVIDERS
        }
        for entry in entries:
            for provider in ANIME_PROVIDERS:
                value = getattr(entry, provider.field)
                if value is not None:
                    indexes[provider].setdefault(value, entry)

        self._indexes = MappingProxyType(
            {p: MappingProxyType(idx) for p, idx in indexes.items()}
        )
        self.size = len(entries)
        self.skipped = 0
        self.dataset_hash = dataset_hash

    @classmethod
    def from_file(cls, path: Path | None = None) -> AnimeMappingTable:
        """Load and validate a dataset file.

        Args:
            path (Path | None): The anime-list JSON file. Defaults to the bundled one.

        Returns:
            AnimeMappingTable: The loaded table.

        Raises:
            AnimeMappingError: If the file is missing, not JSON, or not a list.
        """
        path = path or BUNDLED_DATASET
        try:
            raw = path.read_bytes()
        except OSError as e:
            raise AnimeMappingError(
                f"Could not read anime mapping dataset '{path}': {e}"
            ) from e

        try:
            rows = json.loads(raw)
        except json.JSONDecodeError as e:
            raise AnimeMappingError(
                f"Anime mapping dataset '{path}' is not valid JSON: {e}"
            ) from e

        if not isinstance(rows, list):
            raise AnimeMappingError(
                f"Anime mapping dataset '{path}' must contain a JSON array"
            )

        entries: list[AnimeMappingEntry] = []
        skipped = 0
        for row in rows:
            try:
                entries.append(AnimeMappingEntry.model_validate(row))
            except ValidationError:
                skipped += 1

        table = cls(entries, dataset_hash=md5(raw).hexdigest())
        table.skipped = skipped

        if skipped:
            log.warning(
                f"Skipped $$'{skipped}'$$ invalid rows while loading anime mappings "
                f"from $$'{path}'$$"
            )
        log.info(
            f"Loaded $$'{table.size}'$$ anime mapping entries from $$'{path}'$$"
        )
        return table

    def _lookup(self, provider: Provider, value: int) -> IdentityRecord | None:
        entry = self._indexes[provider].get(value)
        return entry.to_record() if entry is not None else None

    def entry(self, provider: Provider, value: int) -> AnimeMappingEntry | None:
        """Return the raw dataset entry indexed under `provider`."""
        if provider not in self._indexes:
            return None
        return self._indexes[provider].get(value)

    def by_mal(self, mal_id: int) -> IdentityRecord | None:
        """Look up an entry by its MyAnimeList id."""
        return self._lookup(Provider.MAL, mal_id)

    def by_kitsu(self, kitsu_id: int) -> IdentityRecord | None:
        """Look up an entry by its Kitsu id."""
        return self._lookup(Provider.KITSU, kitsu_id)

    def by_anidb(self, anidb_id: int) -> IdentityRecord | None:
        """Look up an entry by its AniDB id."""
        return self._lookup(Provider.ANIDB, anidb_id)

    def by_anilist(self, anilist_id: int) -> IdentityRecord | None:
        """Look up an entry by its AniList id."""
        return self._lookup(Provider.ANILIST, anilist_id)

    def lookup(self, provider: Provider, value: int) -> IdentityRecord | None:
        """Dispatch to the lookup for `provider`."""
        return {
            Provider.MAL: self.by_mal,
            Provider.KITSU: self.by_kitsu,
            Provider.ANIDB: self.by_anidb,
            Provider.ANILIST: self.by_anilist,
        }[provider](value)

    def __len__(self) -> int:
        return self.size
