"""Tests for equivalence cache maintenance and operator tooling."""

import pytest
from sqlalchemy import select

from idbridge.config.database import IdBridgeDB
from idbridge.core.id_cache import IdCacheStore
from idbridge.core.maintenance import LAST_OPTIMIZED_KEY, IdCacheManager
from idbridge.exceptions import InvalidArgumentError
from idbridge.models.db.housekeeping import Housekeeping
from idbridge.models.identity import ContentType, Provider
from tests.core.fakes import age_rows, movie, series


def test_enforce_size_evicts_oldest_rows(db: IdBridgeDB) -> None:
    """Exceeding the cap removes exactly the least recently updated rows."""
    store = IdCacheStore(db, max_size=2)
    manager = IdCacheManager(store)
    store.put(movie(tmdb=1, imdb="tt0000001"))
    store.put(movie(tmdb=2, imdb="tt0000002"))
    age_rows(db, 2, tmdb_id="1")
    age_rows(db, 1, tmdb_id="2")

    store.put(movie(tmdb=3, imdb="tt0000003"))
    removed = manager.enforce_size()

    assert removed == 1
    assert store.count() == 2
    assert store.get(ContentType.MOVIE, {Provider.TMDB: 1}) is None
    assert store.get(ContentType.MOVIE, {Provider.TMDB: 2}) is not None
    assert manager.enforce_size() == 0


def test_expire_removes_only_rows_outside_ttl(
    store: IdCacheStore, manager: IdCacheManager, db: IdBridgeDB
) -> None:
    """Expire deletes rows older than the TTL and is idempotent."""
    store.put(movie(tmdb=1, imdb="tt0000001"))
    store.put(movie(tmdb=2, imdb="tt0000002"))
    age_rows(db, store.ttl_days + 1, tmdb_id="1")

    assert manager.expire() == 1
    assert manager.expire() == 0
    assert store.count() == 1


def test_clear_older_than_uses_explicit_age(
    store: IdCacheStore, manager: IdCacheManager, db: IdBridgeDB
) -> None:
    """An explicit age overrides the TTL."""
    store.put(movie(tmdb=1, imdb="tt0000001"))
    store.put(movie(tmdb=2, imdb="tt0000002"))
    age_rows(db, 10, tmdb_id="1")

    assert manager.clear_older_than(5) == 1
    assert store.count() == 1

    with pytest.raises(InvalidArgumentError):
        manager.clear_older_than(-1)


def test_clear_all(store: IdCacheStore, manager: IdCacheManager) -> None:
    """Clearing everything reports how many rows went."""
    store.put(movie(tmdb=1, imdb="tt0000001"))
    store.put(series(tvdb=1, imdb="tt0000002"))

    assert manager.clear_all() == 2
    assert store.count() == 0


def test_optimize_composes_steps_and_records_run(db: IdBridgeDB) -> None:
    """Optimize expires, evicts, compacts and remembers when it ran."""
    store = IdCacheStore(db, ttl_days=30, max_size=1)
    manager = IdCacheManager(store)
    store.put(movie(tmdb=1, imdb="tt0000001"))
    store.put(movie(tmdb=2, imdb="tt0000002"))
    store.put(movie(tmdb=3, imdb="tt0000003"))
    age_rows(db, 31, tmdb_id="1")
    age_rows(db, 5, tmdb_id="2")

    result = manager.optimize()

    assert (result.expired, result.evicted) == (1, 1)
    assert store.count() == 1
    with db() as ctx:
        entry = ctx.session.scalar(
            select(Housekeeping).where(Housekeeping.key == LAST_OPTIMIZED_KEY)
        )
    assert entry is not None and entry.value

    second = manager.optimize()
    assert (second.expired, second.evicted) == (0, 0)
    assert manager.stats().last_optimized is not None


def test_stats_report_coverage_per_content_type(
    store: IdCacheStore, manager: IdCacheManager, db: IdBridgeDB
) -> None:
    """Statistics count coverage, complete rows and expired rows per type."""
    store.put(movie(tmdb=603, tvdb=12345, imdb="tt0133093"))
    store.put(movie(tmdb=604, imdb="tt0234215"))
    store.put(series(tvdb=121361, tvmaze=82))
    age_rows(db, store.ttl_days + 1, tmdb_id="604")

    stats = manager.stats()

    by_type = {s.content_type: s for s in stats.by_type}
    assert stats.total_entries == 3
    assert by_type["movie"].total == 2
    assert by_type["movie"].with_tmdb == 2
    assert by_type["movie"].with_tvdb == 1
    assert by_type["movie"].complete == 1
    assert by_type["movie"].expired == 1
    assert by_type["series"].with_tvmaze == 1
    assert stats.max_size == store.max_size
    assert stats.usage_percentage == 0
    assert stats.last_optimized is None


def test_stats_on_empty_cache(manager: IdCacheManager) -> None:
    """An empty cache has no per-type rows and zero size."""
    stats = manager.stats()

    assert stats.by_type == []
    assert stats.total_entries == 0
    assert stats.estimated_size_kb == 0


def test_recommendations_flag_a_nearly_full_cache(db: IdBridgeDB) -> None:
    """Usage above the warning threshold produces a recommendation."""
    store = IdCacheStore(db, max_size=2)
    manager = IdCacheManager(store)
    assert manager.recommendations() == []

    store.put(movie(tmdb=1, imdb="tt0000001"))
    store.put(movie(tmdb=2, imdb="tt0000002"))

    recommendations = manager.recommendations()
    assert len(recommendations) == 1
    assert "nearly full" in recommendations[0]


def test_add_mapping_validates_and_makes_room(db: IdBridgeDB) -> None:
    """Manual adds validate ids and enforce the cap before inserting."""
    store = IdCacheStore(db, max_size=1)
    manager = IdCacheManager(store)
    store.put(movie(tmdb=1, imdb="tt0000001"))
    store.put(movie(tmdb=2, imdb="tt0000002"))

    assert manager.add_mapping("movie", "603", None, "tt0133093") is True
    assert store.get(ContentType.MOVIE, {Provider.TMDB: 603}) is not None
    assert store.count() == 2
    assert manager.add_mapping("movie", tmdb_id=604) is False

    with pytest.raises(InvalidArgumentError):
        manager.add_mapping("movie", "603", None, "0133093")
    with pytest.raises(InvalidArgumentError):
        manager.add_mapping("music", "603", "1")


def test_add_mapping_force_overwrites(
    store: IdCacheStore, manager: IdCacheManager
) -> None:
    """The correction mode replaces a conflicting identifier."""
    manager.add_mapping("series", tmdb_id=1399, imdb_id="tt0944947")

    manager.add_mapping("series", tmdb_id=1400, imdb_id="tt0944947", overwrite=True)

    assert store.get(ContentType.SERIES, {Provider.IMDB: "tt0944947"}).tmdb_id == 1400


def test_batch_add_skips_invalid_mappings(
    store: IdCacheStore, manager: IdCacheManager
) -> None:
    """Batch adds write valid mappings and skip the rest."""
    mappings = [
        {"content_type": "movie", "tmdb_id": n, "imdb_id": f"tt{n:07d}"}
        for n in range(1, 6)
    ]
    mappings.append({"content_type": "movie", "tmdb_id": "x", "imdb_id": "tt1"})
    mappings.append(series(tvdb=121361, imdb="tt0944947"))

    added = manager.batch_add_mappings(mappings, batch_size=2)

    assert added == 6
    assert store.count() == 6
