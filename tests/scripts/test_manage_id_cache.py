"""Tests for the cache management command line tool."""

import json
from pathlib import Path

import pytest

from idbridge.config.database import IdBridgeDB
from idbridge.config.settings import IdBridgeConfig
from idbridge.core.bridge import IdBridge
from scripts import manage_id_cache
from tests.core.fakes import age_rows, movie, series


@pytest.fixture
def bridge(db: IdBridgeDB) -> IdBridge:
    return IdBridge(IdBridgeConfig(), db=db)


def _run(bridge: IdBridge, *argv: str) -> int:
    return manage_id_cache.main(list(argv), bridge=bridge)


def test_stats_on_empty_cache(bridge: IdBridge, capsys) -> None:
    assert _run(bridge, "stats") == 0

    out = capsys.readouterr().out
    assert "Total Mappings: 0" in out
    assert "No cache entries found." in out


def test_add_then_search_and_list(bridge: IdBridge, capsys) -> None:
    """Manually added mappings show up in search, list and stats."""
    assert _run(bridge, "add", "movie", "603", "", "tt0133093") == 0
    assert _run(bridge, "search", "tt0133093") == 0
    assert _run(bridge, "list", "movie") == 0
    assert _run(bridge, "stats") == 0

    out = capsys.readouterr().out
    assert "Mapping added successfully" in out
    assert "TMDB: 603 | TVDB: N/A | IMDb: tt0133093" in out
    assert "MOVIE:" in out
    assert "Total Mappings: 1" in out


def test_add_with_one_identifier_fails(bridge: IdBridge) -> None:
    assert _run(bridge, "add", "series", "1399") == 1
    assert _run(bridge, "add", "series", "1399", "", "imdb-id") == 1
    assert bridge.store.count() == 0


def test_add_force_overwrites(bridge: IdBridge) -> None:
    _run(bridge, "add", "series", "1399", "", "tt0944947")
    _run(bridge, "add", "series", "1400", "", "tt0944947", "--force")

    [entry] = bridge.store.search("imdb:tt0944947")
    assert entry.tmdb_id == 1400


def test_import_adds_mappings_from_json(
    bridge: IdBridge, tmp_path: Path, capsys
) -> None:
    """Valid entries are imported and invalid ones are skipped."""
    path = tmp_path / "mappings.json"
    path.write_text(
        json.dumps(
            [
                {"content_type": "movie", "tmdb_id": 603, "imdb_id": "tt0133093"},
                {"content_type": "series", "tvdb_id": "121361", "tvmaze_id": 82},
                {"content_type": "movie", "tmdb_id": "x", "imdb_id": "tt1"},
            ]
        ),
        encoding="utf-8",
    )

    assert _run(bridge, "import", str(path), "--batch-size", "2") == 0

    assert "Imported 2 of 3 mappings" in capsys.readouterr().out
    assert bridge.store.count() == 2
    [entry] = bridge.store.search("tvmaze:82")
    assert entry.tvdb_id == 121361


@pytest.mark.parametrize("content", ["{not json", '{"content_type": "movie"}', "[1]"])
def test_import_rejects_bad_files(
    bridge: IdBridge, tmp_path: Path, content: str
) -> None:
    path = tmp_path / "mappings.json"
    path.write_text(content, encoding="utf-8")

    assert _run(bridge, "import", str(path)) == 1
    assert _run(bridge, "import", str(tmp_path / "missing.json")) == 1
    assert bridge.store.count() == 0


def test_clear_scopes(bridge: IdBridge, db: IdBridgeDB, capsys) -> None:
    """Old and expired scopes respect age and `all` needs confirmation."""
    bridge.store.put(movie(tmdb=1, imdb="tt0000001"))
    bridge.store.put(movie(tmdb=2, imdb="tt0000002"))
    bridge.store.put(series(tvdb=3, imdb="tt0000003"))
    age_rows(db, 400, tmdb_id="1")
    age_rows(db, 20, tmdb_id="2")

    assert _run(bridge, "clear", "expired") == 0
    assert bridge.store.count() == 2
    assert _run(bridge, "clear", "old", "10") == 0
    assert bridge.store.count() == 1

    assert _run(bridge, "clear", "all", "--yes") == 0
    assert bridge.store.count() == 0
    assert "Cleared all 1 cache entries" in capsys.readouterr().out


def test_clear_all_can_be_aborted(
    bridge: IdBridge, monkeypatch: pytest.MonkeyPatch, capsys
) -> None:
    bridge.store.put(movie(tmdb=1, imdb="tt0000001"))
    monkeypatch.setattr("builtins.input", lambda prompt: "n")

    assert _run(bridge, "clear", "all") == 0

    assert "Aborted." in capsys.readouterr().out
    assert bridge.store.count() == 1


def test_optimize_and_recommendations(bridge: IdBridge, capsys) -> None:
    bridge.store.put(movie(tmdb=1, imdb="tt0000001"))

    assert _run(bridge, "optimize") == 0
    assert _run(bridge, "recommendations") == 0
    assert _run(bridge, "config") == 0

    out = capsys.readouterr().out
    assert "Expired entries removed: 0" in out
    assert "Cache is healthy" in out
    assert "TMDB API Key: not set" in out


def test_unknown_command_exits(bridge: IdBridge) -> None:
    with pytest.raises(SystemExit):
        _run(bridge, "explode")
