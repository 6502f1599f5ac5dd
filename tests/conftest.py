"""Shared pytest configuration and fixtures for the test suite."""

import atexit
import os
import shutil
import tempfile
from pathlib import Path

import pytest
import yaml

_TEST_DATA_DIR = Path(tempfile.mkdtemp(prefix="ib-tests-"))
os.environ["IB_DATA_PATH"] = str(_TEST_DATA_DIR)
_TEST_CONFIG_FILE = _TEST_DATA_DIR / "config.yaml"

_TEST_CONFIG_FILE.write_text(
    yaml.safe_dump(
        {
            "log_level": "DEBUG",
            "cache": {"ttl_days": 90, "max_size": 100_000},
            "providers": {"request_timeout": 5, "max_retries": 1},
        },
        sort_keys=False,
    ),
    encoding="utf-8",
)

from idbridge.config import settings as settings_module  # noqa: E402
from idbridge.config.database import IdBridgeDB  # noqa: E402
from idbridge.core.animap import AnimeMappingTable  # noqa: E402
from idbridge.core.id_cache import IdCacheStore  # noqa: E402
from idbridge.core.maintenance import IdCacheManager  # noqa: E402

settings_module.get_config.cache_clear()


@pytest.fixture
def db(tmp_path: Path):
    """A fresh database in a temporary directory, created without migrations."""
    database = IdBridgeDB(tmp_path, migrate=False)
    yield database
    database.dispose()


@pytest.fixture
def store(db: IdBridgeDB) -> IdCacheStore:
    """An equivalence cache store with the default TTL and size cap."""
    return IdCacheStore(db, ttl_days=90, max_size=100_000)


@pytest.fixture
def manager(store: IdCacheStore) -> IdCacheManager:
    """A cache manager over the `store` fixture."""
    return IdCacheManager(store)


@pytest.fixture(scope="session")
def anime_table() -> AnimeMappingTable:
    """The bundled anime mapping table."""
    return AnimeMappingTable.from_file()


@atexit.register
def _cleanup_test_data_dir() -> None:
    """Remove the temporary test data directory after the test session."""
    shutil.rmtree(_TEST_DATA_DIR, ignore_errors=True)
