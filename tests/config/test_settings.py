"""Tests for settings configuration utilities."""

from pathlib import Path

import pytest
from pydantic import SecretStr, ValidationError

from idbridge.config.settings import (
    IdBridgeConfig,
    LogLevel,
    find_yaml_config_file,
)


@pytest.fixture(autouse=True)
def isolate_working_directory(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Set the working directory to a temporary path for each test."""
    monkeypatch.chdir(tmp_path)


def test_find_yaml_config_file_prefers_data_path(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Test that find_yaml_config_file prefers IB_DATA_PATH environment variable."""
    monkeypatch.setenv("IB_DATA_PATH", str(tmp_path))
    config_file = tmp_path / "config.yaml"
    config_file.write_text("root: true", encoding="utf-8")

    result = find_yaml_config_file()

    assert result == config_file.resolve()


def test_config_defaults(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that an empty configuration yields the documented defaults."""
    monkeypatch.setenv("IB_DATA_PATH", str(tmp_path))

    config = IdBridgeConfig()

    assert config.log_level == LogLevel.INFO
    assert config.cache.ttl_days == 90
    assert config.cache.max_size == 100_000
    assert config.cache.maintenance_interval == 86400
    assert config.providers.tmdb_api_key is None
    assert config.providers.request_timeout == 15.0
    assert config.anime_mappings_path is None
    assert config.data_path == tmp_path.resolve()


def test_config_reads_yaml_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Test that values in config.yaml under the data path are applied."""
    monkeypatch.setenv("IB_DATA_PATH", str(tmp_path))
    (tmp_path / "config.yaml").write_text(
        "log_level: debug\n"
        "cache:\n"
        "  ttl_days: 30\n"
        "providers:\n"
        "  tmdb_api_key: tmdb-secret\n",
        encoding="utf-8",
    )

    config = IdBridgeConfig()

    assert config.log_level == LogLevel.DEBUG
    assert config.cache.ttl_days == 30
    assert isinstance(config.providers.tmdb_api_key, SecretStr)
    assert config.providers.tmdb_api_key.get_secret_value() == "tmdb-secret"


def test_environment_overrides_yaml(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Test that nested IB_ environment variables win over the YAML file."""
    monkeypatch.setenv("IB_DATA_PATH", str(tmp_path))
    (tmp_path / "config.yaml").write_text(
        "cache:\n  max_size: 10\n", encoding="utf-8"
    )
    monkeypatch.setenv("IB_CACHE__MAX_SIZE", "500")

    config = IdBridgeConfig()

    assert config.cache.max_size == 500


def test_secret_keys_are_not_printed(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Test that the string form of the config never includes API keys."""
    monkeypatch.setenv("IB_DATA_PATH", str(tmp_path))

    config = IdBridgeConfig(providers={"tvdb_api_key": "tvdb-secret"})

    assert "tvdb-secret" not in str(config)
    assert "tvdb-secret" not in repr(config)


@pytest.mark.parametrize(
    "overrides",
    [
        {"cache": {"ttl_days": 0}},
        {"cache": {"max_size": 0}},
        {"providers": {"request_timeout": 0}},
        {"log_level": "LOUD"},
    ],
)
def test_invalid_values_are_rejected(
    overrides: dict, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Test that out-of-range settings fail validation."""
    monkeypatch.setenv("IB_DATA_PATH", str(tmp_path))

    with pytest.raises(ValidationError):
        IdBridgeConfig(**overrides)


def test_anime_mappings_path_must_exist(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Test that a configured anime dataset path has to point to a file."""
    monkeypatch.setenv("IB_DATA_PATH", str(tmp_path))

    with pytest.raises(ValidationError):
        IdBridgeConfig(anime_mappings_path=tmp_path / "missing.json")

    dataset = tmp_path / "anime.json"
    dataset.write_text("[]", encoding="utf-8")
    assert IdBridgeConfig(anime_mappings_path=dataset).anime_mappings_path == dataset


def test_log_level_lookup_ignores_case() -> None:
    assert LogLevel("debug") is LogLevel.DEBUG
    assert LogLevel("Success") is LogLevel.SUCCESS
    with pytest.raises(ValueError):
        LogLevel("loud")
