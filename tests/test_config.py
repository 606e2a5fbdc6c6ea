# Tests for settings loading and environment overrides.
# Created: 2026-10-10

import json

from keyhouse.config import Settings, get_config_dir, get_settings, reset_settings


def test_defaults(tmp_path):
    settings = Settings.load(tmp_path / "missing.json")
    assert settings.port == 8888
    assert settings.storage_backend == "file"
    assert settings.scopes_supported == ["read", "write"]
    assert settings.rate_limit_enabled is True


def test_config_dir_override(tmp_path):
    assert get_config_dir() == tmp_path / "config"
    assert get_config_dir().is_dir()


def test_save_and_load(tmp_path):
    path = tmp_path / "config.json"
    Settings(port=9100, storage_backend="memory", cors_allowed_origins=["https://a.example"]).save(
        path
    )
    assert path.stat().st_mode & 0o777 == 0o600

    loaded = Settings.load(path)
    assert loaded.port == 9100
    assert loaded.storage_backend == "memory"
    assert loaded.cors_allowed_origins == ["https://a.example"]


def test_env_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"port": 9100, "issuer_url": "https://file.example"}))
    monkeypatch.setenv("KEYHOUSE_PORT", "9200")
    monkeypatch.setenv("KEYHOUSE_SCOPES_SUPPORTED", "read, write ,admin")

    settings = Settings.load(path)
    assert settings.port == 9200
    assert settings.issuer_url == "https://file.example"
    assert settings.scopes_supported == ["read", "write", "admin"]


def test_invalid_values_fall_back_to_defaults(tmp_path, monkeypatch):
    monkeypatch.setenv("KEYHOUSE_STORAGE_BACKEND", "redis")
    assert Settings.load(tmp_path / "missing.json").storage_backend == "file"


def test_unreadable_file_is_ignored(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json")
    assert Settings.load(path).port == 8888


def test_storage_path_defaults_to_config_dir(tmp_path):
    assert Settings().resolved_storage_path() == tmp_path / "config" / "oauth_store.json"
    assert Settings(storage_path=str(tmp_path / "s.json")).resolved_storage_path() == (
        tmp_path / "s.json"
    )


def test_singleton(monkeypatch):
    first = get_settings()
    assert get_settings() is first
    monkeypatch.setenv("KEYHOUSE_LOG_LEVEL", "DEBUG")
    reset_settings()
    assert get_settings().log_level == "DEBUG"


def test_stale_default_scope_key_is_ignored(tmp_path, monkeypatch):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"default_scope": ["write"], "port": 9300}))
    monkeypatch.setenv("KEYHOUSE_DEFAULT_SCOPE", "admin")

    settings = Settings.load(path)
    assert settings.port == 9300
    assert "default_scope" not in settings.model_dump()
