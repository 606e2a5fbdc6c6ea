# Keyhouse configuration.
# Created: 2026-10-05
#
# Settings live in ~/.keyhouse/config.json. Any field can be overridden with
# a KEYHOUSE_<FIELD> environment variable (lists are comma-separated).

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

_ENV_PREFIX = "KEYHOUSE_"


def get_config_dir() -> Path:
    """Return the config directory, creating it if needed."""
    override = os.environ.get(f"{_ENV_PREFIX}CONFIG_DIR")
    path = Path(override) if override else Path.home() / ".keyhouse"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_path() -> Path:
    return get_config_dir() / "config.json"


class Settings(BaseModel):
    """Server settings."""

    host: str = "127.0.0.1"
    port: int = 8888
    # Public base URL advertised in the metadata document. Empty means
    # "derive from the incoming request".
    issuer_url: str = ""

    storage_backend: Literal["memory", "file"] = "file"
    storage_path: str = ""  # defaults to <config_dir>/oauth_store.json

    scopes_supported: list[str] = Field(default_factory=lambda: ["read", "write"])

    cors_allowed_origins: list[str] = Field(default_factory=list)
    audit_enabled: bool = True
    rate_limit_enabled: bool = True
    log_level: str = "INFO"

    @classmethod
    def load(cls, path: Path | None = None) -> Settings:
        """Load settings from disk, then apply environment overrides."""
        path = path or get_config_path()
        data: dict = {}
        if path.exists():
            try:
                data = json.loads(path.read_text())
            except (json.JSONDecodeError, OSError) as exc:
                logger.warning("Ignoring unreadable config %s: %s", path, exc)

        for name, field in cls.model_fields.items():
            raw = os.environ.get(f"{_ENV_PREFIX}{name.upper()}")
            if raw is None:
                continue
            if field.annotation == list[str]:
                data[name] = [item.strip() for item in raw.split(",") if item.strip()]
            else:
                data[name] = raw

        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            logger.warning("Invalid settings, falling back to defaults: %s", exc)
            return cls()

    def save(self, path: Path | None = None) -> None:
        path = path or get_config_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.model_dump(), indent=2))
        try:
            path.chmod(0o600)
        except OSError:
            pass

    def resolved_storage_path(self) -> Path:
        if self.storage_path:
            return Path(self.storage_path).expanduser()
        return get_config_dir() / "oauth_store.json"


# Singleton
_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def reset_settings() -> None:
    """Reset singleton (for testing)."""
    global _settings
    _settings = None
