"""Data storage configuration helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

APP_DIR_NAME: Final[str] = ".smart-follow"
CONFIG_FILENAME: Final[str] = "config.json"
DEFAULT_DB_FILENAME: Final[str] = "contacts.db"
HTTP_CACHE_FILENAME: Final[str] = "http_cache.db"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path
    config_path: Path | None = None
    database_filename: str = DEFAULT_DB_FILENAME
    http_cache_filename: str = HTTP_CACHE_FILENAME
    database_uri_override: str | None = None

    def resolve_data_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def ensure_data_dir(self) -> Path:
        data_dir = self.resolve_data_dir()
        data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir

    def config_file(self) -> Path:
        if self.config_path is not None:
            return self.config_path.expanduser().resolve()
        return self.resolve_data_dir() / CONFIG_FILENAME

    def database_path(self, *, ensure: bool = True) -> Path:
        base = self.ensure_data_dir() if ensure else self.resolve_data_dir()
        return base / self.database_filename

    def http_cache_path(self, *, ensure: bool = True) -> Path:
        base = self.ensure_data_dir() if ensure else self.resolve_data_dir()
        return base / self.http_cache_filename

    def database_uri(self) -> str:
        if self.database_uri_override:
            return self.database_uri_override
        return f"sqlite+pysqlite:///{self.database_path()}"


def _default_data_dir() -> Path:
    return (Path.home() / APP_DIR_NAME).expanduser().resolve()


def get_storage_config(*, config_path: Path | None = None) -> StorageConfig:
    """Build storage settings from arguments and environment overrides.

    ``SMART_FOLLOW_HOME`` moves the data directory, ``SMART_FOLLOW_CONFIG`` the
    config file and ``SMART_FOLLOW_DATABASE_URI`` replaces the SQLite file.
    An explicit ``config_path`` wins over the environment.
    """

    env_dir = os.getenv("SMART_FOLLOW_HOME")
    data_dir = Path(env_dir) if env_dir else _default_data_dir()
    if config_path is None:
        env_config = os.getenv("SMART_FOLLOW_CONFIG")
        config_path = Path(env_config) if env_config else None
    return StorageConfig(
        data_dir=data_dir,
        config_path=config_path,
        database_uri_override=os.getenv("SMART_FOLLOW_DATABASE_URI") or None,
    )
