"""Data storage configuration helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

from .env import mapping_env_var

APP_DIR_NAME: Final[str] = "sellerscope"
DEFAULT_DB_FILENAME: Final[str] = "orders.db"
CHECKPOINT_FILENAME: Final[str] = "checkpoints.json"
ORIGIN_STORE: Final[str] = "origin"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME
    checkpoint_filename: str = CHECKPOINT_FILENAME

    def resolve_data_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def ensure_data_dir(self) -> Path:
        data_dir = self.resolve_data_dir()
        data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir

    def database_path(self, *, ensure: bool = True) -> Path:
        base = self.ensure_data_dir() if ensure else self.resolve_data_dir()
        return base / self.database_filename

    def checkpoint_path(self, *, ensure: bool = True) -> Path:
        base = self.ensure_data_dir() if ensure else self.resolve_data_dir()
        return base / self.checkpoint_filename

    def database_uri(self) -> str:
        return f"sqlite+pysqlite:///{self.database_path()}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    """Connection URIs for the origin order store and its mirrors."""

    uri: str
    mirrors: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if ORIGIN_STORE in self.mirrors:
            raise ValueError(f"Mirror store may not be named {ORIGIN_STORE!r}")

    @property
    def stores(self) -> dict[str, str]:
        return {ORIGIN_STORE: self.uri, **self.mirrors}


def _default_data_dir() -> Path:
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        base_path = Path(base) if base else (Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME")
        base_path = Path(base) if base else (Path.home() / ".local" / "share")
    return (base_path / APP_DIR_NAME).expanduser().resolve()


def get_storage_config() -> StorageConfig:
    env_dir = os.getenv("SELLERSCOPE_DATA_DIR")
    data_dir = Path(env_dir) if env_dir else _default_data_dir()
    return StorageConfig(data_dir=data_dir)


def get_database_uri() -> str:
    """Compute the origin database URI, respecting overrides."""

    env_uri = os.getenv("DATABASE_URI")
    if env_uri:
        return env_uri
    return get_storage_config().database_uri()


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    mirrors = mapping_env_var("MIRROR_DATABASE_URIS")
    env_uri = os.getenv("DATABASE_URI")
    if env_uri:
        return DatabaseConfig(uri=env_uri, mirrors=mirrors)
    storage_config = storage or get_storage_config()
    return DatabaseConfig(uri=storage_config.database_uri(), mirrors=mirrors)
