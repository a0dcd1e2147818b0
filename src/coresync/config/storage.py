"""Where coresync keeps its configuration store and the core's working files."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

APP_DIR_NAME: Final[str] = "coresync"
DEFAULT_DB_FILENAME: Final[str] = "coresync.db"
CORE_DIR_NAME: Final[str] = "core"
SQLITE_URI_PREFIX: Final[str] = "sqlite+pysqlite:///"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """A data directory holding the store database and the core work dir."""

    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME
    core_dirname: str = CORE_DIR_NAME

    def root(self, *, ensure: bool = False) -> Path:
        root = self.data_dir.expanduser().resolve()
        if ensure:
            root.mkdir(parents=True, exist_ok=True)
        return root

    def database_path(self) -> Path:
        return self.root(ensure=True) / self.database_filename

    def core_dir(self) -> Path:
        # created by the process core on first launch
        return self.root() / self.core_dirname

    def database_uri(self) -> str:
        return f"{SQLITE_URI_PREFIX}{self.database_path()}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str


def default_data_dir() -> Path:
    if os.name == "nt":
        local = os.getenv("LOCALAPPDATA")
        base = Path(local) if local else Path.home() / "AppData" / "Local"
    else:
        xdg = os.getenv("XDG_DATA_HOME")
        base = Path(xdg) if xdg else Path.home() / ".local" / "share"
    return base / APP_DIR_NAME


def get_storage_config() -> StorageConfig:
    override = os.getenv("CORESYNC_DATA_DIR")
    return StorageConfig(data_dir=Path(override) if override else default_data_dir())


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    """Use ``DATABASE_URI`` when set, else the SQLite file in the data directory."""

    override = os.getenv("DATABASE_URI")
    if override:
        return DatabaseConfig(uri=override)
    return DatabaseConfig(uri=(storage or get_storage_config()).database_uri())


def get_database_uri() -> str:
    return get_database_config().uri
