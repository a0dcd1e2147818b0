"""Live proxy core configuration values."""

from __future__ import annotations

import socket
from dataclasses import dataclass
from pathlib import Path

from .env import float_env_var, optional_env_var
from .storage import StorageConfig, get_storage_config

DEFAULT_CORE_BINARY = "sing-box"
DEFAULT_STOP_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True, slots=True)
class CoreConfig:
    """Where the core binary lives and how generated descriptors address this host."""

    binary: str
    workdir: Path
    hostname: str
    stop_timeout_seconds: float = DEFAULT_STOP_TIMEOUT_SECONDS

    @property
    def config_path(self) -> Path:
        return self.workdir / "config.json"


def get_core_config(*, storage: StorageConfig | None = None) -> CoreConfig:
    storage_config = storage or get_storage_config()
    workdir = optional_env_var("CORESYNC_CORE_WORKDIR", str(storage_config.core_dir()))
    return CoreConfig(
        binary=optional_env_var("CORESYNC_CORE_BINARY", DEFAULT_CORE_BINARY),
        workdir=Path(workdir).expanduser(),
        hostname=optional_env_var("CORESYNC_HOSTNAME", socket.gethostname()),
        stop_timeout_seconds=float_env_var(
            "CORESYNC_CORE_STOP_TIMEOUT", DEFAULT_STOP_TIMEOUT_SECONDS
        ),
    )
