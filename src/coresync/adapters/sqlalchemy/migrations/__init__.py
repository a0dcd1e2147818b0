"""Schema upgrades for the configuration store.

The ``alembic`` command line reads ``[tool.alembic]`` from pyproject.toml in a
source checkout. At runtime the packaged revisions next to this module are used
directly, so an installed wheel can upgrade its own database.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Final

from alembic import command
from alembic.config import Config

from coresync.config import get_database_uri

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

MIGRATIONS_PATH: Final[Path] = Path(__file__).resolve().parent
HEAD: Final[str] = "head"

log = logging.getLogger(__name__)


def _runtime_config() -> Config:
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_PATH))
    return config


def upgrade_head(*, engine: Engine | None = None, database_uri: str | None = None) -> None:
    """Bring the store schema to the newest revision.

    With ``engine`` the upgrade runs on one of its connections, which keeps
    in-memory SQLite databases usable afterwards.
    """

    config = _runtime_config()
    if engine is None:
        url = database_uri or get_database_uri()
        config.set_main_option("sqlalchemy.url", url)
        log.debug("Upgrading store schema at %s", url)
        command.upgrade(config, HEAD)
        return
    with engine.begin() as connection:
        config.attributes["connection"] = connection
        command.upgrade(config, HEAD)
