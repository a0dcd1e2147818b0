"""SQLAlchemy-backed unit of work for configuration saves.

One unit of work is one save transaction: every repository shares its session,
nothing is visible to other units until ``commit()``, and leaving the block
without committing discards the changes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from coresync.adapters.sqlalchemy.mappings import start_mappers
from coresync.adapters.sqlalchemy.migrations import upgrade_head
from coresync.adapters.sqlalchemy.repositories import (
    SqlAlchemyChangeRepository,
    SqlAlchemyClientRepository,
    SqlAlchemyEndpointRepository,
    SqlAlchemyInboundRepository,
    SqlAlchemyOutboundRepository,
    SqlAlchemySettingRepository,
    SqlAlchemyTlsRepository,
)
from coresync.config import get_database_uri
from coresync.domain.errors import StoreError
from coresync.domain.ports.unit_of_work import CoreSyncRepositories

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when the store is used before ``startup()`` or configured twice."""


@dataclass(slots=True)
class _StoreState:
    engine: Engine | None = None
    sessions: sessionmaker[Session] | None = None

    def session_factory(self) -> sessionmaker[Session]:
        if self.sessions is None:
            raise StartupError(
                "Configuration store not initialised. Call "
                "coresync.adapters.sqlalchemy.unit_of_work.startup() first."
            )
        return self.sessions


_STATE = _StoreState()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Bind the store to an engine, map the model and upgrade the schema."""

    if _STATE.engine is not None and not force:
        raise StartupError("Configuration store already initialised. Pass force=True.")

    bound = engine or create_engine(database_uri or get_database_uri(), future=True)
    start_mappers()
    upgrade_head(engine=bound)
    _STATE.engine = bound
    _STATE.sessions = sessionmaker(bind=bound, expire_on_commit=False)
    log.debug("Configuration store bound to %s", bound.url)


def configured_engine() -> Engine | None:
    return _STATE.engine


def is_started() -> bool:
    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the engine and forget it; tests call this between cases."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.engine = None
    _STATE.sessions = None


class SqlAlchemyUnitOfWork:
    """Unit of work spanning every configuration store."""

    def __init__(self) -> None:
        self.session_factory = _STATE.session_factory()
        self._session: Session | None = None
        self._repositories: CoreSyncRepositories | None = None

    def __enter__(self) -> SqlAlchemyUnitOfWork:
        if self._session is not None:
            raise StartupError("Unit of work session already initialised")
        session = self.session_factory()
        self._session = session
        self._repositories = CoreSyncRepositories(
            inbounds=SqlAlchemyInboundRepository(session),
            outbounds=SqlAlchemyOutboundRepository(session),
            endpoints=SqlAlchemyEndpointRepository(session),
            tls=SqlAlchemyTlsRepository(session),
            clients=SqlAlchemyClientRepository(session),
            settings=SqlAlchemySettingRepository(session),
            changes=SqlAlchemyChangeRepository(session),
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        session = self.session
        try:
            if exc_type is not None:
                session.rollback()
        finally:
            session.close()
            self._session = None
            self._repositories = None
        return False

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._session

    @property
    def repositories(self) -> CoreSyncRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work session not initialised")
        return self._repositories

    def commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StoreError(f"commit failed: {exc}") from exc

    def rollback(self) -> None:
        self.session.rollback()
