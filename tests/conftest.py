from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.orm import Session, sessionmaker

from coresync.adapters.core import InMemoryCore
from coresync.adapters.sqlalchemy import start_mappers
from coresync.adapters.sqlalchemy.migrations import upgrade_head
from coresync.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, shutdown, startup
from coresync.domain.reconciliation import ReconciliationEngine
from tests.helpers.fakes import FakeClock, FakeProvisioner

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

HOSTNAME = "proxy.example.com"


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    start_mappers()
    upgrade_head(engine=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_session(sqlite_engine: Engine) -> Iterator[Session]:
    session_factory = sessionmaker(bind=sqlite_engine, future=True)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    def factory() -> SqlAlchemyUnitOfWork:
        return SqlAlchemyUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()


@pytest.fixture
def core() -> InMemoryCore:
    return InMemoryCore()


@pytest.fixture
def provisioner() -> FakeProvisioner:
    return FakeProvisioner()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def engine(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    core: InMemoryCore,
    provisioner: FakeProvisioner,
    clock: FakeClock,
) -> ReconciliationEngine:
    return ReconciliationEngine(
        unit_of_work_factory=sqlite_unit_of_work,
        core=core,
        provisioner=provisioner,
        hostname=HOSTNAME,
        clock=clock,
    )
