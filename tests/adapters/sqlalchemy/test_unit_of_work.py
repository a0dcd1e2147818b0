from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from coresync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)
from coresync.domain.model import Outbound

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.engine import Engine


def _direct(tag: str = "direct") -> Outbound:
    return Outbound(type="direct", tag=tag, options={})


def test_unit_of_work_requires_startup() -> None:
    shutdown()

    assert not is_started()
    with pytest.raises(StartupError, match="not initialised"):
        SqlAlchemyUnitOfWork()


def test_startup_refuses_reconfiguration_without_force(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    try:
        with pytest.raises(StartupError, match="already initialised"):
            startup(engine=sqlite_engine)
        assert configured_engine() is sqlite_engine
    finally:
        shutdown()


def test_commit_persists_changes(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    with sqlite_unit_of_work() as uow:
        uow.repositories.outbounds.add(_direct())
        uow.commit()

    with sqlite_unit_of_work() as uow:
        assert uow.repositories.outbounds.get_by_tag("direct") is not None


def test_leaving_without_commit_discards_changes(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    with sqlite_unit_of_work() as uow:
        uow.repositories.outbounds.add(_direct())

    with pytest.raises(RuntimeError, match="boom"), sqlite_unit_of_work() as uow:
        uow.repositories.outbounds.add(_direct("other"))
        raise RuntimeError("boom")

    with sqlite_unit_of_work() as uow:
        assert uow.repositories.outbounds.list_all() == []


def test_session_is_only_available_inside_the_block(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    uow = sqlite_unit_of_work()

    with pytest.raises(StartupError, match="session not initialised"):
        _ = uow.repositories
