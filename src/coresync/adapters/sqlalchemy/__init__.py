"""SQLAlchemy adapter package for coresync."""

from __future__ import annotations

from .mappings import mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyChangeRepository,
    SqlAlchemyClientRepository,
    SqlAlchemyEndpointRepository,
    SqlAlchemyInboundRepository,
    SqlAlchemyOutboundRepository,
    SqlAlchemySettingRepository,
    SqlAlchemyTlsRepository,
)
from .unit_of_work import (
    SqlAlchemyUnitOfWork,
    StartupError,
    configured_engine,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyChangeRepository",
    "SqlAlchemyClientRepository",
    "SqlAlchemyEndpointRepository",
    "SqlAlchemyInboundRepository",
    "SqlAlchemyOutboundRepository",
    "SqlAlchemySettingRepository",
    "SqlAlchemyTlsRepository",
    "SqlAlchemyUnitOfWork",
    "StartupError",
    "configured_engine",
    "mapper_registry",
    "shutdown",
    "startup",
]
