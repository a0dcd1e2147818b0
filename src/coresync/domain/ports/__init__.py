"""Ports implemented by adapters and consumed by the reconciliation engine."""

from __future__ import annotations

from coresync.domain.ports.core import CoreAdapter
from coresync.domain.ports.persistence import (
    ChangeRepository,
    ClientRepository,
    EndpointRepository,
    InboundRepository,
    OutboundRepository,
    Repository,
    SettingRepository,
    TaggedRepository,
    TlsRepository,
)
from coresync.domain.ports.provisioning import PeerProvisioner, ProvisionedPeer
from coresync.domain.ports.unit_of_work import (
    CoreSyncRepositories,
    CoreSyncUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "ChangeRepository",
    "ClientRepository",
    "CoreAdapter",
    "CoreSyncRepositories",
    "CoreSyncUnitOfWork",
    "EndpointRepository",
    "InboundRepository",
    "OutboundRepository",
    "PeerProvisioner",
    "ProvisionedPeer",
    "Repository",
    "RepositoryCollection",
    "SettingRepository",
    "TaggedRepository",
    "TlsRepository",
    "UnitOfWork",
]
