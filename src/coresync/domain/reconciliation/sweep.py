"""Periodic sweep disabling clients that are over quota or expired."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from coresync.domain.model import Action, ChangeRecord, ObjectClass
from coresync.domain.reconciliation.contracts import ConvergenceResult

if TYPE_CHECKING:
    from coresync.domain.model import Client
    from coresync.domain.ports import CoreSyncRepositories

log = logging.getLogger(__name__)

DEPLETE_ACTOR: Final = "DepleteJob"


@dataclass(slots=True, kw_only=True)
class DepletionResult:
    disabled: tuple[str, ...] = ()
    restart_inbounds: frozenset[int] = frozenset()
    convergence: ConvergenceResult = field(default_factory=ConvergenceResult)


def disable_depleted(repositories: CoreSyncRepositories, now: int) -> list[Client]:
    """Disable depleted clients and log one change record each; caller commits."""

    disabled: list[Client] = []
    for client in repositories.clients.list_enabled():
        if not client.is_depleted(now):
            continue
        client.enable = False
        repositories.clients.add(client)
        log.debug(
            "Disabling client %s (usage %d/%d, expiry %d)",
            client.name,
            client.up + client.down,
            client.volume,
            client.expiry,
        )
        disabled.append(client)
    repositories.changes.append_many(
        ChangeRecord(
            date_time=now,
            actor=DEPLETE_ACTOR,
            key=ObjectClass.CLIENTS.value,
            action=Action.DISABLE.value,
            obj=client.name,
        )
        for client in disabled
    )
    return disabled
