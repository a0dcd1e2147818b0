"""Client saves: credentials, inbound memberships and local descriptors."""

from __future__ import annotations

from typing import TYPE_CHECKING

from coresync.domain.errors import ConflictError, ValidationError
from coresync.domain.links import regenerate
from coresync.domain.model import Action, Client, ObjectClass
from coresync.domain.payloads import ClientPayload, parse_client_list, parse_payload, parse_target
from coresync.domain.projection import USER_INBOUND_TYPES
from coresync.domain.reconciliation.context import MutationOutcome
from coresync.domain.reconciliation.handlers.common import require, require_id, unsupported

if TYPE_CHECKING:
    from coresync.domain.model import Inbound
    from coresync.domain.ports import CoreSyncRepositories
    from coresync.domain.reconciliation.context import MutationContext

_OBJECTS = (ObjectClass.CLIENTS, ObjectClass.INBOUNDS)


def _declared_inbounds(repositories: CoreSyncRepositories, ids: list[int]) -> list[Inbound]:
    wanted = sorted(set(ids))
    inbounds = list(repositories.inbounds.get_many(wanted))
    missing = set(wanted) - {inbound.id for inbound in inbounds}
    if missing:
        raise ValidationError(f"unknown inbound ids: {sorted(missing)}")
    return inbounds


def _apply(
    repositories: CoreSyncRepositories,
    data: ClientPayload,
    *,
    editing: bool,
) -> tuple[Client, tuple[int, ...]]:
    """Write one client; returns it with its previous membership set."""

    if editing:
        client_id = require_id(data.id, "client")
        client = require(repositories.clients.get(client_id), "client", client_id)
    else:
        client = Client(name=data.name)
    previous = client.inbounds
    if repositories.clients.name_taken(data.name, exclude_id=client.id):
        raise ConflictError(f"client name {data.name!r} already exists")
    inbounds = _declared_inbounds(repositories, data.inbounds)

    client.name = data.name
    client.enable = data.enable
    client.group = data.group
    client.desc = data.desc
    client.config = {protocol: dict(entry) for protocol, entry in data.config.items()}
    client.up = data.up
    client.down = data.down
    client.volume = data.volume
    client.expiry = data.expiry
    client.links = [dict(descriptor) for descriptor in data.links]
    client.set_inbounds(inbound.id for inbound in inbounds if inbound.id is not None)
    client.links = regenerate(
        client, [inbound for inbound in inbounds if inbound.type in USER_INBOUND_TYPES]
    )
    repositories.clients.add(client)
    return client, previous


def save_clients(context: MutationContext, action: Action, payload: object) -> MutationOutcome:
    repositories = context.repositories
    restart: set[int] = set()
    match action:
        case Action.NEW | Action.EDIT:
            data = parse_payload(ClientPayload, payload)
            client, previous = _apply(repositories, data, editing=action is Action.EDIT)
            restart.update(previous, client.inbounds)
        case Action.ADD_BULK:
            for data in parse_client_list(payload):
                client, _ = _apply(repositories, data, editing=False)
                restart.update(client.inbounds)
        case Action.DELETE:
            target = parse_target(payload)
            if not isinstance(target, int):
                raise ValidationError("client delete expects a client id")
            client = require(repositories.clients.get(target), "client", target)
            restart.update(client.inbounds)
            repositories.clients.delete(client)
        case _:
            raise unsupported(ObjectClass.CLIENTS, action)
    return MutationOutcome(objects=_OBJECTS, restart_inbounds=restart)
