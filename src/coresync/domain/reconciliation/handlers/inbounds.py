"""Inbound saves, with out-json regeneration and in-transaction core patching."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from coresync.domain.errors import ValidationError
from coresync.domain.links import drop_for_inbound, replace_for_inbound
from coresync.domain.model import Action, Inbound, ObjectClass
from coresync.domain.payloads import InboundPayload, parse_payload
from coresync.domain.projection import build_out_json, inbound_core_config
from coresync.domain.reconciliation.context import MutationOutcome
from coresync.domain.reconciliation.handlers.common import (
    patch_core,
    persisted_id,
    remove_from_core,
    require,
    require_id,
    resolve_target,
    resync_linked_clients,
    unsupported,
)
from coresync.domain.validation import ensure_unique_tag

if TYPE_CHECKING:
    from coresync.domain.reconciliation.context import MutationContext

log = logging.getLogger(__name__)

_OBJECTS = (ObjectClass.INBOUNDS, ObjectClass.CLIENTS)


def _link_initial_users(context: MutationContext, inbound: Inbound) -> None:
    repositories = context.repositories
    inbound_id = persisted_id(inbound, "inbound")
    wanted = sorted(set(context.init_users))
    clients = list(repositories.clients.get_many(wanted))
    missing = set(wanted) - {client.id for client in clients}
    if missing:
        raise ValidationError(f"unknown client ids: {sorted(missing)}")
    for client in clients:
        client.add_inbound(inbound_id)
        client.links = replace_for_inbound(client, inbound)
        repositories.clients.add(client)
    log.debug("Linked %d clients to new inbound %s", len(clients), inbound.tag)


def _upsert(context: MutationContext, data: InboundPayload, *, editing: bool) -> Inbound:
    repositories = context.repositories
    inbound: Inbound | None = None
    previous_tag: str | None = None
    if editing:
        inbound_id = require_id(data.id, "inbound")
        inbound = require(repositories.inbounds.get(inbound_id), "inbound", inbound_id)
        previous_tag = inbound.tag
    ensure_unique_tag(
        repositories.inbounds,
        "inbound",
        data.tag,
        exclude_id=inbound.id if inbound is not None else None,
    )
    tls = None
    if data.tls_id is not None:
        tls = require(repositories.tls.get(data.tls_id), "tls", data.tls_id)

    if inbound is None:
        inbound = Inbound(type=data.type, tag=data.tag, options=data.options)
    else:
        inbound.type = data.type
        inbound.tag = data.tag
        inbound.options = data.options
    inbound.tls_id = data.tls_id
    inbound.addrs = [dict(addr) for addr in data.addrs]
    inbound.out_json = build_out_json(inbound, tls, context.hostname)
    repositories.inbounds.add(inbound)

    if editing:
        resync_linked_clients(repositories, inbound, previous_tag=previous_tag)
    elif context.init_users:
        _link_initial_users(context, inbound)

    core = context.core
    if core.is_running():
        patch_core(
            core.add_inbound,
            core.remove_inbound,
            inbound_core_config(repositories, inbound),
            previous_tag=previous_tag,
        )
    return inbound


def _delete(context: MutationContext, payload: object) -> None:
    repositories = context.repositories
    inbound = resolve_target(repositories.inbounds, "inbound", payload)
    inbound_id = persisted_id(inbound, "inbound")
    # memberships have no foreign key; sweep them explicitly
    for client in repositories.clients.linked_to(inbound_id):
        client.remove_inbound(inbound_id)
        client.links = drop_for_inbound(client, inbound.tag)
        repositories.clients.add(client)
    if context.core.is_running():
        remove_from_core(context.core.remove_inbound, inbound.tag)
    repositories.inbounds.delete(inbound)


def save_inbounds(context: MutationContext, action: Action, payload: object) -> MutationOutcome:
    match action:
        case Action.NEW | Action.EDIT:
            data = parse_payload(InboundPayload, payload)
            _upsert(context, data, editing=action is Action.EDIT)
        case Action.DELETE:
            _delete(context, payload)
        case _:
            raise unsupported(ObjectClass.INBOUNDS, action)
    return MutationOutcome(objects=_OBJECTS)
