"""TLS profile saves; edits cascade into the inbounds that use the profile."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from coresync.domain.errors import ConflictError, ValidationError
from coresync.domain.model import Action, ObjectClass, Tls
from coresync.domain.payloads import TlsPayload, parse_payload, parse_target
from coresync.domain.projection import build_out_json
from coresync.domain.reconciliation.context import MutationOutcome
from coresync.domain.reconciliation.handlers.common import (
    persisted_id,
    require,
    require_id,
    resync_linked_clients,
    unsupported,
)

if TYPE_CHECKING:
    from coresync.domain.reconciliation.context import MutationContext

log = logging.getLogger(__name__)

_OBJECTS = (ObjectClass.TLS, ObjectClass.CLIENTS, ObjectClass.INBOUNDS)


def _refresh_inbounds(context: MutationContext, tls: Tls) -> set[int]:
    """Regenerate out-json and client descriptors of every inbound using ``tls``."""

    repositories = context.repositories
    inbound_ids = set(repositories.inbounds.ids_with_tls(persisted_id(tls, "tls")))
    for inbound in repositories.inbounds.get_many(inbound_ids):
        inbound.out_json = build_out_json(inbound, tls, context.hostname)
        repositories.inbounds.add(inbound)
        resync_linked_clients(repositories, inbound)
    if inbound_ids:
        log.info("TLS profile %s is used by inbounds %s", tls.name, sorted(inbound_ids))
    return inbound_ids


def save_tls(context: MutationContext, action: Action, payload: object) -> MutationOutcome:
    repositories = context.repositories
    restart: set[int] = set()
    match action:
        case Action.NEW | Action.EDIT:
            data = parse_payload(TlsPayload, payload)
            tls: Tls | None = None
            if action is Action.EDIT:
                tls_id = require_id(data.id, "tls")
                tls = require(repositories.tls.get(tls_id), "tls", tls_id)
            if repositories.tls.name_taken(data.name, exclude_id=tls.id if tls else None):
                raise ConflictError(f"tls name {data.name!r} already exists")
            if tls is None:
                tls = Tls(name=data.name)
            tls.name = data.name
            tls.server = dict(data.server)
            tls.client = dict(data.client)
            repositories.tls.add(tls)
            if action is Action.EDIT:
                restart = _refresh_inbounds(context, tls)
        case Action.DELETE:
            target = parse_target(payload)
            if not isinstance(target, int):
                raise ValidationError("tls delete expects a tls id")
            tls = require(repositories.tls.get(target), "tls", target)
            in_use = repositories.inbounds.ids_with_tls(target)
            if in_use:
                raise ValidationError(f"tls {tls.name!r} is used by inbounds {sorted(in_use)}")
            repositories.tls.delete(tls)
        case _:
            raise unsupported(ObjectClass.TLS, action)
    return MutationOutcome(objects=_OBJECTS, restart_inbounds=restart)
