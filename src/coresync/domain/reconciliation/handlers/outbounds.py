"""Outbound saves."""

from __future__ import annotations

from typing import TYPE_CHECKING

from coresync.domain.model import Action, ObjectClass, Outbound
from coresync.domain.payloads import OutboundPayload, parse_payload
from coresync.domain.reconciliation.context import MutationOutcome
from coresync.domain.reconciliation.handlers.common import (
    patch_core,
    remove_from_core,
    require,
    require_id,
    resolve_target,
    unsupported,
)
from coresync.domain.validation import ensure_unique_tag

if TYPE_CHECKING:
    from coresync.domain.reconciliation.context import MutationContext


def _upsert(context: MutationContext, data: OutboundPayload, *, editing: bool) -> Outbound:
    repositories = context.repositories
    outbound: Outbound | None = None
    previous_tag: str | None = None
    if editing:
        outbound_id = require_id(data.id, "outbound")
        outbound = require(repositories.outbounds.get(outbound_id), "outbound", outbound_id)
        previous_tag = outbound.tag
    ensure_unique_tag(
        repositories.outbounds,
        "outbound",
        data.tag,
        exclude_id=outbound.id if outbound is not None else None,
    )
    if outbound is None:
        outbound = Outbound(type=data.type, tag=data.tag, options=data.options)
    else:
        outbound.type = data.type
        outbound.tag = data.tag
        outbound.options = data.options
    repositories.outbounds.add(outbound)

    core = context.core
    if core.is_running():
        patch_core(
            core.add_outbound,
            core.remove_outbound,
            outbound.core_config(),
            previous_tag=previous_tag,
        )
    return outbound


def save_outbounds(context: MutationContext, action: Action, payload: object) -> MutationOutcome:
    match action:
        case Action.NEW | Action.EDIT:
            _upsert(context, parse_payload(OutboundPayload, payload), editing=action is Action.EDIT)
        case Action.DELETE:
            outbound = resolve_target(context.repositories.outbounds, "outbound", payload)
            if context.core.is_running():
                remove_from_core(context.core.remove_outbound, outbound.tag)
            context.repositories.outbounds.delete(outbound)
        case _:
            raise unsupported(ObjectClass.OUTBOUNDS, action)
    return MutationOutcome(objects=(ObjectClass.OUTBOUNDS,))
