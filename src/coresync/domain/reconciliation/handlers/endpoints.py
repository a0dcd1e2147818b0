"""Endpoint saves: peer validation, range conflicts, and warp provisioning."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from coresync.domain.errors import ProvisioningError
from coresync.domain.model import REDACTED, Action, Endpoint, ObjectClass
from coresync.domain.payloads import EndpointPayload, parse_payload
from coresync.domain.reconciliation.context import MutationOutcome
from coresync.domain.reconciliation.handlers.common import (
    patch_core,
    remove_from_core,
    require,
    require_id,
    resolve_target,
    unsupported,
)
from coresync.domain.validation import (
    PEER_ENDPOINT_TYPES,
    WARP_ALLOWED_IPS,
    ensure_disjoint_ranges,
    ensure_unique_tag,
    validate_peers,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from coresync.domain.ports import PeerProvisioner
    from coresync.domain.reconciliation.context import MutationContext

log = logging.getLogger(__name__)

WARP_TYPE = "warp"


def _merge_ext(current: Mapping[str, Any], submitted: Mapping[str, Any] | None) -> dict[str, Any]:
    """Overlay submitted ext values, ignoring redacted placeholders echoed back by clients."""

    merged = dict(current)
    for key, value in (submitted or {}).items():
        if value == REDACTED:
            continue
        merged[key] = value
    return merged


def _provisioner(context: MutationContext) -> PeerProvisioner:
    if context.provisioner is None:
        raise ProvisioningError("no peer provisioner is configured for warp endpoints")
    return context.provisioner


def _register(
    context: MutationContext,
    options: dict[str, Any],
    ext: dict[str, Any],
) -> tuple[dict[str, Any], dict[str, Any]]:
    peer = _provisioner(context).register()
    log.info("Registered new warp device %s", peer.ext.get("device_id"))
    return {**options, **peer.options}, {**ext, **peer.ext}


def _ensure_warp_route_free(
    context: MutationContext,
    tag: str,
    existing: Endpoint | None,
) -> None:
    # registration is remote and not rolled back, so check the routes it will claim first
    placeholder = Endpoint(
        id=existing.id if existing is not None else None,
        type=WARP_TYPE,
        tag=tag,
        options={"peers": [{"allowed_ips": list(WARP_ALLOWED_IPS)}]},
    )
    ensure_disjoint_ranges(
        placeholder, context.repositories.endpoints.list_of_types(PEER_ENDPOINT_TYPES)
    )


def _upsert(context: MutationContext, data: EndpointPayload, *, editing: bool) -> Endpoint:
    repositories = context.repositories
    existing: Endpoint | None = None
    previous_tag: str | None = None
    if editing:
        endpoint_id = require_id(data.id, "endpoint")
        existing = require(repositories.endpoints.get(endpoint_id), "endpoint", endpoint_id)
        previous_tag = existing.tag
    ensure_unique_tag(
        repositories.endpoints,
        "endpoint",
        data.tag,
        exclude_id=existing.id if existing is not None else None,
    )

    options = data.options
    ext = _merge_ext(existing.ext if existing is not None else {}, data.ext)
    licensed: Endpoint | None = None
    if data.type == WARP_TYPE:
        if existing is not None and existing.type == WARP_TYPE and ext.get("device_id"):
            licensed = existing
        else:
            _ensure_warp_route_free(context, data.tag, existing)
            options, ext = _register(context, options, ext)
    previous_license = licensed.ext.get("license_key") if licensed is not None else None

    endpoint = existing or Endpoint(type=data.type, tag=data.tag, options=options)
    endpoint.type = data.type
    endpoint.tag = data.tag
    endpoint.options = options
    endpoint.ext = ext
    if endpoint.type in PEER_ENDPOINT_TYPES:
        validate_peers(endpoint.tag, endpoint.options)
        ensure_disjoint_ranges(endpoint, repositories.endpoints.list_of_types(PEER_ENDPOINT_TYPES))
    if licensed is not None:
        _provisioner(context).update_license(previous_license, ext)
    repositories.endpoints.add(endpoint)

    core = context.core
    if core.is_running():
        patch_core(
            core.add_endpoint,
            core.remove_endpoint,
            endpoint.core_config(),
            previous_tag=previous_tag,
        )
    return endpoint


def save_endpoints(context: MutationContext, action: Action, payload: object) -> MutationOutcome:
    match action:
        case Action.NEW | Action.EDIT:
            _upsert(context, parse_payload(EndpointPayload, payload), editing=action is Action.EDIT)
        case Action.DELETE:
            endpoint = resolve_target(context.repositories.endpoints, "endpoint", payload)
            if context.core.is_running():
                remove_from_core(context.core.remove_endpoint, endpoint.tag)
            context.repositories.endpoints.delete(endpoint)
        case _:
            raise unsupported(ObjectClass.ENDPOINTS, action)
    return MutationOutcome(objects=(ObjectClass.ENDPOINTS,))
