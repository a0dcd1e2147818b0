"""Keeps a client's "local" link descriptors in step with its inbounds."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from coresync.domain.links.uris import BUILDERS
from coresync.domain.model import LinkOrigin
from coresync.domain.projection import credential_key

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from coresync.domain.model import Client, Inbound

log = logging.getLogger(__name__)

type Descriptor = dict[str, str]


def is_local(descriptor: Mapping[str, str]) -> bool:
    return descriptor.get("type") == LinkOrigin.LOCAL


def _targets(inbound: Inbound) -> list[tuple[str, int, str]]:
    """Advertised (server, port, remark) triples; ``addrs`` replaces the default one."""

    server = str(inbound.out_json.get("server") or "")
    port = int(inbound.out_json.get("server_port") or 0)
    if not inbound.addrs:
        return [(server, port, inbound.tag)]
    targets: list[tuple[str, int, str]] = []
    for addr in inbound.addrs:
        targets.append(
            (
                str(addr.get("server") or server),
                int(addr.get("server_port") or port),
                f"{inbound.tag}{addr.get('remark') or ''}",
            )
        )
    return targets


def local_descriptors(client: Client, inbound: Inbound) -> list[Descriptor]:
    builder = BUILDERS.get(inbound.type)
    if builder is None or not inbound.out_json:
        return []
    credential = client.config.get(credential_key(inbound))
    if not credential:
        return []
    descriptors: list[Descriptor] = []
    for server, port, remark in _targets(inbound):
        uri = builder(credential, inbound.out_json, server, port, remark)
        if uri is None:
            log.debug("No %s link for client %s on %s", inbound.type, client.name, inbound.tag)
            continue
        descriptors.append({"type": LinkOrigin.LOCAL.value, "remark": inbound.tag, "uri": uri})
    return descriptors


def regenerate(client: Client, inbounds: Iterable[Inbound]) -> list[Descriptor]:
    """Fresh local descriptors in inbound order, then every non-local one as it was.

    New-before-preserved is intentional: callers may rely on the ordinal position
    of generated links.
    """

    generated = [
        descriptor for inbound in inbounds for descriptor in local_descriptors(client, inbound)
    ]
    preserved = [dict(descriptor) for descriptor in client.links if not is_local(descriptor)]
    return generated + preserved


def replace_for_inbound(
    client: Client,
    inbound: Inbound,
    *,
    previous_tag: str | None = None,
) -> list[Descriptor]:
    """Regenerate only the descriptors of one inbound, placing them first."""

    stale = {inbound.tag, previous_tag or inbound.tag}
    kept = [
        dict(descriptor)
        for descriptor in client.links
        if not (is_local(descriptor) and descriptor.get("remark") in stale)
    ]
    return local_descriptors(client, inbound) + kept


def drop_for_inbound(client: Client, tag: str) -> list[Descriptor]:
    return [
        dict(descriptor)
        for descriptor in client.links
        if not (is_local(descriptor) and descriptor.get("remark") == tag)
    ]
