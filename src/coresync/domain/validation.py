"""Validation and conflict checks run before any store write."""

from __future__ import annotations

import ipaddress
import logging
from typing import TYPE_CHECKING, Any, Final

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from coresync.domain.errors import ConflictError, ValidationError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from coresync.domain.model import Endpoint
    from coresync.domain.ports import TaggedRepository

log = logging.getLogger(__name__)

PEER_ENDPOINT_TYPES: Final = frozenset({"wireguard", "warp"})
# every provisioned warp peer routes all traffic
WARP_ALLOWED_IPS: Final = ("0.0.0.0/0", "::/0")

type AddressRange = ipaddress.IPv4Network | ipaddress.IPv6Network


class WireGuardPeer(BaseModel):
    model_config = ConfigDict(extra="allow")

    public_key: str = Field(min_length=1)
    address: str = Field(min_length=1)
    port: int = Field(gt=0, le=65535)
    allowed_ips: list[str] = Field(min_length=1)
    persistent_keepalive_interval: int | None = None
    persistent_keepalive: int | None = None


def ensure_unique_tag(
    repository: TaggedRepository[Any],
    label: str,
    tag: str,
    *,
    exclude_id: int | None = None,
) -> None:
    if repository.tag_taken(tag, exclude_id=exclude_id):
        raise ConflictError(f"{label} tag {tag!r} already exists")


def validate_peers(endpoint_tag: str, options: Mapping[str, Any]) -> list[WireGuardPeer]:
    """Check the peer list of a tunnel-peer endpoint."""

    raw_peers = options.get("peers")
    if not isinstance(raw_peers, list) or not raw_peers:
        raise ValidationError(f"endpoint {endpoint_tag!r} must declare at least one peer")
    peers: list[WireGuardPeer] = []
    for index, raw in enumerate(raw_peers):
        try:
            peer = WireGuardPeer.model_validate(raw)
        except PydanticValidationError as exc:
            fields = ", ".join(
                ".".join(str(part) for part in error["loc"]) or "<peer>" for error in exc.errors()
            )
            raise ValidationError(
                f"endpoint {endpoint_tag!r} peer {index} is invalid: {fields}"
            ) from exc
        if peer.persistent_keepalive is None and peer.persistent_keepalive_interval is None:
            log.warning(
                "Endpoint %s peer %d has no persistent keepalive configured", endpoint_tag, index
            )
        peers.append(peer)
    return peers


def _parse_range(value: object, endpoint_tag: str) -> AddressRange:
    if not isinstance(value, str):
        raise ValidationError(f"endpoint {endpoint_tag!r} has a non-string address range")
    try:
        return ipaddress.ip_network(value.strip(), strict=False)
    except ValueError as exc:
        raise ValidationError(
            f"endpoint {endpoint_tag!r} has an invalid address range {value!r}"
        ) from exc


def address_ranges(endpoint_tag: str, options: Mapping[str, Any]) -> list[AddressRange]:
    """Every range advertised by an endpoint's peers."""

    ranges: list[AddressRange] = []
    peers = options.get("peers")
    if not isinstance(peers, list):
        return ranges
    for peer in peers:
        if not isinstance(peer, dict):
            continue
        allowed = peer.get("allowed_ips") or []
        if isinstance(allowed, list):
            ranges.extend(_parse_range(item, endpoint_tag) for item in allowed)
    return ranges


def _overlaps(left: AddressRange, right: AddressRange) -> bool:
    if left.version != right.version:
        return False
    return left.overlaps(right)  # pyright: ignore[reportArgumentType]


def ensure_disjoint_ranges(candidate: Endpoint, others: Iterable[Endpoint]) -> None:
    """Reject the candidate if any of its ranges intersects another peer endpoint's."""

    mine = address_ranges(candidate.tag, candidate.options)
    if not mine:
        return
    for other in others:
        if candidate.id is not None and other.id == candidate.id:
            continue
        try:
            theirs = address_ranges(other.tag, other.options)
        except ValidationError:
            log.warning("Skipping endpoint %s with unparsable address ranges", other.tag)
            continue
        for left in mine:
            for right in theirs:
                if _overlaps(left, right):
                    raise ConflictError(
                        f"address range {left} of endpoint {candidate.tag!r} "
                        f"overlaps {right} of endpoint {other.tag!r}"
                    )
