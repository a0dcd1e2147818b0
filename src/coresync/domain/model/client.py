"""Clients and their inbound memberships."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar

from coresync.domain.model.base import Entity
from coresync.domain.model.enums import ObjectClass

if TYPE_CHECKING:
    from collections.abc import Iterable

    from coresync.domain.model.base import Document


@dataclass(eq=False, kw_only=True)
class ClientInbound:
    """Association row linking a client to one inbound."""

    inbound_id: int
    client_id: int | None = None


@dataclass(eq=False, kw_only=True)
class Client(Entity):
    """An authenticated user of one or more inbounds.

    ``config`` maps a protocol name to the credential object injected into an
    inbound's ``users`` list. ``links`` holds share-link descriptors of the
    shape ``{"type", "remark", "uri"}``; descriptors with type ``local`` are
    owned by the link synchronizer, anything else is user-managed.
    """

    OBJECT_CLASS: ClassVar[ObjectClass] = ObjectClass.CLIENTS

    name: str
    enable: bool = True
    group: str = ""
    desc: str = ""
    config: dict[str, Document] = field(default_factory=dict)
    links: list[dict[str, str]] = field(default_factory=list)

    # usage accounting (bytes) and limits; zero means unlimited
    up: int = 0
    down: int = 0
    volume: int = 0
    expiry: int = 0

    _inbound_links: list[ClientInbound] = field(default_factory=list["ClientInbound"], repr=False)

    @property
    def inbounds(self) -> tuple[int, ...]:
        return tuple(sorted(link.inbound_id for link in self._inbound_links))

    def set_inbounds(self, inbound_ids: Iterable[int]) -> None:
        """Replace the membership set, keeping rows that survive unchanged."""

        wanted = set(inbound_ids)
        self._inbound_links[:] = [
            link for link in self._inbound_links if link.inbound_id in wanted
        ]
        present = {link.inbound_id for link in self._inbound_links}
        for inbound_id in sorted(wanted - present):
            self._inbound_links.append(ClientInbound(inbound_id=inbound_id))

    def add_inbound(self, inbound_id: int) -> None:
        self.set_inbounds((*self.inbounds, inbound_id))

    def remove_inbound(self, inbound_id: int) -> None:
        self.set_inbounds(i for i in self.inbounds if i != inbound_id)

    def is_depleted(self, now: int) -> bool:
        """Return whether the client exceeded its volume or passed its expiry."""

        over_volume = self.volume > 0 and self.up + self.down > self.volume
        expired = 0 < self.expiry < now
        return over_volume or expired
