"""Records that map one-to-one onto entries in the live core configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar, Final

from coresync.domain.model.base import Entity, TaggedEntity
from coresync.domain.model.enums import ObjectClass

# placeholder returned in list views instead of provisioning secrets
REDACTED: Final = "******"
SECRET_EXT_KEYS: Final = frozenset({"access_token", "private_key"})

if TYPE_CHECKING:
    from coresync.domain.model.base import Document


@dataclass(eq=False, kw_only=True)
class Tls(Entity):
    """Reusable TLS profile referenced by inbounds.

    ``server`` is merged into an inbound's core config; ``client`` feeds the
    outbound-side projection used for share links.
    """

    OBJECT_CLASS: ClassVar[ObjectClass] = ObjectClass.TLS

    name: str
    server: Document = field(default_factory=dict)
    client: Document = field(default_factory=dict)


@dataclass(eq=False, kw_only=True)
class Inbound(TaggedEntity):
    OBJECT_CLASS: ClassVar[ObjectClass] = ObjectClass.INBOUNDS

    tls_id: int | None = None
    # alternate (server, port, remark) tuples advertised in share links
    addrs: list[Document] = field(default_factory=list)
    out_json: Document = field(default_factory=dict)

    def core_config_with(
        self,
        *,
        tls: Tls | None = None,
        users: list[Document] | None = None,
    ) -> Document:
        combined = self.core_config()
        if tls is not None and tls.server:
            combined["tls"] = dict(tls.server)
        if users is not None:
            combined["users"] = users
        return combined


@dataclass(eq=False, kw_only=True)
class Outbound(TaggedEntity):
    OBJECT_CLASS: ClassVar[ObjectClass] = ObjectClass.OUTBOUNDS


@dataclass(eq=False, kw_only=True)
class Endpoint(TaggedEntity):
    """Tunnel endpoint (wireguard or provisioned warp).

    ``ext`` carries provisioning state (device id, access token, license) and is
    never part of the core config.
    """

    OBJECT_CLASS: ClassVar[ObjectClass] = ObjectClass.ENDPOINTS

    ext: Document = field(default_factory=dict)

    def core_type(self) -> str:
        # the core only knows wireguard; warp is a provisioned wireguard peer
        return "wireguard" if self.type == "warp" else self.type
