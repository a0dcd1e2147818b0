"""Derived views of an inbound: the client-side out-json and the core config with users."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Final

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from coresync.domain.model import Client, Document, Inbound, Tls
    from coresync.domain.ports import CoreSyncRepositories

# inbound types that authenticate users and therefore get users and share links
USER_INBOUND_TYPES: Final = frozenset(
    {
        "mixed",
        "socks",
        "http",
        "shadowsocks",
        "vmess",
        "trojan",
        "naive",
        "hysteria",
        "shadowtls",
        "tuic",
        "hysteria2",
        "vless",
    }
)

WILDCARD_LISTEN: Final = frozenset({"", "::", "[::]", "0.0.0.0"})  # noqa: S104
SHADOWSOCKS_16_BYTE_METHOD: Final = "2022-blake3-aes-128-gcm"
VISION_FLOW: Final = "xtls-rprx-vision"
SHADOWTLS_USERS_SINCE: Final = 3

_OUT_TYPE: Final[Mapping[str, str]] = {"mixed": "socks"}
_TRANSPORT_TYPES: Final = frozenset({"vless", "vmess", "trojan"})


def _server_tls(inbound: Inbound, tls: Tls | None) -> Mapping[str, Any]:
    if tls is not None:
        return tls.server
    inline = inbound.options.get("tls")
    return inline if isinstance(inline, dict) else {}


def has_tls(inbound: Inbound, tls: Tls | None) -> bool:
    return bool(_server_tls(inbound, tls).get("enabled"))


def _client_tls(inbound: Inbound, tls: Tls | None) -> Document | None:
    server = _server_tls(inbound, tls)
    if not server.get("enabled"):
        return None
    view: Document = {"enabled": True}
    if server.get("server_name"):
        view["server_name"] = server["server_name"]
    if server.get("alpn"):
        view["alpn"] = server["alpn"]
    if tls is not None:
        view.update({key: value for key, value in tls.client.items() if value not in (None, "")})
    return view


def build_out_json(inbound: Inbound, tls: Tls | None, hostname: str) -> Document:
    """Project an inbound onto the outbound a client would use to reach it."""

    if inbound.type not in USER_INBOUND_TYPES:
        return {}
    options = inbound.options
    listen = str(options.get("listen") or "")
    out: Document = {
        "type": _OUT_TYPE.get(inbound.type, inbound.type),
        "tag": inbound.tag,
        "server": hostname if listen in WILDCARD_LISTEN else listen,
        "server_port": int(options.get("listen_port") or 0),
    }
    tls_view = _client_tls(inbound, tls)
    if tls_view is not None:
        out["tls"] = tls_view

    match inbound.type:
        case "shadowsocks":
            method = str(options.get("method") or "")
            out["method"] = method
            if method.startswith("2022-") and options.get("password"):
                out["password"] = options["password"]
        case "hysteria" | "hysteria2":
            # server-side limits are the client's opposite direction
            if options.get("down_mbps"):
                out["up_mbps"] = options["down_mbps"]
            if options.get("up_mbps"):
                out["down_mbps"] = options["up_mbps"]
            if options.get("obfs"):
                out["obfs"] = options["obfs"]
        case "tuic":
            if options.get("congestion_control"):
                out["congestion_control"] = options["congestion_control"]
        case "shadowtls":
            out["version"] = int(options.get("version") or 1)
        case _:
            pass
    if inbound.type in _TRANSPORT_TYPES and isinstance(options.get("transport"), dict):
        out["transport"] = dict(options["transport"])
    return out


def credential_key(inbound: Inbound) -> str:
    """Name of the client credential entry used for this inbound."""

    if (
        inbound.type == "shadowsocks"
        and inbound.options.get("method") == SHADOWSOCKS_16_BYTE_METHOD
    ):
        return "shadowsocks16"
    return inbound.type


def inbound_users(
    inbound: Inbound,
    tls: Tls | None,
    clients: Iterable[Client],
) -> list[Document] | None:
    """Users list for the core config, or ``None`` when the inbound takes no users."""

    if inbound.type not in USER_INBOUND_TYPES:
        return None
    version = int(inbound.options.get("version") or 1)
    if inbound.type == "shadowtls" and version < SHADOWTLS_USERS_SINCE:
        return None
    key = credential_key(inbound)
    strip_vision = inbound.type == "vless" and not has_tls(inbound, tls)
    users: list[Document] = []
    for client in clients:
        credential = client.config.get(key)
        if not credential:
            continue
        user = dict(credential)
        if strip_vision and user.get("flow") == VISION_FLOW:
            user.pop("flow")
        users.append(user)
    return users


def inbound_core_config(repositories: CoreSyncRepositories, inbound: Inbound) -> Document:
    """Serialize an inbound for the live core, with TLS merged and users injected."""

    tls = repositories.tls.get(inbound.tls_id) if inbound.tls_id is not None else None
    clients = (
        repositories.clients.linked_to(inbound.id, enabled_only=True)
        if inbound.id is not None
        else ()
    )
    return inbound.core_config_with(tls=tls, users=inbound_users(inbound, tls, clients))
