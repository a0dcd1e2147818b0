"""Share-link URI builders, one per protocol.

Each builder takes the client's credential entry for the protocol, the
inbound's out-json, and the advertised (server, port, remark) and returns the
URI, or ``None`` when the credential lacks what the scheme needs.
"""

from __future__ import annotations

import base64
import json
from typing import TYPE_CHECKING, Any, Final, Protocol
from urllib.parse import quote, urlencode

if TYPE_CHECKING:
    from collections.abc import Mapping

    from coresync.domain.model import Document


class UriBuilder(Protocol):
    def __call__(
        self,
        credential: Mapping[str, Any],
        out: Mapping[str, Any],
        server: str,
        port: int,
        remark: str,
    ) -> str | None: ...


def _host(server: str) -> str:
    return f"[{server}]" if ":" in server and not server.startswith("[") else server


def _authority(server: str, port: int) -> str:
    return f"{_host(server)}:{port}"


def _b64(text: str, *, urlsafe: bool = False) -> str:
    if urlsafe:
        return base64.urlsafe_b64encode(text.encode()).decode().rstrip("=")
    return base64.b64encode(text.encode()).decode()


def _section(document: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = document.get(key)
    return value if isinstance(value, dict) else {}


def _tls(out: Mapping[str, Any]) -> Mapping[str, Any]:
    tls = _section(out, "tls")
    return tls if tls.get("enabled") else {}


def _alpn(tls: Mapping[str, Any]) -> str | None:
    alpn = tls.get("alpn")
    if isinstance(alpn, list):
        return ",".join(str(item) for item in alpn) or None
    return str(alpn) if alpn else None


def _query(params: Mapping[str, object]) -> str:
    filtered = {key: str(value) for key, value in params.items() if value not in (None, "")}
    return f"?{urlencode(filtered, quote_via=quote)}" if filtered else ""


def _fragment(remark: str) -> str:
    return f"#{quote(remark)}" if remark else ""


def _stream_params(out: Mapping[str, Any]) -> dict[str, object]:
    """Transport and TLS query parameters shared by vless and trojan."""

    tls = _tls(out)
    transport = _section(out, "transport")
    reality = _section(tls, "reality")
    utls = _section(tls, "utls")

    security = "none"
    if tls:
        security = "reality" if reality.get("enabled") else "tls"
    host = transport.get("host")
    if isinstance(host, list):
        host = ",".join(str(item) for item in host)
    headers = transport.get("headers")
    if not host and isinstance(headers, dict):
        host = headers.get("Host")
    return {
        "type": transport.get("type") or "tcp",
        "security": security,
        "sni": tls.get("server_name"),
        "alpn": _alpn(tls),
        "fp": utls.get("fingerprint") if utls.get("enabled") else None,
        "pbk": reality.get("public_key"),
        "sid": reality.get("short_id"),
        "allowInsecure": 1 if tls.get("insecure") else None,
        "path": transport.get("path"),
        "host": host,
        "serviceName": transport.get("service_name"),
    }


def vless_uri(
    credential: Mapping[str, Any],
    out: Mapping[str, Any],
    server: str,
    port: int,
    remark: str,
) -> str | None:
    uuid = credential.get("uuid")
    if not uuid:
        return None
    params = _stream_params(out)
    params["flow"] = credential.get("flow") if _tls(out) else None
    params["encryption"] = "none"
    return f"vless://{uuid}@{_authority(server, port)}{_query(params)}{_fragment(remark)}"


def trojan_uri(
    credential: Mapping[str, Any],
    out: Mapping[str, Any],
    server: str,
    port: int,
    remark: str,
) -> str | None:
    password = credential.get("password")
    if not password:
        return None
    userinfo = quote(str(password), safe="")
    return (
        f"trojan://{userinfo}@{_authority(server, port)}"
        f"{_query(_stream_params(out))}{_fragment(remark)}"
    )


def vmess_uri(
    credential: Mapping[str, Any],
    out: Mapping[str, Any],
    server: str,
    port: int,
    remark: str,
) -> str | None:
    uuid = credential.get("uuid")
    if not uuid:
        return None
    stream = _stream_params(out)
    document: Document = {
        "v": "2",
        "ps": remark,
        "add": server,
        "port": port,
        "id": uuid,
        "aid": credential.get("alterId", 0),
        "scy": "auto",
        "net": stream["type"],
        "type": "none",
        "host": stream["host"] or "",
        "path": stream["path"] or "",
        "tls": "tls" if stream["security"] != "none" else "",
        "sni": stream["sni"] or "",
        "alpn": stream["alpn"] or "",
        "fp": stream["fp"] or "",
    }
    return "vmess://" + _b64(json.dumps(document, separators=(",", ":")))


def shadowsocks_uri(
    credential: Mapping[str, Any],
    out: Mapping[str, Any],
    server: str,
    port: int,
    remark: str,
) -> str | None:
    password = credential.get("password")
    method = out.get("method")
    if not password or not method:
        return None
    if str(method).startswith("2022-") and out.get("password"):
        password = f"{out['password']}:{password}"
    userinfo = _b64(f"{method}:{password}", urlsafe=True)
    return f"ss://{userinfo}@{_authority(server, port)}{_fragment(remark)}"


def hysteria2_uri(
    credential: Mapping[str, Any],
    out: Mapping[str, Any],
    server: str,
    port: int,
    remark: str,
) -> str | None:
    password = credential.get("password")
    if not password:
        return None
    tls = _tls(out)
    obfs = _section(out, "obfs")
    params = {
        "sni": tls.get("server_name"),
        "alpn": _alpn(tls),
        "insecure": 1 if tls.get("insecure") else None,
        "obfs": obfs.get("type"),
        "obfs-password": obfs.get("password"),
        "upmbps": out.get("up_mbps"),
        "downmbps": out.get("down_mbps"),
    }
    userinfo = quote(str(password), safe="")
    return f"hysteria2://{userinfo}@{_authority(server, port)}{_query(params)}{_fragment(remark)}"


def hysteria_uri(
    credential: Mapping[str, Any],
    out: Mapping[str, Any],
    server: str,
    port: int,
    remark: str,
) -> str | None:
    auth = credential.get("auth_str")
    if not auth:
        return None
    tls = _tls(out)
    params = {
        "protocol": "udp",
        "auth": auth,
        "peer": tls.get("server_name"),
        "insecure": 1 if tls.get("insecure") else None,
        "upmbps": out.get("up_mbps"),
        "downmbps": out.get("down_mbps"),
        "alpn": _alpn(tls),
        "obfsParam": out.get("obfs"),
    }
    return f"hysteria://{_authority(server, port)}{_query(params)}{_fragment(remark)}"


def tuic_uri(
    credential: Mapping[str, Any],
    out: Mapping[str, Any],
    server: str,
    port: int,
    remark: str,
) -> str | None:
    uuid = credential.get("uuid")
    password = credential.get("password")
    if not uuid or not password:
        return None
    tls = _tls(out)
    params = {
        "congestion_control": out.get("congestion_control"),
        "sni": tls.get("server_name"),
        "alpn": _alpn(tls),
        "allow_insecure": 1 if tls.get("insecure") else None,
    }
    userinfo = f"{uuid}:{quote(str(password), safe='')}"
    return f"tuic://{userinfo}@{_authority(server, port)}{_query(params)}{_fragment(remark)}"


def _userinfo(credential: Mapping[str, Any]) -> str | None:
    username = credential.get("username")
    password = credential.get("password")
    if not username or not password:
        return None
    return f"{quote(str(username), safe='')}:{quote(str(password), safe='')}"


def socks_uri(
    credential: Mapping[str, Any],
    out: Mapping[str, Any],
    server: str,
    port: int,
    remark: str,
) -> str | None:
    userinfo = _userinfo(credential)
    if userinfo is None:
        return None
    return f"socks5://{userinfo}@{_authority(server, port)}{_fragment(remark)}"


def http_uri(
    credential: Mapping[str, Any],
    out: Mapping[str, Any],
    server: str,
    port: int,
    remark: str,
) -> str | None:
    userinfo = _userinfo(credential)
    if userinfo is None:
        return None
    scheme = "https" if _tls(out) else "http"
    return f"{scheme}://{userinfo}@{_authority(server, port)}{_fragment(remark)}"


def naive_uri(
    credential: Mapping[str, Any],
    out: Mapping[str, Any],
    server: str,
    port: int,
    remark: str,
) -> str | None:
    userinfo = _userinfo(credential)
    if userinfo is None:
        return None
    return f"naive+https://{userinfo}@{_authority(server, port)}{_fragment(remark)}"


BUILDERS: Final[Mapping[str, UriBuilder]] = {
    "vless": vless_uri,
    "trojan": trojan_uri,
    "vmess": vmess_uri,
    "shadowsocks": shadowsocks_uri,
    "hysteria2": hysteria2_uri,
    "hysteria": hysteria_uri,
    "tuic": tuic_uri,
    "socks": socks_uri,
    "mixed": socks_uri,
    "http": http_uri,
    "naive": naive_uri,
}
