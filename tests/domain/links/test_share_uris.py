from __future__ import annotations

import base64
import json
from urllib.parse import parse_qs, urlsplit

from coresync.domain.links.uris import (
    BUILDERS,
    hysteria2_uri,
    shadowsocks_uri,
    socks_uri,
    tuic_uri,
    vless_uri,
    vmess_uri,
)

REALITY_OUT = {
    "type": "vless",
    "tag": "reality",
    "server": "edge.example.net",
    "server_port": 443,
    "tls": {
        "enabled": True,
        "server_name": "www.example.com",
        "utls": {"enabled": True, "fingerprint": "chrome"},
        "reality": {"enabled": True, "public_key": "PUBKEY", "short_id": "ab12"},
    },
    "transport": {"type": "grpc", "service_name": "svc"},
}


def _b64decode(value: str) -> str:
    padded = value + "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(padded).decode()


def test_vless_reality_link_carries_stream_parameters() -> None:
    uri = vless_uri(
        {"uuid": "u-1", "flow": "xtls-rprx-vision"},
        REALITY_OUT,
        "edge.example.net",
        443,
        "reality",
    )

    assert uri is not None
    parts = urlsplit(uri)
    assert parts.scheme == "vless"
    assert parts.netloc == "u-1@edge.example.net:443"
    assert parts.fragment == "reality"
    query = {key: values[0] for key, values in parse_qs(parts.query).items()}
    assert query == {
        "type": "grpc",
        "security": "reality",
        "sni": "www.example.com",
        "fp": "chrome",
        "pbk": "PUBKEY",
        "sid": "ab12",
        "serviceName": "svc",
        "flow": "xtls-rprx-vision",
        "encryption": "none",
    }


def test_ipv6_servers_are_bracketed() -> None:
    uri = socks_uri({"username": "u", "password": "p"}, {}, "2001:db8::1", 1080, "")

    assert uri == "socks5://u:p@[2001:db8::1]:1080"


def test_vmess_link_is_base64_json() -> None:
    uri = vmess_uri({"uuid": "u-2"}, {"transport": {"type": "ws", "path": "/ws"}}, "h", 80, "r")

    assert uri is not None
    document = json.loads(base64.b64decode(uri.removeprefix("vmess://")))
    assert document["id"] == "u-2"
    assert document["net"] == "ws"
    assert document["path"] == "/ws"
    assert document["tls"] == ""
    assert document["ps"] == "r"


def test_shadowsocks_2022_link_joins_server_and_user_keys() -> None:
    out = {"method": "2022-blake3-aes-128-gcm", "password": "SERVERKEY"}

    uri = shadowsocks_uri({"password": "USERKEY"}, out, "h", 8388, "ss")

    assert uri is not None
    userinfo = uri.removeprefix("ss://").split("@", 1)[0]
    assert _b64decode(userinfo) == "2022-blake3-aes-128-gcm:SERVERKEY:USERKEY"


def test_hysteria2_and_tuic_links() -> None:
    out = {
        "tls": {"enabled": True, "server_name": "sni.example", "alpn": ["h3"], "insecure": True},
        "obfs": {"type": "salamander", "password": "ob"},
        "up_mbps": 50,
        "congestion_control": "bbr",
    }

    hy2 = hysteria2_uri({"password": "pw"}, out, "h", 443, "")
    tuic = tuic_uri({"uuid": "u-3", "password": "pw"}, out, "h", 443, "")

    assert hy2 == (
        "hysteria2://pw@h:443?sni=sni.example&alpn=h3&insecure=1"
        "&obfs=salamander&obfs-password=ob&upmbps=50"
    )
    assert tuic == (
        "tuic://u-3:pw@h:443?congestion_control=bbr&sni=sni.example&alpn=h3&allow_insecure=1"
    )


def test_builders_return_none_without_credentials() -> None:
    for name, builder in BUILDERS.items():
        assert builder({}, {"method": "aes-128-gcm"}, "h", 1, "") is None, name
