from __future__ import annotations

import base64
import json
from collections.abc import Callable  # noqa: TC003

import httpx
import pytest

from coresync.adapters.http_resilience import ResilientClient
from coresync.adapters.warp import WarpClient, generate_keypair
from coresync.config import ResilienceConfig, WarpConfig
from coresync.config.warp import WARP_CLIENT_VERSION
from coresync.domain.errors import ProvisioningError

BASE_URL = "https://warp.test/v0a2158"


def _make_client_factory(
    handler: Callable[[httpx.Request], httpx.Response],
) -> Callable[[ResilienceConfig], ResilientClient]:
    async def async_handler(request: httpx.Request) -> httpx.Response:
        return handler(request)

    def factory(resilience: ResilienceConfig) -> ResilientClient:
        client = ResilientClient(resilience)
        client._client = httpx.AsyncClient(  # noqa: SLF001  # type: ignore[reportPrivateUsage]
            base_url=resilience.base_url or "",
            headers=dict(resilience.default_headers or {}),
            transport=httpx.MockTransport(async_handler),
        )
        return client

    return factory


def _warp_client(handler: Callable[[httpx.Request], httpx.Response]) -> WarpClient:
    config = WarpConfig(
        resilience=ResilienceConfig(
            name="warp-test",
            base_url=BASE_URL,
            default_headers={"CF-Client-Version": WARP_CLIENT_VERSION},
        )
    )
    return WarpClient(
        config=config,
        client_factory=_make_client_factory(handler),
        device_name="node-1",
    )


def _device_info(host: str) -> dict[str, object]:
    return {
        "config": {
            "client_id": base64.b64encode(bytes([7, 8, 9])).decode(),
            "interface": {"addresses": {"v4": "172.16.0.2", "v6": "2606:4700:110::2"}},
            "peers": [{"public_key": "PEERKEY", "endpoint": {"host": host}}],
        }
    }


def test_generate_keypair_returns_32_byte_keys() -> None:
    private_key, public_key = generate_keypair()

    assert len(base64.b64decode(private_key)) == 32
    assert len(base64.b64decode(public_key)) == 32
    assert private_key != public_key


def test_register_issues_device_and_builds_peer() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.method == "POST":
            return httpx.Response(
                200,
                json={"id": "dev-1", "token": "tok-1", "account": {"license": "LIC-0"}},
            )
        return httpx.Response(200, json=_device_info("engage.cloudflareclient.com:2408"))

    peer = _warp_client(handler).register()

    post, get = seen
    assert post.url.path == "/v0a2158/reg"
    assert post.headers["CF-Client-Version"] == WARP_CLIENT_VERSION
    body = json.loads(post.content)
    assert body["type"] == "PC"
    assert body["name"] == "node-1"
    assert body["tos"].endswith("Z")
    assert len(base64.b64decode(body["key"])) == 32
    assert get.url.path == "/v0a2158/reg/dev-1"
    assert get.headers["Authorization"] == "Bearer tok-1"

    assert peer.ext == {"access_token": "tok-1", "device_id": "dev-1", "license_key": "LIC-0"}
    assert peer.options["address"] == ["172.16.0.2/32", "2606:4700:110::2/128"]
    assert peer.options["listen_port"] == 0
    assert peer.options["peers"] == [
        {
            "address": "engage.cloudflareclient.com",
            "port": 2408,
            "public_key": "PEERKEY",
            "allowed_ips": ["0.0.0.0/0", "::/0"],
            "reserved": [7, 8, 9],
        }
    ]


def test_register_handles_bracketed_ipv6_peer_host() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(200, json={"id": "dev-1", "token": "tok-1"})
        return httpx.Response(200, json=_device_info("[2606:4700:d0::a29f:c001]:500"))

    peer = _warp_client(handler).register()

    assert peer.options["peers"][0]["address"] == "2606:4700:d0::a29f:c001"
    assert peer.options["peers"][0]["port"] == 500
    assert peer.ext["license_key"] == ""


def test_register_surfaces_http_errors() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json={"success": False})

    with pytest.raises(ProvisioningError, match="POST reg"):
        _warp_client(handler).register()


def test_register_rejects_incomplete_device_info() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(200, json={"id": "dev-1", "token": "tok-1"})
        return httpx.Response(200, json={"config": {"peers": []}})

    with pytest.raises(ProvisioningError, match="malformed warp response"):
        _warp_client(handler).register()


def test_update_license_only_calls_upstream_on_change() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"success": True})

    client = _warp_client(handler)
    ext = {"device_id": "dev-1", "access_token": "tok-1", "license_key": "LIC-1"}

    client.update_license("LIC-1", ext)
    assert seen == []

    client.update_license("LIC-0", ext)
    (request,) = seen
    assert request.method == "PUT"
    assert request.url.path == "/v0a2158/reg/dev-1/account"
    assert request.headers["Authorization"] == "Bearer tok-1"
    assert json.loads(request.content) == {"license": "LIC-1"}


def test_update_license_reports_remote_rejection() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"success": False, "errors": [{"code": 103, "message": "Invalid license"}]},
        )

    client = _warp_client(handler)
    ext = {"device_id": "dev-1", "access_token": "tok-1", "license_key": "BAD"}

    with pytest.raises(ProvisioningError, match="Invalid license") as excinfo:
        client.update_license("", ext)

    assert excinfo.value.code == "103"


def test_update_license_requires_registered_device() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    with pytest.raises(ProvisioningError, match="no registered device"):
        _warp_client(handler).update_license("", {"license_key": "LIC"})
