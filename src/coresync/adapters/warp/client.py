"""Warp peer-provisioning client."""

from __future__ import annotations

import asyncio
import socket
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from coresync.adapters.http_resilience import ResilientClient
from coresync.domain.errors import ProvisioningError
from coresync.domain.ports import ProvisionedPeer
from coresync.domain.validation import WARP_ALLOWED_IPS

from .keys import generate_keypair, reserved_bytes
from .schema import AccountUpdateResponse, DeviceInfo, RegistrationResponse

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from coresync.config.http_resilience import ResilienceConfig
    from coresync.config.warp import WarpConfig

log = getLogger(__name__)


def _split_host_port(host: str) -> tuple[str, int]:
    address, _, port = host.rpartition(":")
    if not address or not port.isdigit():
        raise ProvisioningError(f"could not split host and port from peer endpoint {host!r}")
    return address.strip("[]"), int(port)


def _tos_timestamp() -> str:
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def _validated[TModel: BaseModel](model: type[TModel], payload: dict[str, Any]) -> TModel:
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        raise ProvisioningError(f"malformed warp response: {exc}") from exc


class WarpClient:
    """Registers warp devices and keeps their license in sync."""

    def __init__(
        self,
        *,
        config: WarpConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
        device_name: str | None = None,
    ) -> None:
        self._config = config
        self._resilience = config.resilience
        self._client_factory = client_factory or ResilientClient
        self._device_name = device_name or socket.gethostname()

    def register(self) -> ProvisionedPeer:
        return asyncio.run(self._register_async())

    def update_license(self, previous: str | None, ext: Mapping[str, Any]) -> None:
        license_key = ext.get("license_key")
        if not license_key or license_key == previous:
            return
        device_id = ext.get("device_id")
        access_token = ext.get("access_token")
        if not device_id or not access_token:
            raise ProvisioningError("warp endpoint has no registered device to license")
        asyncio.run(
            self._update_license_async(
                device_id=str(device_id),
                access_token=str(access_token),
                license_key=str(license_key),
            )
        )
        log.info("Updated warp license for device %s", device_id)

    async def _register_async(self) -> ProvisionedPeer:
        private_key, public_key = generate_keypair()
        body = {
            "key": public_key,
            "tos": _tos_timestamp(),
            "type": "PC",
            "model": self._config.device_model,
            "name": self._device_name,
        }
        async with self._client_factory(self._resilience) as client:
            registration = _validated(
                RegistrationResponse,
                await self._perform_request(client, "POST", "reg", json=body),
            )
            info = _validated(
                DeviceInfo,
                await self._perform_request(
                    client,
                    "GET",
                    f"reg/{registration.id}",
                    headers={"Authorization": f"Bearer {registration.token}"},
                ),
            )

        peer = info.config.peers[0]
        address, port = _split_host_port(peer.endpoint.host)
        addresses = info.config.interface.addresses
        options = {
            "private_key": private_key,
            "address": [f"{addresses.v4}/32", f"{addresses.v6}/128"],
            "listen_port": 0,
            "peers": [
                {
                    "address": address,
                    "port": port,
                    "public_key": peer.public_key,
                    "allowed_ips": list(WARP_ALLOWED_IPS),
                    "reserved": reserved_bytes(info.config.client_id),
                }
            ],
        }
        ext = {
            "access_token": registration.token,
            "device_id": registration.id,
            "license_key": registration.account.license if registration.account else "",
        }
        return ProvisionedPeer(ext=ext, options=options)

    async def _update_license_async(
        self,
        *,
        device_id: str,
        access_token: str,
        license_key: str,
    ) -> None:
        async with self._client_factory(self._resilience) as client:
            payload = await self._perform_request(
                client,
                "PUT",
                f"reg/{device_id}/account",
                json={"license": license_key},
                headers={"Authorization": f"Bearer {access_token}"},
            )
        result = _validated(AccountUpdateResponse, payload)
        if not result.success:
            error = result.errors[0] if result.errors else None
            code = None if error is None or error.code is None else str(error.code)
            message = error.message if error is not None else "unknown error"
            raise ProvisioningError(f"warp license update failed: {message}", code=code)

    async def _perform_request(
        self,
        client: ResilientClient,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> dict[str, Any]:
        try:
            response = await client.request(method, path, **kwargs)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            raise ProvisioningError(f"warp {method} {path} failed: {exc}") from exc
        except ValueError as exc:
            raise ProvisioningError(f"warp {method} {path} returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise ProvisioningError(f"unexpected warp response payload for {method} {path}")
        return payload
