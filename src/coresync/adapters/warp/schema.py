"""Pydantic models describing the warp registration API payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class WarpBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class AccountPayload(WarpBaseModel):
    license: str | None = None


class RegistrationResponse(WarpBaseModel):
    id: str = Field(min_length=1)
    token: str = Field(min_length=1)
    account: AccountPayload | None = None


class InterfaceAddresses(WarpBaseModel):
    v4: str
    v6: str


class InterfacePayload(WarpBaseModel):
    addresses: InterfaceAddresses


class PeerEndpoint(WarpBaseModel):
    host: str


class PeerPayload(WarpBaseModel):
    public_key: str
    endpoint: PeerEndpoint


class DeviceConfig(WarpBaseModel):
    client_id: str
    interface: InterfacePayload
    peers: list[PeerPayload] = Field(min_length=1)


class DeviceInfo(WarpBaseModel):
    config: DeviceConfig


class ErrorDetail(WarpBaseModel):
    code: int | str | None = None
    message: str = ""


class AccountUpdateResponse(WarpBaseModel):
    success: bool = True
    errors: list[ErrorDetail] = Field(default_factory=list)
