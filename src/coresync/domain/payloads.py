"""Pydantic models for save payloads.

Canonical fields are declared; everything else a payload carries is kept in
``model_extra`` and becomes the record's extension bag.
"""

from __future__ import annotations

import json
from typing import Any, Final

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from coresync.domain.errors import ParseError, ValidationError

# derived or injected by the engine; never stored in an extension bag
RESERVED_INBOUND_KEYS: Final[frozenset[str]] = frozenset({"out_json", "users"})


def _zero_to_none(value: object) -> object:
    if value in (0, "0", ""):
        return None
    return value


class PayloadModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class TaggedPayload(PayloadModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: int | None = None
    type: str = Field(min_length=1)
    tag: str = Field(min_length=1)

    @property
    def options(self) -> dict[str, Any]:
        return dict(self.model_extra or {})


class InboundPayload(TaggedPayload):
    tls_id: int | None = None
    addrs: list[dict[str, Any]] = Field(default_factory=list)

    _normalize_tls_id = field_validator("tls_id", mode="before")(_zero_to_none)

    @property
    def options(self) -> dict[str, Any]:
        extra = self.model_extra or {}
        return {key: value for key, value in extra.items() if key not in RESERVED_INBOUND_KEYS}


class OutboundPayload(TaggedPayload):
    """Outbound document; every non-canonical key is protocol options."""


class EndpointPayload(TaggedPayload):
    ext: dict[str, Any] | None = None


class TlsPayload(PayloadModel):
    id: int | None = None
    name: str = Field(min_length=1)
    server: dict[str, Any] = Field(default_factory=dict)
    client: dict[str, Any] = Field(default_factory=dict)


class ClientPayload(PayloadModel):
    id: int | None = None
    enable: bool = True
    name: str = Field(min_length=1)
    group: str = ""
    desc: str = ""
    config: dict[str, dict[str, Any]] = Field(default_factory=dict)
    inbounds: list[int] = Field(default_factory=list)
    # descriptors are stored as given; only the origin marker is required
    links: list[dict[str, str]] = Field(default_factory=list)
    up: int = Field(default=0, ge=0)
    down: int = Field(default=0, ge=0)
    volume: int = Field(default=0, ge=0)
    expiry: int = Field(default=0, ge=0)

    @field_validator("inbounds", mode="before")
    @classmethod
    def _none_to_empty(cls, value: object) -> object:
        return [] if value is None else value

    @field_validator("links")
    @classmethod
    def _links_have_origin(cls, value: list[dict[str, str]]) -> list[dict[str, str]]:
        for index, descriptor in enumerate(value):
            if not descriptor.get("type"):
                raise ValueError(f"link {index} has no type")
        return value


_CLIENT_LIST: Final[TypeAdapter[list[ClientPayload]]] = TypeAdapter(list[ClientPayload])


def _describe(exc: PydanticValidationError) -> str:
    parts: list[str] = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "<root>"
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)


def _is_json_error(exc: PydanticValidationError) -> bool:
    return any(error["type"] == "json_invalid" for error in exc.errors())


def decode_json(raw: object) -> object:
    """Decode a raw JSON payload; already-decoded values pass through."""

    if isinstance(raw, bytes | bytearray):
        raw = raw.decode()
    if isinstance(raw, str):
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ParseError(f"payload is not valid JSON: {exc}") from exc
    return raw


def parse_payload[TModel: BaseModel](model: type[TModel], raw: object) -> TModel:
    try:
        if isinstance(raw, str | bytes | bytearray):
            return model.model_validate_json(raw)
        return model.model_validate(raw)
    except PydanticValidationError as exc:
        if _is_json_error(exc):
            raise ParseError(f"payload is not valid JSON: {_describe(exc)}") from exc
        raise ValidationError(f"invalid {model.__name__}: {_describe(exc)}") from exc


def parse_client_list(raw: object) -> list[ClientPayload]:
    try:
        if isinstance(raw, str | bytes | bytearray):
            return _CLIENT_LIST.validate_json(raw)
        return _CLIENT_LIST.validate_python(raw)
    except PydanticValidationError as exc:
        if _is_json_error(exc):
            raise ParseError(f"payload is not valid JSON: {_describe(exc)}") from exc
        raise ValidationError(f"invalid client list: {_describe(exc)}") from exc


def parse_target(raw: object) -> int | str:
    """Parse a delete payload: a bare id or a bare tag.

    Text that is not JSON is taken verbatim as a tag.
    """

    value: object = raw
    if isinstance(value, bytes | bytearray):
        value = value.decode()
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            value = value.strip()
    if isinstance(value, bool) or not isinstance(value, int | str):
        raise ValidationError(f"delete payload must be an id or a tag, got {value!r}")
    if isinstance(value, str) and not value:
        raise ValidationError("delete payload is empty")
    return value


def parse_id_list(raw: str | None) -> tuple[int, ...]:
    """Parse a comma-separated id list such as ``"1,2, 5"``; blank means none."""

    if raw is None or not raw.strip():
        return ()
    ids: list[int] = []
    for part in raw.split(","):
        text = part.strip()
        if not text:
            continue
        try:
            ids.append(int(text))
        except ValueError:
            raise ValidationError(f"expected a comma-separated list of ids, got {raw!r}") from None
    return tuple(ids)
