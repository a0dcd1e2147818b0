"""Registry of recognised settings with defaults and coercion rules."""

from __future__ import annotations

import json
import logging
import secrets
from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING, Final
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from coresync.domain.errors import UnknownSettingError, ValidationError
from coresync.domain.payloads import decode_json

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

log = logging.getLogger(__name__)

CONFIG_KEY: Final = "config"

DEFAULT_BASE_CONFIG: Final[str] = json.dumps(
    {
        "log": {"level": "info"},
        "dns": {},
        "route": {"rules": [{"protocol": ["dns"], "action": "hijack-dns"}]},
        "experimental": {},
    }
)

_TRUE_LITERALS: Final = frozenset({"1", "t", "true"})
_FALSE_LITERALS: Final = frozenset({"0", "f", "false"})


class SettingKind(StrEnum):
    STRING = "string"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    PATH = "path"
    LOCALE = "locale"
    DOCUMENT = "document"
    READ_ONLY = "read_only"


def _random_secret() -> str:
    return secrets.token_hex(16)


def _package_version() -> str:
    from coresync import __version__  # noqa: PLC0415

    return __version__


@dataclass(frozen=True, slots=True)
class SettingSpec:
    key: str
    kind: SettingKind
    default: str | Callable[[], str] = ""

    def default_value(self) -> str:
        return self.default() if callable(self.default) else self.default


REGISTRY: Final[Mapping[str, SettingSpec]] = MappingProxyType(
    {
        spec.key: spec
        for spec in (
            SettingSpec("webListen", SettingKind.STRING),
            SettingSpec("webDomain", SettingKind.STRING),
            SettingSpec("webPort", SettingKind.INTEGER, "2095"),
            SettingSpec("secret", SettingKind.STRING, _random_secret),
            SettingSpec("webCertFile", SettingKind.STRING),
            SettingSpec("webKeyFile", SettingKind.STRING),
            SettingSpec("webPath", SettingKind.PATH, "/app/"),
            SettingSpec("webURI", SettingKind.STRING),
            SettingSpec("sessionMaxAge", SettingKind.INTEGER, "0"),
            SettingSpec("trafficAge", SettingKind.INTEGER, "30"),
            SettingSpec("timeLocation", SettingKind.LOCALE, "Asia/Tehran"),
            SettingSpec("subListen", SettingKind.STRING),
            SettingSpec("subPort", SettingKind.INTEGER, "2096"),
            SettingSpec("subPath", SettingKind.PATH, "/sub/"),
            SettingSpec("subDomain", SettingKind.STRING),
            SettingSpec("subCertFile", SettingKind.STRING),
            SettingSpec("subKeyFile", SettingKind.STRING),
            SettingSpec("subUpdates", SettingKind.INTEGER, "12"),
            SettingSpec("subEncode", SettingKind.BOOLEAN, "true"),
            SettingSpec("subShowInfo", SettingKind.BOOLEAN, "false"),
            SettingSpec("subURI", SettingKind.STRING),
            SettingSpec("subJsonExt", SettingKind.STRING),
            SettingSpec(CONFIG_KEY, SettingKind.DOCUMENT, DEFAULT_BASE_CONFIG),
            SettingSpec("version", SettingKind.READ_ONLY, _package_version),
            SettingSpec("panelLanguage", SettingKind.STRING, "en"),
            SettingSpec("panelTheme", SettingKind.STRING, "light"),
        )
    }
)

# never returned by the settings listing
HIDDEN_KEYS: Final = frozenset({"secret", CONFIG_KEY, "version"})


def lookup(key: str) -> SettingSpec:
    try:
        return REGISTRY[key]
    except KeyError:
        raise UnknownSettingError(f"unknown setting {key!r}") from None


def _stringify(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float | str):
        return str(value)
    raise ValidationError(f"setting values must be scalars, got {type(value).__name__}")


def _normalize_path(value: str) -> str:
    stripped = value.strip()
    if not stripped.startswith("/"):
        stripped = "/" + stripped
    if not stripped.endswith("/"):
        stripped += "/"
    return stripped


def coerce_setting(key: str, value: object) -> str:
    """Validate ``value`` for ``key`` and return its stored string form."""

    spec = lookup(key)
    text = _stringify(value)
    match spec.kind:
        case SettingKind.INTEGER:
            try:
                return str(int(text.strip()))
            except ValueError:
                raise ValidationError(f"setting {key!r} expects an integer, got {text!r}") from None
        case SettingKind.BOOLEAN:
            lowered = text.strip().lower()
            if lowered in _TRUE_LITERALS:
                return "true"
            if lowered in _FALSE_LITERALS:
                return "false"
            raise ValidationError(f"setting {key!r} expects a boolean, got {text!r}")
        case SettingKind.PATH:
            return _normalize_path(text)
        case SettingKind.LOCALE:
            try:
                ZoneInfo(text)
            except (ZoneInfoNotFoundError, ValueError):
                log.warning("Invalid time location %r, falling back to %s", text, spec.default)
                return spec.default_value()
            return text
        case SettingKind.DOCUMENT:
            if not isinstance(decode_json(text), dict):
                raise ValidationError(f"setting {key!r} must be a JSON object")
            return text
        case SettingKind.READ_ONLY:
            raise ValidationError(f"setting {key!r} is read-only")
        case _:
            return text


def coerce_settings(payload: object) -> dict[str, str]:
    """Coerce a flat key/value settings payload; any bad entry fails the whole map."""

    decoded = decode_json(payload)
    if not isinstance(decoded, dict):
        raise ValidationError("settings payload must be a flat key/value map")
    return {str(key): coerce_setting(str(key), value) for key, value in decoded.items()}


def with_defaults(stored: Mapping[str, str]) -> dict[str, str]:
    """Overlay stored values on the registry defaults, in registry order."""

    merged = {
        key: stored[key] if key in stored else spec.default_value()
        for key, spec in REGISTRY.items()
    }
    merged["version"] = REGISTRY["version"].default_value()
    return merged
