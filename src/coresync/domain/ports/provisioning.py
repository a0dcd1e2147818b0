"""Port for the remote peer-provisioning service."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping


@dataclass(slots=True, frozen=True)
class ProvisionedPeer:
    """Result of a registration: private ``ext`` state plus core-facing ``options``."""

    ext: dict[str, Any] = field(default_factory=dict)
    options: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class PeerProvisioner(Protocol):
    def register(self) -> ProvisionedPeer: ...

    def update_license(self, previous: str | None, ext: Mapping[str, Any]) -> None:
        """Push ``ext["license_key"]`` upstream when it differs from ``previous``."""
        ...
