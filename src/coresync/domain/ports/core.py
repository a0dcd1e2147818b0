"""Port for the running proxy core."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping


@runtime_checkable
class CoreAdapter(Protocol):
    """Live-patch surface of the proxy core.

    ``remove_*`` raise ``CoreNotFoundError`` when the tag is absent and
    ``AdapterError`` for any other rejection. ``add_*`` replace an entry held
    under the same tag and raise ``AdapterError`` when rejected.
    """

    def is_running(self) -> bool: ...

    def start(self, document: Mapping[str, object]) -> None: ...

    def stop(self) -> None: ...

    def add_inbound(self, config: Mapping[str, object]) -> None: ...

    def remove_inbound(self, tag: str) -> None: ...

    def add_outbound(self, config: Mapping[str, object]) -> None: ...

    def remove_outbound(self, tag: str) -> None: ...

    def add_endpoint(self, config: Mapping[str, object]) -> None: ...

    def remove_endpoint(self, tag: str) -> None: ...
