"""In-process stand-in for the proxy core, used for dry runs and tests."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from coresync.domain.errors import AdapterError, CoreNotFoundError

if TYPE_CHECKING:
    from collections.abc import Mapping

log = logging.getLogger(__name__)

_SECTIONS = ("inbounds", "outbounds", "endpoints")


@dataclass(slots=True)
class InMemoryCore:
    """Keeps the applied document in memory and records every call."""

    document: dict[str, Any] | None = None
    calls: list[tuple[str, str]] = field(default_factory=list)
    fail_on: set[str] = field(default_factory=set)
    _objects: dict[str, dict[str, dict[str, Any]]] = field(
        default_factory=lambda: {section: {} for section in _SECTIONS}
    )

    def is_running(self) -> bool:
        return self.document is not None

    def start(self, document: Mapping[str, object]) -> None:
        self._check("start")
        if self.document is not None:
            raise AdapterError("core is already running")
        self.document = copy.deepcopy(dict(document))
        for section in _SECTIONS:
            entries = self.document.get(section) or []
            self._objects[section] = {str(entry.get("tag")): entry for entry in entries}
        self.calls.append(("start", ""))
        log.debug("In-memory core started with %d inbounds", len(self._objects["inbounds"]))

    def stop(self) -> None:
        self._check("stop")
        if self.document is None:
            raise AdapterError("core is not running")
        self.document = None
        for section in _SECTIONS:
            self._objects[section] = {}
        self.calls.append(("stop", ""))

    def tags(self, section: str) -> list[str]:
        return sorted(self._objects[section])

    def config_of(self, section: str, tag: str) -> dict[str, Any]:
        return self._objects[section][tag]

    def add_inbound(self, config: Mapping[str, object]) -> None:
        self._add("inbounds", config)

    def remove_inbound(self, tag: str) -> None:
        self._remove("inbounds", tag)

    def add_outbound(self, config: Mapping[str, object]) -> None:
        self._add("outbounds", config)

    def remove_outbound(self, tag: str) -> None:
        self._remove("outbounds", tag)

    def add_endpoint(self, config: Mapping[str, object]) -> None:
        self._add("endpoints", config)

    def remove_endpoint(self, tag: str) -> None:
        self._remove("endpoints", tag)

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise AdapterError(f"core rejected {operation}")

    def _add(self, section: str, config: Mapping[str, object]) -> None:
        tag = str(config.get("tag", ""))
        self._check(f"add_{section[:-1]}")
        if self.document is None:
            raise AdapterError("core is not running")
        if tag in self._objects[section]:
            log.debug("Replacing %s %s held by the in-memory core", section[:-1], tag)
        self._objects[section][tag] = copy.deepcopy(dict(config))
        self.calls.append((f"add_{section[:-1]}", tag))

    def _remove(self, section: str, tag: str) -> None:
        self._check(f"remove_{section[:-1]}")
        if self.document is None:
            raise AdapterError("core is not running")
        if tag not in self._objects[section]:
            raise CoreNotFoundError(f"{section[:-1]} {tag!r} not found in core")
        del self._objects[section][tag]
        self.calls.append((f"remove_{section[:-1]}", tag))
