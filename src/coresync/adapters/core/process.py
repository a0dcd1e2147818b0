"""Drive a sing-box style core binary as a child process.

The binary has no hot-patch API, so every ``add_*``/``remove_*`` call edits
the last applied document and restarts the process with it.
"""

from __future__ import annotations

import copy
import json
import logging
import subprocess
from typing import TYPE_CHECKING, Any

from coresync.domain.errors import AdapterError, CoreNotFoundError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from coresync.config.core import CoreConfig

log = logging.getLogger(__name__)


class ProcessCore:
    def __init__(self, config: CoreConfig) -> None:
        self._config = config
        self._process: subprocess.Popen[bytes] | None = None
        self._document: dict[str, Any] | None = None

    def is_running(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def start(self, document: Mapping[str, object]) -> None:
        if self.is_running():
            raise AdapterError("core is already running")
        self._document = copy.deepcopy(dict(document))
        self._launch()

    def stop(self) -> None:
        process = self._process
        if process is None:
            return
        self._process = None
        if process.poll() is not None:
            return
        process.terminate()
        try:
            process.wait(timeout=self._config.stop_timeout_seconds)
        except subprocess.TimeoutExpired:
            log.warning(
                "Core did not stop within %.1fs, killing it", self._config.stop_timeout_seconds
            )
            process.kill()
            process.wait()
        log.info("Core process %s stopped", process.pid)

    def add_inbound(self, config: Mapping[str, object]) -> None:
        self._patch("inbounds", add=config)

    def remove_inbound(self, tag: str) -> None:
        self._patch("inbounds", remove=tag)

    def add_outbound(self, config: Mapping[str, object]) -> None:
        self._patch("outbounds", add=config)

    def remove_outbound(self, tag: str) -> None:
        self._patch("outbounds", remove=tag)

    def add_endpoint(self, config: Mapping[str, object]) -> None:
        self._patch("endpoints", add=config)

    def remove_endpoint(self, tag: str) -> None:
        self._patch("endpoints", remove=tag)

    def _patch(
        self,
        section: str,
        *,
        add: Mapping[str, object] | None = None,
        remove: str | None = None,
    ) -> None:
        if self._document is None or not self.is_running():
            raise AdapterError("core is not running")
        entries: list[dict[str, Any]] = list(self._document.get(section) or [])
        if remove is not None:
            kept = [entry for entry in entries if entry.get("tag") != remove]
            if len(kept) == len(entries):
                raise CoreNotFoundError(f"{section[:-1]} {remove!r} not found in core")
            entries = kept
        if add is not None:
            # an add under a held tag replaces that entry
            tag = add.get("tag")
            entries = [entry for entry in entries if entry.get("tag") != tag]
            entries.append(copy.deepcopy(dict(add)))
        self._document[section] = entries
        self.stop()
        self._launch()

    def _launch(self) -> None:
        path = self._config.config_path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(self._document, indent=2), encoding="utf-8")
            self._process = subprocess.Popen(  # noqa: S603
                [self._config.binary, "run", "-c", str(path)],
                cwd=self._config.workdir,
            )
        except OSError as exc:
            raise AdapterError(f"could not launch core {self._config.binary!r}: {exc}") from exc
        log.info("Core process %s started with %s", self._process.pid, path)
