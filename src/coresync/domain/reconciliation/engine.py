"""The reconciliation engine: transactional saves plus best-effort core convergence.

A save runs in two phases. The first validates and mutates inside one unit of
work, appends a change record and commits; any failure rolls everything back.
The second runs after commit and only tries to bring the live core in line:
restarting touched inbounds, or starting the core when it is not running.
Second-phase failures are logged and reported in ``ConvergenceResult`` but
never undo the save.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from coresync.domain.assembler import ConfigAssembler
from coresync.domain.errors import ValidationError
from coresync.domain.model import ChangeRecord
from coresync.domain.projection import inbound_core_config
from coresync.domain.reconciliation.context import MutationContext
from coresync.domain.reconciliation.contracts import (
    ConvergenceResult,
    SaveResult,
    SaveStage,
    Watermark,
)
from coresync.domain.reconciliation.feed import ChangeFeed
from coresync.domain.reconciliation.handlers import HANDLERS
from coresync.domain.reconciliation.handlers.common import patch_core
from coresync.domain.reconciliation.sweep import DepletionResult, disable_depleted

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from coresync.domain.model import Document
    from coresync.domain.ports import CoreAdapter, CoreSyncUnitOfWork, PeerProvisioner
    from coresync.domain.reconciliation.contracts import SaveRequest

log = logging.getLogger(__name__)


def unix_now() -> int:
    return int(time.time())


def _change_payload(payload: object) -> Any:
    """The payload as stored in the change log: decoded JSON where possible."""

    if isinstance(payload, bytes | bytearray):
        payload = payload.decode()
    if isinstance(payload, str):
        try:
            return json.loads(payload)
        except json.JSONDecodeError:
            return payload
    return payload


@dataclass(slots=True)
class ReconciliationEngine:
    """Handle owning the core adapter and the watermark; built once at startup."""

    unit_of_work_factory: Callable[[], CoreSyncUnitOfWork]
    core: CoreAdapter
    provisioner: PeerProvisioner | None = None
    hostname: str = "localhost"
    clock: Callable[[], int] = unix_now
    watermark: Watermark = field(default_factory=Watermark)

    @property
    def feed(self) -> ChangeFeed:
        return ChangeFeed(self.unit_of_work_factory, self.watermark, self.clock)

    # saves -----------------------------------------------------------------

    def save(self, request: SaveRequest) -> SaveResult:
        handler = HANDLERS.get(request.object_class)
        if handler is None:
            raise ValidationError(f"unknown object class {request.object_class!r}")
        label = f"{request.object_class.value}/{request.action.value}"
        log.info("Save %s by %s: %s", label, request.actor or "-", SaveStage.VALIDATING)

        try:
            with self.unit_of_work_factory() as uow:
                context = MutationContext(
                    repositories=uow.repositories,
                    core=self.core,
                    hostname=self.hostname,
                    provisioner=self.provisioner,
                    init_users=request.init_users,
                )
                outcome = handler(context, request.action, request.payload)
                changed_at = self.clock()
                uow.repositories.changes.append(
                    ChangeRecord(
                        date_time=changed_at,
                        actor=request.actor,
                        key=request.object_class.value,
                        action=request.action.value,
                        obj=_change_payload(request.payload),
                    )
                )
                uow.commit()
        except Exception as exc:
            log.info("Save %s: %s (%s)", label, SaveStage.ROLLED_BACK, exc)
            raise

        self.watermark.advance(changed_at)
        log.info("Save %s: %s", label, SaveStage.COMMITTED)
        convergence = self.converge(outcome.restart_inbounds)
        return SaveResult(
            objects=tuple(str(obj) for obj in outcome.objects),
            changed_at=changed_at,
            convergence=convergence,
            # committed saves whose core patch failed stay in PATCHING
            stage=SaveStage.DONE if convergence.converged else SaveStage.PATCHING,
        )

    def converge(self, inbound_ids: Iterable[int]) -> ConvergenceResult:
        """Post-commit phase: restart touched inbounds, or start a stopped core."""

        log.debug("Convergence: %s", SaveStage.PATCHING)
        try:
            running = self.core.is_running()
        except Exception as exc:  # noqa: BLE001
            log.exception("Could not query core state after commit")
            return ConvergenceResult(errors=[f"core state: {exc}"])
        if running:
            return self.restart_inbounds(inbound_ids)
        result = ConvergenceResult()
        try:
            result.core_started = self.start_core()
        except Exception as exc:  # noqa: BLE001
            log.exception("Starting core after commit failed")
            result.errors.append(f"start: {exc}")
        return result

    # core lifecycle --------------------------------------------------------

    def assemble_config(self, override: str | bytes | Mapping[str, Any] | None = None) -> Document:
        with self.unit_of_work_factory() as uow:
            return ConfigAssembler(uow.repositories).assemble(override)

    def start_core(self, override: str | bytes | Mapping[str, Any] | None = None) -> bool:
        """Start the core with the assembled document; ``False`` if it was already running."""

        if self.core.is_running():
            return False
        document = self.assemble_config(override)
        self.core.start(document)
        log.info("Core started")
        return True

    def stop_core(self) -> bool:
        if not self.core.is_running():
            return False
        self.core.stop()
        log.info("Core stopped")
        return True

    def restart_core(self, override: str | bytes | Mapping[str, Any] | None = None) -> bool:
        self.stop_core()
        return self.start_core(override)

    def restart_inbounds(self, inbound_ids: Iterable[int]) -> ConvergenceResult:
        """Remove and re-add each inbound; failures are logged per inbound."""

        result = ConvergenceResult()
        ids = sorted(set(inbound_ids))
        if not ids:
            return result
        try:
            with self.unit_of_work_factory() as uow:
                repositories = uow.repositories
                configs = [
                    (inbound.tag, inbound_core_config(repositories, inbound))
                    for inbound in repositories.inbounds.get_many(ids)
                ]
        except Exception as exc:  # noqa: BLE001
            log.exception("Loading inbounds %s for restart failed", ids)
            result.errors.append(f"load: {exc}")
            return result

        for tag, config in configs:
            try:
                patch_core(
                    self.core.add_inbound, self.core.remove_inbound, config, previous_tag=tag
                )
            except Exception as exc:  # noqa: BLE001
                log.exception("Restarting inbound %s failed", tag)
                result.errors.append(f"{tag}: {exc}")
            else:
                result.restarted.append(tag)
        log.info("Restarted inbounds: %s", ", ".join(result.restarted) or "none")
        return result

    # periodic jobs ---------------------------------------------------------

    def deplete_clients(self) -> DepletionResult:
        """Disable expired and over-quota clients in one transaction."""

        now = self.clock()
        with self.unit_of_work_factory() as uow:
            disabled = disable_depleted(uow.repositories, now)
            if not disabled:
                return DepletionResult()
            names = tuple(client.name for client in disabled)
            inbound_ids = frozenset(i for client in disabled for i in client.inbounds)
            uow.commit()
        self.watermark.advance(now)
        log.info("Disabled depleted clients: %s", ", ".join(names))

        convergence = ConvergenceResult()
        try:
            running = self.core.is_running()
        except Exception as exc:  # noqa: BLE001
            log.exception("Could not query core state after depletion")
            convergence.errors.append(f"core state: {exc}")
            running = False
        if running:
            convergence = self.restart_inbounds(inbound_ids)
        return DepletionResult(
            disabled=names, restart_inbounds=inbound_ids, convergence=convergence
        )
