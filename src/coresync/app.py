"""Application orchestration entry points."""

from __future__ import annotations

import threading
from collections.abc import Callable
from logging import getLogger
from typing import TYPE_CHECKING, Any

from coresync.adapters.core import InMemoryCore, ProcessCore
from coresync.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, is_started, startup
from coresync.adapters.warp import WarpClient
from coresync.config import get_core_config, get_warp_config
from coresync.domain import views
from coresync.domain.errors import ValidationError
from coresync.domain.model import Action, ObjectClass
from coresync.domain.payloads import parse_id_list
from coresync.domain.ports.unit_of_work import CoreSyncUnitOfWork
from coresync.domain.reconciliation import (
    DEFAULT_CHANGE_LIMIT,
    ReconciliationEngine,
    SaveRequest,
)

if TYPE_CHECKING:
    from coresync.config import CoreConfig
    from coresync.domain.model import Document
    from coresync.domain.ports import CoreAdapter, PeerProvisioner
    from coresync.domain.reconciliation import DepletionResult, SaveResult

UnitOfWorkFactory = Callable[[], CoreSyncUnitOfWork]

LISTABLE = (
    ObjectClass.INBOUNDS,
    ObjectClass.OUTBOUNDS,
    ObjectClass.ENDPOINTS,
    ObjectClass.TLS,
    ObjectClass.CLIENTS,
)

log = getLogger(__name__)


def build_engine(
    *,
    dry_run: bool = False,
    core: CoreAdapter | None = None,
    provisioner: PeerProvisioner | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    core_config: CoreConfig | None = None,
) -> ReconciliationEngine:
    """Wire the engine to the configured store, core, and provisioning client."""

    if unit_of_work_factory is None:
        if not is_started():
            startup()
        unit_of_work_factory = SqlAlchemyUnitOfWork
    effective_config = core_config or get_core_config()
    effective_core = core or (InMemoryCore() if dry_run else ProcessCore(effective_config))
    effective_provisioner = provisioner or WarpClient(config=get_warp_config())
    log.debug(
        "Engine wired: core=%s, hostname=%s",
        type(effective_core).__name__,
        effective_config.hostname,
    )
    return ReconciliationEngine(
        unit_of_work_factory=unit_of_work_factory,
        core=effective_core,
        provisioner=effective_provisioner,
        hostname=effective_config.hostname,
    )


def _object_class(name: str) -> ObjectClass:
    try:
        return ObjectClass(name)
    except ValueError:
        raise ValidationError(f"unknown object class {name!r}") from None


def _action(name: str) -> Action:
    try:
        return Action(name)
    except ValueError:
        raise ValidationError(f"unknown action {name!r}") from None


def save_object(
    engine: ReconciliationEngine,
    object_class: str,
    action: str,
    payload: str,
    *,
    actor: str = "",
    init_users: str | None = None,
) -> SaveResult:
    request = SaveRequest(
        object_class=_object_class(object_class),
        action=_action(action),
        payload=payload,
        actor=actor,
        init_users=parse_id_list(init_users),
    )
    result = engine.save(request)
    if not result.convergence.converged:
        log.warning(
            "Saved %s/%s but the core did not converge: %s",
            object_class,
            action,
            "; ".join(result.convergence.errors),
        )
    return result


def list_objects(
    engine: ReconciliationEngine,
    object_class: str,
    *,
    ids: list[int] | None = None,
) -> list[Document]:
    resolved = _object_class(object_class)
    if resolved not in LISTABLE:
        raise ValidationError(f"object class {object_class!r} cannot be listed")
    with engine.unit_of_work_factory() as uow:
        repositories = uow.repositories
        match resolved:
            case ObjectClass.INBOUNDS:
                return views.list_inbounds(repositories)
            case ObjectClass.OUTBOUNDS:
                return views.list_outbounds(repositories)
            case ObjectClass.ENDPOINTS:
                return views.list_endpoints(repositories)
            case ObjectClass.TLS:
                return views.list_tls(repositories)
            case _:
                if ids:
                    return views.get_clients(repositories, ids)
                return views.list_clients(repositories)


def load_settings(engine: ReconciliationEngine) -> dict[str, Any]:
    with engine.unit_of_work_factory() as uow:
        settings = views.all_settings(uow.repositories)
        uow.commit()
    return settings


def recent_changes(
    engine: ReconciliationEngine,
    *,
    actor: str | None = None,
    key: str | None = None,
    limit: int = DEFAULT_CHANGE_LIMIT,
) -> list[Document]:
    return [
        views.change_view(record)
        for record in engine.feed.recent(actor=actor, key=key, limit=limit)
    ]


def deplete_clients(engine: ReconciliationEngine) -> DepletionResult:
    result = engine.deplete_clients()
    log.info(
        "Depletion sweep finished: disabled=%s, restarted=%s",
        len(result.disabled),
        len(result.convergence.restarted),
    )
    return result


def run_core(
    engine: ReconciliationEngine,
    *,
    interval_seconds: float,
    stop_event: threading.Event | None = None,
) -> None:
    """Start the core and sweep depleted clients until ``stop_event`` is set."""

    stop = stop_event or threading.Event()
    engine.start_core()
    try:
        while not stop.wait(interval_seconds):
            try:
                deplete_clients(engine)
            except Exception:  # noqa: BLE001
                log.exception("Depletion sweep failed")
    finally:
        engine.stop_core()
