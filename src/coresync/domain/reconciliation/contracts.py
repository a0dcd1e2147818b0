"""Request, result, and watermark types of the save orchestrator."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from coresync.domain.model import Action, ObjectClass


class SaveStage(StrEnum):
    """Per-request states. Validating and mutating may end in ``ROLLED_BACK``."""

    VALIDATING = "validating"
    MUTATING = "mutating"
    COMMITTED = "committed"
    PATCHING = "patching"
    DONE = "done"
    ROLLED_BACK = "rolled_back"


@dataclass(slots=True, frozen=True, kw_only=True)
class SaveRequest:
    object_class: ObjectClass
    action: Action
    payload: object
    actor: str = ""
    # client ids to link to a newly created inbound
    init_users: tuple[int, ...] = ()


@dataclass(slots=True, kw_only=True)
class ConvergenceResult:
    """Outcome of the best-effort post-commit phase."""

    restarted: list[str] = field(default_factory=list)
    core_started: bool = False
    errors: list[str] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        return not self.errors


@dataclass(slots=True, kw_only=True)
class SaveResult:
    """A committed save; live-core convergence is reported separately."""

    objects: tuple[str, ...]
    changed_at: int
    convergence: ConvergenceResult
    stage: SaveStage

    @property
    def committed(self) -> bool:
        return self.stage in (SaveStage.COMMITTED, SaveStage.PATCHING, SaveStage.DONE)


class Watermark:
    """Last-change timestamp held in process memory; only ever moves forward."""

    def __init__(self, value: int = 0) -> None:
        self._value = value
        self._lock = threading.Lock()

    @property
    def value(self) -> int:
        return self._value

    def advance(self, timestamp: int) -> int:
        with self._lock:
            self._value = max(self._value, timestamp)
            return self._value

    def __repr__(self) -> str:
        return f"Watermark({self._value})"
