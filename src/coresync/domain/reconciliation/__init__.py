"""Transactional save orchestration, change feed, and periodic sweeps."""

from __future__ import annotations

from coresync.domain.reconciliation.contracts import (
    ConvergenceResult,
    SaveRequest,
    SaveResult,
    SaveStage,
    Watermark,
)
from coresync.domain.reconciliation.engine import ReconciliationEngine, unix_now
from coresync.domain.reconciliation.feed import DEFAULT_CHANGE_LIMIT, ChangeFeed, parse_since
from coresync.domain.reconciliation.sweep import DEPLETE_ACTOR, DepletionResult

__all__ = [
    "DEFAULT_CHANGE_LIMIT",
    "DEPLETE_ACTOR",
    "ChangeFeed",
    "ConvergenceResult",
    "DepletionResult",
    "ReconciliationEngine",
    "SaveRequest",
    "SaveResult",
    "SaveStage",
    "Watermark",
    "parse_since",
    "unix_now",
]
