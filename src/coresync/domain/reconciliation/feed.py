"""Change feed: the audit log read side and the cheap "anything changed?" check."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from coresync.domain.errors import ValidationError

if TYPE_CHECKING:
    from collections.abc import Callable

    from coresync.domain.model import ChangeRecord
    from coresync.domain.ports import CoreSyncUnitOfWork
    from coresync.domain.reconciliation.contracts import Watermark

log = logging.getLogger(__name__)

DEFAULT_CHANGE_LIMIT: Final = 100


def parse_since(value: str | int | None) -> int | None:
    """Parse a caller-supplied watermark; blank means "never checked"."""

    if value is None:
        return None
    if isinstance(value, int):
        return value
    text = value.strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        raise ValidationError(f"watermark must be an integer timestamp, got {value!r}") from None


@dataclass(slots=True)
class ChangeFeed:
    unit_of_work_factory: Callable[[], CoreSyncUnitOfWork]
    watermark: Watermark
    clock: Callable[[], int]

    def check(self, since: str | int | None) -> bool:
        """Return whether anything committed after ``since``.

        The in-memory watermark answers most polls; after a process restart it
        is behind the log, so the log is consulted before answering "no".
        """

        caller = parse_since(since)
        if caller is None:
            return True
        if self.watermark.value > caller:
            return True
        with self.unit_of_work_factory() as uow:
            newer = uow.repositories.changes.count_since(caller)
        if newer:
            self.watermark.advance(self.clock())
            log.debug("Found %d change records newer than %d", newer, caller)
            return True
        return False

    def recent(
        self,
        *,
        actor: str | None = None,
        key: str | None = None,
        limit: int = DEFAULT_CHANGE_LIMIT,
    ) -> list[ChangeRecord]:
        if limit <= 0:
            return []
        with self.unit_of_work_factory() as uow:
            return list(uow.repositories.changes.recent(actor=actor, key=key, limit=limit))

    def reset(self) -> int:
        with self.unit_of_work_factory() as uow:
            removed = uow.repositories.changes.clear()
            uow.commit()
        log.info("Cleared %d change records", removed)
        return removed
