"""Settings and the append-only change log."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar

from coresync.domain.model.base import Entity
from coresync.domain.model.enums import ObjectClass


@dataclass(eq=False, kw_only=True)
class Setting(Entity):
    OBJECT_CLASS: ClassVar[ObjectClass] = ObjectClass.SETTINGS

    key: str
    value: str


@dataclass(eq=False, kw_only=True)
class ChangeRecord(Entity):
    """One committed mutation.

    ``date_time`` is unix seconds; ``obj`` is the payload that produced the change.
    """

    date_time: int
    actor: str
    key: str
    action: str
    obj: Any = None
