"""Base building blocks shared by every stored record."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

type Document = dict[str, Any]


@dataclass(eq=False, kw_only=True)
class Entity:
    """Identity is assigned by the store on first flush."""

    id: int | None = None

    @property
    def is_persisted(self) -> bool:
        return self.id is not None


@dataclass(eq=False, kw_only=True)
class TaggedEntity(Entity):
    """Record addressed by a tag both in storage and in the live core.

    ``options`` is the extension bag: protocol fields that are not modelled
    explicitly. It is merged into the serialized view and never searched for
    canonical field names.
    """

    type: str
    tag: str
    options: Document

    def core_type(self) -> str:
        return self.type

    def core_config(self) -> Document:
        """Return the document handed to the live core for this record."""

        combined: Document = dict(self.options)
        combined["type"] = self.core_type()
        combined["tag"] = self.tag
        return combined
