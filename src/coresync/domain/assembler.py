"""Assembles the full core configuration document from the store."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from coresync.domain.errors import ParseError
from coresync.domain.projection import inbound_core_config
from coresync.domain.settings import CONFIG_KEY, DEFAULT_BASE_CONFIG

if TYPE_CHECKING:
    from collections.abc import Mapping

    from coresync.domain.model import Document
    from coresync.domain.ports import CoreSyncRepositories


class CoreDocument(BaseModel):
    """Skeleton of the core configuration; unknown top-level sections are dropped."""

    model_config = ConfigDict(extra="ignore")

    log: dict[str, Any] | None = None
    dns: dict[str, Any] | None = None
    ntp: dict[str, Any] | None = None
    route: dict[str, Any] | None = None
    experimental: dict[str, Any] | None = None
    inbounds: list[dict[str, Any]] = Field(default_factory=list)
    outbounds: list[dict[str, Any]] = Field(default_factory=list)
    endpoints: list[dict[str, Any]] = Field(default_factory=list)


def parse_base_document(raw: str | bytes | Mapping[str, Any]) -> CoreDocument:
    try:
        if isinstance(raw, str | bytes):
            return CoreDocument.model_validate_json(raw)
        return CoreDocument.model_validate(raw)
    except PydanticValidationError as exc:
        reasons = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or '<root>'}: {error['msg']}"
            for error in exc.errors()
        )
        raise ParseError(f"invalid core configuration document: {reasons}") from exc


@dataclass(slots=True)
class ConfigAssembler:
    repositories: CoreSyncRepositories

    def stored_base(self) -> str:
        setting = self.repositories.settings.get(CONFIG_KEY)
        return setting.value if setting is not None and setting.value else DEFAULT_BASE_CONFIG

    def assemble(self, override: str | bytes | Mapping[str, Any] | None = None) -> Document:
        """Parse the base (or override) document and replace its three record arrays."""

        # an empty override means "use the stored base"
        document = parse_base_document(override or self.stored_base())
        repositories = self.repositories
        document.inbounds = [
            inbound_core_config(repositories, inbound)
            for inbound in repositories.inbounds.list_all()
        ]
        document.outbounds = [
            outbound.core_config() for outbound in repositories.outbounds.list_all()
        ]
        document.endpoints = [
            endpoint.core_config() for endpoint in repositories.endpoints.list_all()
        ]
        return document.model_dump(exclude_none=True)
