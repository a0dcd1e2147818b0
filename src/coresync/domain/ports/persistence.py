"""Ports for persisting configuration records."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from coresync.domain.model import (
    ChangeRecord,
    Client,
    Endpoint,
    Inbound,
    Outbound,
    Setting,
    Tls,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent record store."""

    def add(self, entity: TEntity) -> None:
        """Stage the entity and flush so a generated id is available."""
        ...

    def get(self, entity_id: int) -> TEntity | None: ...

    def list_all(self) -> Sequence[TEntity]: ...

    def delete(self, entity: TEntity) -> None: ...


@runtime_checkable
class TaggedRepository[TEntity](Repository[TEntity], Protocol):
    def get_by_tag(self, tag: str) -> TEntity | None: ...

    def tag_taken(self, tag: str, *, exclude_id: int | None = None) -> bool: ...


@runtime_checkable
class InboundRepository(TaggedRepository[Inbound], Protocol):
    def get_many(self, ids: Iterable[int]) -> Sequence[Inbound]: ...

    def ids_with_tls(self, tls_id: int) -> Sequence[int]: ...


@runtime_checkable
class OutboundRepository(TaggedRepository[Outbound], Protocol):
    """Repository contract for outbounds."""


@runtime_checkable
class EndpointRepository(TaggedRepository[Endpoint], Protocol):
    def list_of_types(self, types: Iterable[str]) -> Sequence[Endpoint]: ...


@runtime_checkable
class TlsRepository(Repository[Tls], Protocol):
    def name_taken(self, name: str, *, exclude_id: int | None = None) -> bool: ...


@runtime_checkable
class ClientRepository(Repository[Client], Protocol):
    def get_many(self, ids: Iterable[int]) -> Sequence[Client]: ...

    def name_taken(self, name: str, *, exclude_id: int | None = None) -> bool: ...

    def linked_to(self, inbound_id: int, *, enabled_only: bool = False) -> Sequence[Client]:
        """Return clients whose membership set contains ``inbound_id``, ordered by id."""
        ...

    def list_enabled(self) -> Sequence[Client]: ...


@runtime_checkable
class SettingRepository(Protocol):
    def get(self, key: str) -> Setting | None: ...

    def list_all(self) -> Sequence[Setting]: ...

    def put(self, key: str, value: str) -> Setting: ...


@runtime_checkable
class ChangeRepository(Protocol):
    def append(self, record: ChangeRecord) -> None: ...

    def append_many(self, records: Iterable[ChangeRecord]) -> None: ...

    def recent(
        self,
        *,
        actor: str | None = None,
        key: str | None = None,
        limit: int,
    ) -> Sequence[ChangeRecord]:
        """Return up to ``limit`` records, newest first."""
        ...

    def count_since(self, timestamp: int) -> int: ...

    def clear(self) -> int:
        """Bulk reset; returns the number of records removed."""
        ...
