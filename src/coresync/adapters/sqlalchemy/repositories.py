"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError

from coresync.adapters.sqlalchemy.mappings import (
    change_table,
    client_inbound_table,
    client_table,
    endpoint_table,
    inbound_table,
    outbound_table,
    setting_table,
    tls_table,
)
from coresync.domain.errors import StoreError
from coresync.domain.model import (
    ChangeRecord,
    Client,
    Endpoint,
    Entity,
    Inbound,
    Outbound,
    Setting,
    TaggedEntity,
    Tls,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from sqlalchemy import CursorResult, Table
    from sqlalchemy.orm import Session


def _flush(session: Session, label: str) -> None:
    try:
        session.flush()
    except SQLAlchemyError as exc:
        raise StoreError(f"failed to write {label}: {exc}") from exc


class SqlAlchemyRepository[TEntity: Entity]:
    """Shared CRUD for records keyed by an integer id."""

    def __init__(self, session: Session, entity_cls: type[TEntity], table: Table) -> None:
        self.session = session
        self._entity_cls = entity_cls
        self._table = table

    def add(self, entity: TEntity) -> None:
        self.session.add(entity)
        _flush(self.session, self._table.name)

    def get(self, entity_id: int) -> TEntity | None:
        return self.session.get(self._entity_cls, entity_id)

    def get_many(self, ids: Iterable[int]) -> Sequence[TEntity]:
        wanted = list(ids)
        if not wanted:
            return []
        stmt = (
            select(self._entity_cls)
            .where(self._table.c.id.in_(wanted))
            .order_by(self._table.c.id)
        )
        return self.session.execute(stmt).scalars().all()

    def list_all(self) -> Sequence[TEntity]:
        stmt = select(self._entity_cls).order_by(self._table.c.id)
        return self.session.execute(stmt).scalars().all()

    def delete(self, entity: TEntity) -> None:
        self.session.delete(entity)
        _flush(self.session, self._table.name)

    def _taken(self, column: str, value: str, exclude_id: int | None) -> bool:
        stmt = select(self._table.c.id).where(self._table.c[column] == value)
        if exclude_id is not None:
            stmt = stmt.where(self._table.c.id != exclude_id)
        return self.session.execute(stmt.limit(1)).first() is not None


class SqlAlchemyTaggedRepository[TEntity: TaggedEntity](SqlAlchemyRepository[TEntity]):
    def get_by_tag(self, tag: str) -> TEntity | None:
        stmt = select(self._entity_cls).where(self._table.c.tag == tag)
        return self.session.execute(stmt).scalar_one_or_none()

    def tag_taken(self, tag: str, *, exclude_id: int | None = None) -> bool:
        return self._taken("tag", tag, exclude_id)


class SqlAlchemyInboundRepository(SqlAlchemyTaggedRepository[Inbound]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, Inbound, inbound_table)

    def ids_with_tls(self, tls_id: int) -> Sequence[int]:
        stmt = (
            select(inbound_table.c.id)
            .where(inbound_table.c.tls_id == tls_id)
            .order_by(inbound_table.c.id)
        )
        return self.session.execute(stmt).scalars().all()


class SqlAlchemyOutboundRepository(SqlAlchemyTaggedRepository[Outbound]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, Outbound, outbound_table)


class SqlAlchemyEndpointRepository(SqlAlchemyTaggedRepository[Endpoint]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, Endpoint, endpoint_table)

    def list_of_types(self, types: Iterable[str]) -> Sequence[Endpoint]:
        stmt = (
            select(Endpoint)
            .where(endpoint_table.c.type.in_(list(types)))
            .order_by(endpoint_table.c.id)
        )
        return self.session.execute(stmt).scalars().all()


class SqlAlchemyTlsRepository(SqlAlchemyRepository[Tls]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, Tls, tls_table)

    def name_taken(self, name: str, *, exclude_id: int | None = None) -> bool:
        return self._taken("name", name, exclude_id)


class SqlAlchemyClientRepository(SqlAlchemyRepository[Client]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, Client, client_table)

    def name_taken(self, name: str, *, exclude_id: int | None = None) -> bool:
        return self._taken("name", name, exclude_id)

    def linked_to(self, inbound_id: int, *, enabled_only: bool = False) -> Sequence[Client]:
        stmt = (
            select(Client)
            .join(client_inbound_table, client_inbound_table.c.client_id == client_table.c.id)
            .where(client_inbound_table.c.inbound_id == inbound_id)
            .order_by(client_table.c.id)
        )
        if enabled_only:
            stmt = stmt.where(client_table.c.enable.is_(True))
        return self.session.execute(stmt).scalars().all()

    def list_enabled(self) -> Sequence[Client]:
        stmt = (
            select(Client).where(client_table.c.enable.is_(True)).order_by(client_table.c.id)
        )
        return self.session.execute(stmt).scalars().all()


class SqlAlchemySettingRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, key: str) -> Setting | None:
        stmt = select(Setting).where(setting_table.c.key == key)
        return self.session.execute(stmt).scalar_one_or_none()

    def list_all(self) -> Sequence[Setting]:
        stmt = select(Setting).order_by(setting_table.c.id)
        return self.session.execute(stmt).scalars().all()

    def put(self, key: str, value: str) -> Setting:
        setting = self.get(key)
        if setting is None:
            setting = Setting(key=key, value=value)
            self.session.add(setting)
        else:
            setting.value = value
        _flush(self.session, "setting")
        return setting


class SqlAlchemyChangeRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def append(self, record: ChangeRecord) -> None:
        self.session.add(record)
        _flush(self.session, "change")

    def append_many(self, records: Iterable[ChangeRecord]) -> None:
        self.session.add_all(list(records))
        _flush(self.session, "change")

    def recent(
        self,
        *,
        actor: str | None = None,
        key: str | None = None,
        limit: int,
    ) -> Sequence[ChangeRecord]:
        stmt = select(ChangeRecord)
        if actor:
            stmt = stmt.where(change_table.c.actor == actor)
        if key:
            stmt = stmt.where(change_table.c.key == key)
        stmt = stmt.order_by(change_table.c.id.desc()).limit(limit)
        return self.session.execute(stmt).scalars().all()

    def count_since(self, timestamp: int) -> int:
        stmt = (
            select(func.count())
            .select_from(change_table)
            .where(change_table.c.date_time > timestamp)
        )
        return int(self.session.execute(stmt).scalar_one())

    def clear(self) -> int:
        result = cast("CursorResult[tuple[()]]", self.session.execute(delete(change_table)))
        return result.rowcount
