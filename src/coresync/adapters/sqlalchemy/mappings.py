"""SQLAlchemy mapping metadata for the coresync domain model."""

from __future__ import annotations

import logging
from functools import cache

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    orm,
)
from sqlalchemy.orm import relationship

from coresync.domain.model import (
    ChangeRecord,
    Client,
    ClientInbound,
    Endpoint,
    Inbound,
    Outbound,
    Setting,
    Tls,
)

log = logging.getLogger(__name__)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Core-facing records --------------------------------------------------------

tls_table = Table(
    "tls",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String, nullable=False, unique=True),
    Column("server", JSON, nullable=False),
    Column("client", JSON, nullable=False),
)

inbound_table = Table(
    "inbound",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("type", String, nullable=False),
    Column("tag", String, nullable=False, unique=True),
    Column("tls_id", Integer, nullable=True, index=True),
    Column("options", JSON, nullable=False),
    Column("addrs", JSON, nullable=False),
    Column("out_json", JSON, nullable=False),
)

outbound_table = Table(
    "outbound",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("type", String, nullable=False),
    Column("tag", String, nullable=False, unique=True),
    Column("options", JSON, nullable=False),
)

endpoint_table = Table(
    "endpoint",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("type", String, nullable=False),
    Column("tag", String, nullable=False, unique=True),
    Column("options", JSON, nullable=False),
    Column("ext", JSON, nullable=False),
)

# Clients ------------------------------------------------------------------

client_table = Table(
    "client",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("enable", Boolean, nullable=False),
    Column("name", String, nullable=False, unique=True),
    Column("group", String, nullable=False),
    Column("desc", String, nullable=False),
    Column("config", JSON, nullable=False),
    Column("links", JSON, nullable=False),
    Column("up", BigInteger, nullable=False),
    Column("down", BigInteger, nullable=False),
    Column("volume", BigInteger, nullable=False),
    Column("expiry", BigInteger, nullable=False),
)

# no foreign key to inbound: deleting an inbound sweeps memberships explicitly
client_inbound_table = Table(
    "client_inbound",
    mapper_registry.metadata,
    Column(
        "client_id", Integer, ForeignKey("client.id", ondelete="CASCADE"), primary_key=True
    ),
    Column("inbound_id", Integer, primary_key=True, index=True),
)

# Settings and audit -----------------------------------------------------------

setting_table = Table(
    "setting",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("key", String, nullable=False, unique=True),
    Column("value", Text, nullable=False),
)

change_table = Table(
    "change",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("date_time", BigInteger, nullable=False, index=True),
    Column("actor", String, nullable=False),
    Column("key", String, nullable=False),
    Column("action", String, nullable=False),
    Column("obj", JSON, nullable=True),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(Tls, tls_table)
    mapper_registry.map_imperatively(Inbound, inbound_table)
    mapper_registry.map_imperatively(Outbound, outbound_table)
    mapper_registry.map_imperatively(Endpoint, endpoint_table)
    mapper_registry.map_imperatively(ClientInbound, client_inbound_table)
    mapper_registry.map_imperatively(
        Client,
        client_table,
        properties={
            "_inbound_links": relationship(
                ClientInbound,
                cascade="all, delete-orphan",
                order_by=client_inbound_table.c.inbound_id,
            ),
        },
    )
    mapper_registry.map_imperatively(Setting, setting_table)
    mapper_registry.map_imperatively(ChangeRecord, change_table)

    return mapper_registry
