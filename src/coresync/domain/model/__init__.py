"""Public domain model surface."""

from __future__ import annotations

from coresync.domain.model.audit import ChangeRecord, Setting
from coresync.domain.model.base import Document, Entity, TaggedEntity
from coresync.domain.model.client import Client, ClientInbound
from coresync.domain.model.enums import Action, LinkOrigin, ObjectClass
from coresync.domain.model.proxy import REDACTED, SECRET_EXT_KEYS, Endpoint, Inbound, Outbound, Tls

__all__ = [
    "REDACTED",
    "SECRET_EXT_KEYS",
    "Action",
    "ChangeRecord",
    "Client",
    "ClientInbound",
    "Document",
    "Endpoint",
    "Entity",
    "Inbound",
    "LinkOrigin",
    "ObjectClass",
    "Outbound",
    "Setting",
    "TaggedEntity",
    "Tls",
]
