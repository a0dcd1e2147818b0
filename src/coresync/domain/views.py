"""Read-side projections for callers of the engine (CLI, HTTP layers)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from coresync.domain.model import REDACTED, SECRET_EXT_KEYS
from coresync.domain.projection import USER_INBOUND_TYPES
from coresync.domain.settings import HIDDEN_KEYS, REGISTRY, with_defaults

if TYPE_CHECKING:
    from collections.abc import Iterable

    from coresync.domain.model import ChangeRecord, Client, Document, Endpoint
    from coresync.domain.ports import CoreSyncRepositories


def list_inbounds(repositories: CoreSyncRepositories) -> list[Document]:
    views: list[Document] = []
    for inbound in repositories.inbounds.list_all():
        view: Document = {
            "id": inbound.id,
            "type": inbound.type,
            "tag": inbound.tag,
            "tls_id": inbound.tls_id,
            "listen": inbound.options.get("listen"),
            "listen_port": inbound.options.get("listen_port"),
        }
        if inbound.type in USER_INBOUND_TYPES and inbound.id is not None:
            view["users"] = [client.name for client in repositories.clients.linked_to(inbound.id)]
        views.append(view)
    return views


def list_outbounds(repositories: CoreSyncRepositories) -> list[Document]:
    return [
        {"id": outbound.id, **outbound.core_config()}
        for outbound in repositories.outbounds.list_all()
    ]


def _redacted(ext: Document) -> Document:
    return {
        key: REDACTED if key in SECRET_EXT_KEYS and value else value for key, value in ext.items()
    }


def endpoint_view(endpoint: Endpoint) -> Document:
    return {
        **endpoint.options,
        "id": endpoint.id,
        "type": endpoint.type,
        "tag": endpoint.tag,
        "ext": _redacted(endpoint.ext),
    }


def list_endpoints(repositories: CoreSyncRepositories) -> list[Document]:
    return [endpoint_view(endpoint) for endpoint in repositories.endpoints.list_all()]


def list_tls(repositories: CoreSyncRepositories) -> list[Document]:
    return [
        {"id": tls.id, "name": tls.name, "server": tls.server, "client": tls.client}
        for tls in repositories.tls.list_all()
    ]


def _client_summary(client: Client) -> Document:
    return {
        "id": client.id,
        "enable": client.enable,
        "name": client.name,
        "group": client.group,
        "desc": client.desc,
        "inbounds": list(client.inbounds),
        "up": client.up,
        "down": client.down,
        "volume": client.volume,
        "expiry": client.expiry,
    }


def list_clients(repositories: CoreSyncRepositories) -> list[Document]:
    """Clients without credentials or descriptors."""

    return [_client_summary(client) for client in repositories.clients.list_all()]


def get_clients(repositories: CoreSyncRepositories, ids: Iterable[int]) -> list[Document]:
    return [
        {**_client_summary(client), "config": client.config, "links": client.links}
        for client in repositories.clients.get_many(ids)
    ]


def all_settings(repositories: CoreSyncRepositories) -> dict[str, Any]:
    """Every recognised setting, seeding missing defaults into the store.

    The caller commits so that generated defaults (the secret) stay stable.
    """

    stored = {setting.key: setting.value for setting in repositories.settings.list_all()}
    for key, spec in REGISTRY.items():
        if key not in stored and key != "version":
            stored[key] = repositories.settings.put(key, spec.default_value()).value
    return {key: value for key, value in with_defaults(stored).items() if key not in HIDDEN_KEYS}


def change_view(record: ChangeRecord) -> Document:
    return {
        "id": record.id,
        "dateTime": record.date_time,
        "actor": record.actor,
        "key": record.key,
        "action": record.action,
        "obj": record.obj,
    }
