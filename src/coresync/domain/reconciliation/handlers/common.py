"""Helpers shared by the per-class mutation handlers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from coresync.domain.errors import (
    AdapterError,
    CoreNotFoundError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from coresync.domain.links import replace_for_inbound
from coresync.domain.payloads import parse_target

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from coresync.domain.model import Action, Entity, Inbound, ObjectClass
    from coresync.domain.ports import CoreSyncRepositories, TaggedRepository

log = logging.getLogger(__name__)


def require[TEntity](entity: TEntity | None, label: str, key: object) -> TEntity:
    if entity is None:
        raise NotFoundError(f"{label} {key!r} not found")
    return entity


def require_id(entity_id: int | None, label: str) -> int:
    if entity_id is None:
        raise ValidationError(f"{label} edit requires an id")
    return entity_id


def persisted_id(entity: Entity, label: str) -> int:
    """Return the id the store assigned on flush."""

    if entity.id is None:
        raise StoreError(f"{label} has no id after flush")
    return entity.id


def unsupported(object_class: ObjectClass, action: Action) -> ValidationError:
    return ValidationError(f"action {action.value!r} is not supported for {object_class.value}")


def resolve_target[TEntity](
    repository: TaggedRepository[TEntity],
    label: str,
    payload: object,
) -> TEntity:
    """Load a delete target given either its id or its tag."""

    target = parse_target(payload)
    if isinstance(target, int):
        return require(repository.get(target), label, target)
    return require(repository.get_by_tag(target), label, target)


def patch_core(
    add: Callable[[Mapping[str, object]], None],
    remove: Callable[[str], None],
    config: Mapping[str, object],
    *,
    previous_tag: str | None = None,
) -> None:
    """Replace an entry in the live core.

    Removing the previous tag is best effort; the add is not.
    """

    if previous_tag is not None:
        try:
            remove(previous_tag)
        except CoreNotFoundError:
            log.debug("Core did not hold %s before replacement", previous_tag)
        except AdapterError as exc:
            log.warning("Removing %s from core failed, continuing with add: %s", previous_tag, exc)
    add(config)


def remove_from_core(remove: Callable[[str], None], tag: str) -> None:
    try:
        remove(tag)
    except CoreNotFoundError:
        log.info("Core did not hold %s, nothing to remove", tag)


def resync_linked_clients(
    repositories: CoreSyncRepositories,
    inbound: Inbound,
    *,
    previous_tag: str | None = None,
) -> int:
    """Regenerate the local descriptors every linked client holds for ``inbound``."""

    if inbound.id is None:
        return 0
    clients = repositories.clients.linked_to(inbound.id)
    for client in clients:
        client.links = replace_for_inbound(client, inbound, previous_tag=previous_tag)
        repositories.clients.add(client)
    return len(clients)
