"""Settings and base-document saves."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from coresync.domain.model import Action, ObjectClass
from coresync.domain.reconciliation.context import MutationOutcome
from coresync.domain.reconciliation.handlers.common import unsupported
from coresync.domain.settings import CONFIG_KEY, coerce_settings

if TYPE_CHECKING:
    from coresync.domain.reconciliation.context import MutationContext

log = logging.getLogger(__name__)


def save_settings(context: MutationContext, action: Action, payload: object) -> MutationOutcome:
    if action not in (Action.SET, Action.EDIT):
        raise unsupported(ObjectClass.SETTINGS, action)
    values = coerce_settings(payload)
    for key, value in values.items():
        context.repositories.settings.put(key, value)
    log.info("Updated settings: %s", ", ".join(sorted(values)))
    return MutationOutcome(objects=(ObjectClass.SETTINGS,))


def _raw_document(payload: object) -> str:
    if isinstance(payload, bytes | bytearray):
        return payload.decode()
    if isinstance(payload, str):
        return payload
    return json.dumps(payload)


def save_config(context: MutationContext, action: Action, payload: object) -> MutationOutcome:
    """Replace the base document and fully restart the core with it.

    Base sections cannot be hot-patched, so this path always stops and starts.
    """

    if action not in (Action.SET, Action.EDIT):
        raise unsupported(ObjectClass.CONFIG, action)
    raw = _raw_document(payload)
    document = context.assembler.assemble(raw)
    context.repositories.settings.put(CONFIG_KEY, raw)
    core = context.core
    if core.is_running():
        core.stop()
    core.start(document)
    log.info(
        "Core restarted with new base document (%d inbounds, %d outbounds, %d endpoints)",
        len(document.get("inbounds", [])),
        len(document.get("outbounds", [])),
        len(document.get("endpoints", [])),
    )
    return MutationOutcome(objects=(ObjectClass.CONFIG,))
