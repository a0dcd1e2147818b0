"""Per-class mutation handlers used by the save orchestrator."""

from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from coresync.domain.model import ObjectClass
from coresync.domain.reconciliation.handlers.clients import save_clients
from coresync.domain.reconciliation.handlers.endpoints import save_endpoints
from coresync.domain.reconciliation.handlers.inbounds import save_inbounds
from coresync.domain.reconciliation.handlers.outbounds import save_outbounds
from coresync.domain.reconciliation.handlers.settings import save_config, save_settings
from coresync.domain.reconciliation.handlers.tls import save_tls

if TYPE_CHECKING:
    from collections.abc import Mapping

    from coresync.domain.reconciliation.context import MutationHandler

HANDLERS: Final[Mapping[ObjectClass, MutationHandler]] = MappingProxyType(
    {
        ObjectClass.CLIENTS: save_clients,
        ObjectClass.TLS: save_tls,
        ObjectClass.INBOUNDS: save_inbounds,
        ObjectClass.OUTBOUNDS: save_outbounds,
        ObjectClass.ENDPOINTS: save_endpoints,
        ObjectClass.SETTINGS: save_settings,
        ObjectClass.CONFIG: save_config,
    }
)

__all__ = ["HANDLERS"]
