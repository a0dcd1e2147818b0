"""Link synchronizer: share-link descriptors derived from client credentials."""

from __future__ import annotations

from coresync.domain.links.sync import (
    Descriptor,
    drop_for_inbound,
    is_local,
    local_descriptors,
    regenerate,
    replace_for_inbound,
)
from coresync.domain.links.uris import BUILDERS

__all__ = [
    "BUILDERS",
    "Descriptor",
    "drop_for_inbound",
    "is_local",
    "local_descriptors",
    "regenerate",
    "replace_for_inbound",
]
