"""Per-request state handed to the mutation handlers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from coresync.domain.assembler import ConfigAssembler

if TYPE_CHECKING:
    from collections.abc import Callable

    from coresync.domain.model import Action, ObjectClass
    from coresync.domain.ports import CoreAdapter, CoreSyncRepositories, PeerProvisioner


@dataclass(slots=True, kw_only=True)
class MutationContext:
    repositories: CoreSyncRepositories
    core: CoreAdapter
    hostname: str
    provisioner: PeerProvisioner | None = None
    init_users: tuple[int, ...] = ()

    @property
    def assembler(self) -> ConfigAssembler:
        return ConfigAssembler(self.repositories)


@dataclass(slots=True, kw_only=True)
class MutationOutcome:
    """What the mutation step touched and which inbounds need a post-commit restart."""

    objects: tuple[ObjectClass, ...]
    restart_inbounds: set[int] = field(default_factory=set)


type MutationHandler = Callable[[MutationContext, Action, object], MutationOutcome]
