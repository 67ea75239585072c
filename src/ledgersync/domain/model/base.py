"""
Base building blocks:
identity, optimistic version, entity-kind contract.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar
from uuid import UUID, uuid4

if TYPE_CHECKING:
    from datetime import datetime

    from ledgersync.domain.model.enums import EntityKind


INITIAL_VERSION = 1


def new_id() -> UUID:
    return uuid4()


@dataclass(kw_only=True)
class VersionedRecord:
    """Mutable master-data record guarded by an integer version.

    ``code`` is the human-assigned business key; it is unique per kind.
    """

    id: UUID = field(default_factory=new_id)
    code: str
    version: int = INITIAL_VERSION
    updated_at: datetime | None = None

    # class-level discriminator; subclasses must override
    ENTITY_KIND: ClassVar[EntityKind]

    @property
    def entity_kind(self) -> EntityKind:
        return self.ENTITY_KIND
