"""The authenticated caller, as handed over by the upstream auth layer."""

from dataclasses import dataclass
from typing import Optional

from .enums import ActorRole


@dataclass(frozen=True)
class Actor:
    id: Optional[str]
    role: ActorRole = ActorRole.CLIENT

    @property
    def is_privileged(self) -> bool:
        """Establishment staff and admins bypass client-facing booking policies."""
        return self.role.is_privileged
