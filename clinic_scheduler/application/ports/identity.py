from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from ...db.models import Position, Role


@dataclass(frozen=True)
class Actor:
    account_id: int
    role: Role
    positions: FrozenSet[Position] = field(default_factory=frozenset)
    patient_id: Optional[int] = None
