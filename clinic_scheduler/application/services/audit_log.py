from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from ...db.models import AppointmentStatusLog
from ..ports.identity import Actor
from ..ports.store import StoreTransaction


@dataclass
class AuditLog:
    """Append-only status history. Entries are only ever inserted, inside the caller's transaction."""

    def append(
        self,
        tx: StoreTransaction,
        appointment_id: int,
        previous_status: Optional[str],
        new_status: str,
        actor: Actor,
        reason: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> AppointmentStatusLog:
        entry = AppointmentStatusLog(
            appointment_id=appointment_id,
            previous_status=previous_status,
            new_status=new_status,
            actor_id=actor.account_id,
            actor_role=actor.role.value,
            reason=reason,
            created_at=at or datetime.utcnow(),
        )
        return tx.add(entry)

    def history(self, tx: StoreTransaction, appointment_id: int) -> List[AppointmentStatusLog]:
        return tx.find(AppointmentStatusLog, appointment_id=appointment_id)
