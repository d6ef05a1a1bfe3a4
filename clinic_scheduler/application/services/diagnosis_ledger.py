import math
from dataclasses import dataclass, field
from datetime import datetime
from numbers import Real
from typing import Callable, List, Optional

from ...db.models import Appointment, DiagnosisSuggestion
from ...exceptions import InvalidConfidence, NotFound, ValidationError
from ..ports.store import StoreTransaction


def validate_confidence(confidence) -> float:
    if isinstance(confidence, bool) or not isinstance(confidence, Real):
        raise InvalidConfidence("Confidence must be a number between 0 and 1")
    value = float(confidence)
    if math.isnan(value) or not 0.0 <= value <= 1.0:
        raise InvalidConfidence(f"Confidence {confidence} is outside [0, 1]")
    return value


@dataclass
class DiagnosisSuggestionLedger:
    """Advisory diagnoses attached to an appointment.

    Nothing in booking or status handling reads these rows.
    """

    clock: Callable[[], datetime] = field(default=datetime.utcnow)

    def record(
        self,
        tx: StoreTransaction,
        appointment_id: int,
        disease_id: str,
        confidence,
        ai_suggested: bool = True,
        description: Optional[str] = None,
    ) -> DiagnosisSuggestion:
        value = validate_confidence(confidence)
        if not disease_id or not str(disease_id).strip():
            raise ValidationError("disease_id is required")
        if tx.get(Appointment, appointment_id) is None:
            raise NotFound(f"Appointment {appointment_id} not found")
        return tx.add(DiagnosisSuggestion(
            appointment_id=appointment_id,
            disease_id=str(disease_id).strip(),
            confidence=value,
            ai_suggested=bool(ai_suggested),
            description=description,
            created_at=self.clock(),
        ))

    def for_appointment(self, tx: StoreTransaction, appointment_id: int) -> List[DiagnosisSuggestion]:
        return tx.find(DiagnosisSuggestion, appointment_id=appointment_id)
