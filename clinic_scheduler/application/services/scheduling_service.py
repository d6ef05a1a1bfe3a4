import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from ...db.models import (
    Appointment,
    AppointmentStatus,
    AppointmentStatusLog,
    DiagnosisSuggestion,
    MedicalRoom,
    MedicalRoomTime,
    Patient,
    Role,
    Staff,
)
from ...exceptions import (
    Forbidden,
    NotFound,
    SchedulingError,
    SlotConflict,
    SlotOverlap,
    StaleStatus,
    ValidationError,
)
from ...utils import to_utc_naive
from ..ports.audit_logger import AuditLogger
from ..ports.identity import Actor
from ..ports.store import Store, TransientStorageError
from .access_policy import AccessPolicy, Action
from .appointment_state_machine import AppointmentStateMachine
from .atomic import AtomicRunner
from .audit_log import AuditLog
from .diagnosis_ledger import DiagnosisSuggestionLedger
from .slot_allocator import SlotAllocator

logger = logging.getLogger(__name__)

MAX_NOTES_LENGTH = 1000
MAX_PAGE_SIZE = 100


def _require_id(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{name} must be a positive integer")
    return value


def _parse_status(value) -> AppointmentStatus:
    try:
        return AppointmentStatus(value)
    except ValueError:
        valid = [s.value for s in AppointmentStatus]
        raise ValidationError(f"Invalid status. Must be one of: {valid}")


@dataclass
class AppointmentPage:
    items: List[Appointment]
    total: int
    page: int
    limit: int


@dataclass
class SchedulingService:
    store: Store
    policy: AccessPolicy
    allocator: SlotAllocator
    state_machine: AppointmentStateMachine
    audit_log: AuditLog
    ledger: DiagnosisSuggestionLedger
    audit_logger: AuditLogger
    runner: AtomicRunner
    allow_past_slots: bool = False
    clock: Callable[[], datetime] = field(default=datetime.utcnow)

    def _ensure_own_patient(self, actor: Actor, patient_id: int) -> None:
        if actor.role == Role.PATIENT and actor.patient_id != patient_id:
            raise Forbidden("Patients may only act on their own appointments")

    def book_appointment(self, actor: Actor, medical_room_time_id: int, patient_id: int, notes: Optional[str] = None) -> Appointment:
        _require_id("medical_room_time_id", medical_room_time_id)
        _require_id("patient_id", patient_id)
        if notes is not None and len(notes) > MAX_NOTES_LENGTH:
            raise ValidationError(f"notes must be at most {MAX_NOTES_LENGTH} characters")

        self.policy.require(actor, Action.BOOK_APPOINTMENT)
        self._ensure_own_patient(actor, patient_id)

        def work(tx) -> Appointment:
            if tx.get(Patient, patient_id) is None:
                raise NotFound(f"Patient {patient_id} not found")
            appointment = self.state_machine.create(tx, patient_id, actor, medical_room_time_id, notes)
            self.allocator.reserve(tx, medical_room_time_id, appointment.id)
            return appointment

        try:
            appointment = self.runner.run(
                work,
                on_exhausted=lambda: SlotConflict(f"Medical room time {medical_room_time_id} could not be reserved"),
                label=f"booking of medical room time {medical_room_time_id}",
            )
        except SchedulingError as e:
            self.audit_logger.log(
                "appointment.book",
                actor.account_id,
                success=False,
                details={"medical_room_time_id": medical_room_time_id, "patient_id": patient_id, "error": e.code},
            )
            raise
        self.audit_logger.log(
            "appointment.book",
            actor.account_id,
            appointment_id=appointment.id,
            details={"medical_room_time_id": medical_room_time_id, "patient_id": patient_id, "status": appointment.status},
        )
        return appointment

    def change_status(self, actor: Actor, appointment_id: int, target_status, reason: Optional[str] = None) -> Appointment:
        _require_id("appointment_id", appointment_id)
        target = _parse_status(target_status)

        def work(tx) -> Appointment:
            appointment = tx.get(Appointment, appointment_id)
            if appointment is None:
                raise NotFound(f"Appointment {appointment_id} not found")
            self._ensure_own_patient(actor, appointment.patient_id)
            return self.state_machine.transition(tx, appointment_id, target, actor, reason=reason)

        try:
            appointment = self.runner.run(
                work,
                on_exhausted=lambda: StaleStatus(f"Appointment {appointment_id} could not be updated"),
                label=f"transition of appointment {appointment_id}",
            )
        except SchedulingError as e:
            self.audit_logger.log(
                "appointment.status",
                actor.account_id,
                appointment_id=appointment_id,
                success=False,
                details={"target": target.value, "error": e.code},
            )
            raise
        self.audit_logger.log(
            "appointment.status",
            actor.account_id,
            appointment_id=appointment_id,
            details={"target": target.value, "reason": reason},
        )
        return appointment

    def add_diagnosis_suggestion(
        self,
        appointment_id: int,
        disease_id: str,
        confidence,
        ai_suggested: bool = True,
        description: Optional[str] = None,
        actor: Optional[Actor] = None,
    ) -> DiagnosisSuggestion:
        _require_id("appointment_id", appointment_id)
        if actor is not None:
            self.policy.require(actor, Action.RECORD_DIAGNOSIS_SUGGESTION)
        with self.store.atomic() as tx:
            return self.ledger.record(tx, appointment_id, disease_id, confidence, ai_suggested, description)

    def list_diagnosis_suggestions(self, appointment_id: int, actor: Optional[Actor] = None) -> List[DiagnosisSuggestion]:
        if actor is not None:
            self.policy.require(actor, Action.VIEW_APPOINTMENT_HISTORY)
        with self.store.atomic() as tx:
            if tx.get(Appointment, appointment_id) is None:
                raise NotFound(f"Appointment {appointment_id} not found")
            return self.ledger.for_appointment(tx, appointment_id)

    def get_appointment_history(self, appointment_id: int, actor: Optional[Actor] = None) -> List[AppointmentStatusLog]:
        if actor is not None:
            self.policy.require(actor, Action.VIEW_APPOINTMENT_HISTORY)
        with self.store.atomic() as tx:
            if tx.get(Appointment, appointment_id) is None:
                raise NotFound(f"Appointment {appointment_id} not found")
            return self.audit_log.history(tx, appointment_id)

    def get_appointment(self, actor: Actor, appointment_id: int) -> Appointment:
        self.policy.require(actor, Action.VIEW_APPOINTMENTS)
        with self.store.atomic() as tx:
            appointment = tx.get(Appointment, appointment_id)
        if appointment is None:
            raise NotFound(f"Appointment {appointment_id} not found")
        self._ensure_own_patient(actor, appointment.patient_id)
        return appointment

    def list_appointments(
        self,
        actor: Actor,
        patient_id: Optional[int] = None,
        status: Optional[str] = None,
        room_id: Optional[int] = None,
        doctor_id: Optional[int] = None,
        page: int = 1,
        limit: int = 10,
    ) -> AppointmentPage:
        self.policy.require(actor, Action.VIEW_APPOINTMENTS)
        if page < 1 or not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(f"page must be >= 1 and limit between 1 and {MAX_PAGE_SIZE}")
        if actor.role == Role.PATIENT:
            if patient_id is not None and patient_id != actor.patient_id:
                raise Forbidden("Patients may only list their own appointments")
            if actor.patient_id is None:
                return AppointmentPage(items=[], total=0, page=page, limit=limit)
            patient_id = actor.patient_id

        filters = {}
        if patient_id is not None:
            filters["patient_id"] = patient_id
        if status is not None:
            filters["status"] = _parse_status(status).value

        with self.store.atomic() as tx:
            rows = tx.find(Appointment, **filters)
            if room_id is not None or doctor_id is not None:
                kept = []
                for appointment in rows:
                    slot = tx.get(MedicalRoomTime, appointment.medical_room_time_id)
                    if slot is None:
                        continue
                    if room_id is not None and slot.room_id != room_id:
                        continue
                    if doctor_id is not None and slot.doctor_id != doctor_id:
                        continue
                    kept.append(appointment)
                rows = kept

        rows.sort(key=lambda a: a.created_at, reverse=True)
        start = (page - 1) * limit
        return AppointmentPage(items=rows[start:start + limit], total=len(rows), page=page, limit=limit)

    def create_slot(
        self,
        actor: Actor,
        room_id: int,
        from_time: datetime,
        to_time: datetime,
        doctor_id: Optional[int] = None,
    ) -> MedicalRoomTime:
        self.policy.require(actor, Action.MANAGE_SLOTS)
        _require_id("room_id", room_id)
        from_time, to_time = to_utc_naive(from_time), to_utc_naive(to_time)
        if from_time >= to_time:
            raise ValidationError("Start time must be before end time")
        if not self.allow_past_slots and from_time <= self.clock():
            raise ValidationError("Cannot create time slots in the past")

        def work(tx) -> MedicalRoomTime:
            room = tx.get(MedicalRoom, room_id)
            if room is None:
                raise NotFound(f"Medical room {room_id} not found")
            if doctor_id is not None and tx.get(Staff, doctor_id) is None:
                raise NotFound(f"Staff member {doctor_id} not found")

            overlapping = [
                slot for slot in tx.find(MedicalRoomTime, room_id=room_id)
                if slot.from_time < to_time and from_time < slot.to_time
            ]
            if overlapping:
                raise SlotOverlap(f"Time slot overlaps with existing time slot {overlapping[0].id} in room {room_id}")

            # Claim the room's slot schedule; a concurrent writer makes this miss and the unit is retried
            claimed = tx.compare_and_set(
                MedicalRoom,
                room_id,
                expected={"slot_version": room.slot_version},
                changes={"slot_version": room.slot_version + 1},
            )
            if not claimed:
                raise TransientStorageError(f"Slot schedule of room {room_id} changed concurrently")
            return tx.add(MedicalRoomTime(room_id=room_id, doctor_id=doctor_id, from_time=from_time, to_time=to_time))

        slot = self.runner.run(
            work,
            on_exhausted=lambda: SlotOverlap(f"Slot schedule of room {room_id} is being changed concurrently"),
            label=f"slot creation in room {room_id}",
        )
        logger.info(f"Created medical room time {slot.id} in room {room_id}")
        return slot

    def list_available_slots(self, room_id: Optional[int] = None, doctor_id: Optional[int] = None) -> List[MedicalRoomTime]:
        filters = {"appointment_id": None}
        if room_id is not None:
            filters["room_id"] = room_id
        if doctor_id is not None:
            filters["doctor_id"] = doctor_id
        with self.store.atomic() as tx:
            slots = tx.find(MedicalRoomTime, **filters)
        return sorted(slots, key=lambda s: s.from_time)
