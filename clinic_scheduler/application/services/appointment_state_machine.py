import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, FrozenSet, Optional

from ...db.models import Appointment, AppointmentStatus
from ...exceptions import Forbidden, IllegalTransition, NoOp, NotFound, StaleStatus
from ..ports.identity import Actor
from ..ports.store import StoreTransaction
from .access_policy import AccessPolicy, Action
from .audit_log import AuditLog
from .slot_allocator import SlotAllocator

logger = logging.getLogger(__name__)

INITIAL_STATUS = AppointmentStatus.PENDING

TRANSITIONS: Dict[AppointmentStatus, FrozenSet[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.CONFIRMED: frozenset({
        AppointmentStatus.IN_PROGRESS,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }),
    AppointmentStatus.IN_PROGRESS: frozenset({AppointmentStatus.COMPLETED}),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status, targets in TRANSITIONS.items() if not targets)

TRANSITION_ACTIONS: Dict[AppointmentStatus, Action] = {
    AppointmentStatus.CONFIRMED: Action.CONFIRM_APPOINTMENT,
    AppointmentStatus.IN_PROGRESS: Action.START_APPOINTMENT,
    AppointmentStatus.COMPLETED: Action.COMPLETE_APPOINTMENT,
    AppointmentStatus.CANCELLED: Action.CANCEL_APPOINTMENT,
    AppointmentStatus.NO_SHOW: Action.MARK_NO_SHOW,
}


def transition_action(target: AppointmentStatus) -> Optional[Action]:
    return TRANSITION_ACTIONS.get(target)


def is_legal(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


@dataclass
class AppointmentStateMachine:
    policy: AccessPolicy
    audit_log: AuditLog
    allocator: SlotAllocator
    clock: Callable[[], datetime] = field(default=datetime.utcnow)

    def create(
        self,
        tx: StoreTransaction,
        patient_id: int,
        requested_by: Actor,
        medical_room_time_id: int,
        notes: Optional[str] = None,
    ) -> Appointment:
        now = self.clock()
        appointment = tx.add(Appointment(
            patient_id=patient_id,
            requested_by=requested_by.account_id,
            medical_room_time_id=medical_room_time_id,
            status=INITIAL_STATUS.value,
            notes=notes,
            version=0,
            created_at=now,
            updated_at=now,
        ))
        self.audit_log.append(tx, appointment.id, None, INITIAL_STATUS.value, requested_by, reason="booked", at=now)
        return appointment

    def transition(
        self,
        tx: StoreTransaction,
        appointment_id: int,
        target: AppointmentStatus,
        actor: Actor,
        reason: Optional[str] = None,
    ) -> Appointment:
        appointment = tx.get(Appointment, appointment_id)
        if appointment is None:
            raise NotFound(f"Appointment {appointment_id} not found")

        current = AppointmentStatus(appointment.status)
        if target == current:
            raise NoOp(f"Appointment {appointment_id} is already {current.value}")
        if not is_legal(current, target):
            raise IllegalTransition(f"Cannot move appointment from {current.value} to {target.value}")

        action = transition_action(target)
        if action is None or not self.policy.is_allowed(actor.role, actor.positions, action):
            raise Forbidden(f"Not permitted to move appointment to {target.value}")

        now = self.clock()
        swapped = tx.compare_and_set(
            Appointment,
            appointment_id,
            expected={"status": current.value, "version": appointment.version},
            changes={"status": target.value, "version": appointment.version + 1, "updated_at": now},
        )
        if not swapped:
            raise StaleStatus(f"Appointment {appointment_id} changed concurrently; reload and retry")

        self.audit_log.append(tx, appointment_id, current.value, target.value, actor, reason=reason, at=now)

        if target == AppointmentStatus.CANCELLED:
            self.allocator.release(tx, appointment.medical_room_time_id, appointment_id)

        logger.info(f"Appointment {appointment_id}: {current.value} -> {target.value} by account {actor.account_id}")
        return tx.get(Appointment, appointment_id)
