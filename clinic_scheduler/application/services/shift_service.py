import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from ...db.models import (
    MedicalRoom,
    MedicalRoomTime,
    Position,
    PositionRecord,
    PositionStaff,
    ShiftWorking,
    Staff,
)
from ...exceptions import NotFound, ShiftConflict, ValidationError
from ...utils import to_utc_naive
from ..ports.identity import Actor
from ..ports.store import StoreTransaction, TransientStorageError
from .access_policy import AccessPolicy, Action
from .atomic import AtomicRunner

logger = logging.getLogger(__name__)

SHIFT_STATUSES = ("upcoming", "active", "completed")
MAX_PAGE_SIZE = 100


def _covers_slot(shift: ShiftWorking, slot: MedicalRoomTime) -> bool:
    if shift.room_id != slot.room_id:
        return False
    if slot.doctor_id is not None and shift.doctor_id != slot.doctor_id:
        return False
    return shift.covers(slot.from_time, slot.to_time)


@dataclass
class ShiftPage:
    items: List[ShiftWorking]
    total: int
    page: int
    limit: int


@dataclass
class ShiftService:
    runner: AtomicRunner
    policy: AccessPolicy
    allow_past: bool = False
    clock: Callable[[], datetime] = field(default=datetime.utcnow)

    def _conflicts(self, tx: StoreTransaction, doctor_id: int, from_time: datetime, to_time: datetime, exclude_shift_id: Optional[int] = None) -> List[ShiftWorking]:
        return [
            shift for shift in tx.find(ShiftWorking, doctor_id=doctor_id)
            if shift.id != exclude_shift_id and shift.overlaps(from_time, to_time)
        ]

    def _is_doctor(self, tx: StoreTransaction, staff_id: int) -> bool:
        for link in tx.find(PositionStaff, staff_id=staff_id):
            position = tx.get(PositionRecord, link.position_id)
            if position is not None and position.name == Position.DOCTOR.value:
                return True
        return False

    def _check_assignment(self, tx: StoreTransaction, doctor_id: int, room_id: int) -> Staff:
        staff = tx.get(Staff, doctor_id)
        if staff is None:
            raise NotFound(f"Staff member {doctor_id} not found")
        if tx.get(MedicalRoom, room_id) is None:
            raise NotFound(f"Medical room {room_id} not found")
        if not self._is_doctor(tx, doctor_id):
            raise ValidationError(f"Staff member {doctor_id} does not hold the doctor position")
        return staff

    def _stranded_slots(self, tx: StoreTransaction, shift: ShiftWorking, replacement: Optional[ShiftWorking] = None) -> List[MedicalRoomTime]:
        """Booked slots covered by ``shift`` that no other shift (or ``replacement``) would cover."""
        others = [s for s in tx.find(ShiftWorking, room_id=shift.room_id) if s.id != shift.id]
        if replacement is not None:
            others.append(replacement)
        return [
            slot for slot in tx.find(MedicalRoomTime, room_id=shift.room_id)
            if slot.appointment_id is not None
            and _covers_slot(shift, slot)
            and not any(_covers_slot(other, slot) for other in others)
        ]

    def _claim_schedule(self, tx: StoreTransaction, staff: Staff) -> None:
        # A concurrent writer makes this miss and the unit is retried
        claimed = tx.compare_and_set(
            Staff,
            staff.id,
            expected={"shift_version": staff.shift_version},
            changes={"shift_version": staff.shift_version + 1},
        )
        if not claimed:
            raise TransientStorageError(f"Schedule of staff member {staff.id} changed concurrently")

    def _check_not_past(self, from_time: datetime) -> None:
        if not self.allow_past and from_time <= self.clock():
            raise ValidationError("Cannot create shifts in the past")

    def check_shift_conflicts(self, doctor_id: int, from_time: datetime, to_time: datetime, exclude_shift_id: Optional[int] = None) -> List[ShiftWorking]:
        with self.runner.store.atomic() as tx:
            return self._conflicts(tx, doctor_id, to_utc_naive(from_time), to_utc_naive(to_time), exclude_shift_id)

    def create_shift(self, actor: Actor, doctor_id: int, room_id: int, from_time: datetime, to_time: datetime) -> ShiftWorking:
        self.policy.require(actor, Action.MANAGE_SHIFTS)
        from_time, to_time = to_utc_naive(from_time), to_utc_naive(to_time)
        if from_time >= to_time:
            raise ValidationError("Start time must be before end time")
        self._check_not_past(from_time)

        def work(tx: StoreTransaction) -> ShiftWorking:
            staff = self._check_assignment(tx, doctor_id, room_id)
            conflicts = self._conflicts(tx, doctor_id, from_time, to_time)
            if conflicts:
                raise ShiftConflict(f"Shift conflicts with {len(conflicts)} existing shift(s) for staff member {doctor_id}")
            self._claim_schedule(tx, staff)
            return tx.add(ShiftWorking(doctor_id=doctor_id, room_id=room_id, from_time=from_time, to_time=to_time))

        shift = self.runner.run(
            work,
            on_exhausted=lambda: ShiftConflict(f"Schedule of staff member {doctor_id} is being changed concurrently"),
            label=f"shift creation for staff member {doctor_id}",
        )
        logger.info(f"Created shift {shift.id} for staff member {doctor_id} in room {room_id}")
        return shift

    def update_shift(
        self,
        actor: Actor,
        shift_id: int,
        doctor_id: Optional[int] = None,
        room_id: Optional[int] = None,
        from_time: Optional[datetime] = None,
        to_time: Optional[datetime] = None,
    ) -> ShiftWorking:
        """Move or reassign a shift. Booked slots that would lose their only covering shift block the change."""
        self.policy.require(actor, Action.MANAGE_SHIFTS)
        from_time, to_time = to_utc_naive(from_time), to_utc_naive(to_time)

        def work(tx: StoreTransaction) -> ShiftWorking:
            shift = tx.get(ShiftWorking, shift_id)
            if shift is None:
                raise NotFound(f"Shift {shift_id} not found")
            new_doctor = doctor_id if doctor_id is not None else shift.doctor_id
            new_room = room_id if room_id is not None else shift.room_id
            new_from = from_time if from_time is not None else shift.from_time
            new_to = to_time if to_time is not None else shift.to_time
            if new_from >= new_to:
                raise ValidationError("Start time must be before end time")
            if from_time is not None:
                self._check_not_past(new_from)

            staff = self._check_assignment(tx, new_doctor, new_room)
            conflicts = self._conflicts(tx, new_doctor, new_from, new_to, exclude_shift_id=shift.id)
            if conflicts:
                raise ShiftConflict("Updated shift conflicts with existing schedule")

            replacement = ShiftWorking(doctor_id=new_doctor, room_id=new_room, from_time=new_from, to_time=new_to)
            stranded = self._stranded_slots(tx, shift, replacement)
            if stranded:
                raise ShiftConflict(f"{len(stranded)} booked time slot(s) would fall outside every shift")

            self._claim_schedule(tx, staff)
            if new_doctor != shift.doctor_id:
                previous = tx.get(Staff, shift.doctor_id)
                if previous is not None:
                    self._claim_schedule(tx, previous)
            tx.compare_and_set(
                ShiftWorking,
                shift.id,
                expected={},
                changes={"doctor_id": new_doctor, "room_id": new_room, "from_time": new_from, "to_time": new_to},
            )
            return tx.get(ShiftWorking, shift.id)

        shift = self.runner.run(
            work,
            on_exhausted=lambda: ShiftConflict(f"Shift {shift_id} is being changed concurrently"),
            label=f"update of shift {shift_id}",
        )
        logger.info(f"Updated shift {shift_id}")
        return shift

    def delete_shift(self, actor: Actor, shift_id: int) -> None:
        self.policy.require(actor, Action.MANAGE_SHIFTS)

        def work(tx: StoreTransaction) -> None:
            shift = tx.get(ShiftWorking, shift_id)
            if shift is None:
                raise NotFound(f"Shift {shift_id} not found")
            now = self.clock()
            if shift.to_time <= now:
                raise ValidationError("Cannot delete completed shifts")
            if shift.from_time <= now:
                raise ValidationError("Cannot delete currently active shifts")
            stranded = self._stranded_slots(tx, shift)
            if stranded:
                raise ShiftConflict(f"{len(stranded)} booked time slot(s) depend on shift {shift_id}")

            staff = tx.get(Staff, shift.doctor_id)
            if staff is not None:
                self._claim_schedule(tx, staff)
            tx.delete(ShiftWorking, shift.id)

        self.runner.run(
            work,
            on_exhausted=lambda: ShiftConflict(f"Shift {shift_id} is being changed concurrently"),
            label=f"deletion of shift {shift_id}",
        )
        logger.info(f"Deleted shift {shift_id}")

    def list_shifts(
        self,
        actor: Actor,
        doctor_id: Optional[int] = None,
        room_id: Optional[int] = None,
        status: Optional[str] = None,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
        page: int = 1,
        limit: int = 10,
    ) -> ShiftPage:
        self.policy.require(actor, Action.VIEW_SHIFTS)
        if page < 1 or not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(f"page must be >= 1 and limit between 1 and {MAX_PAGE_SIZE}")
        if status is not None and status not in SHIFT_STATUSES:
            raise ValidationError(f"Invalid status. Must be one of: {list(SHIFT_STATUSES)}")
        from_date, to_date = to_utc_naive(from_date), to_utc_naive(to_date)

        filters = {}
        if doctor_id is not None:
            filters["doctor_id"] = doctor_id
        if room_id is not None:
            filters["room_id"] = room_id
        with self.runner.store.atomic() as tx:
            rows = tx.find(ShiftWorking, **filters)

        now = self.clock()
        if status == "upcoming":
            rows = [s for s in rows if s.from_time > now]
        elif status == "active":
            rows = [s for s in rows if s.from_time <= now < s.to_time]
        elif status == "completed":
            rows = [s for s in rows if s.to_time <= now]
        if from_date is not None:
            rows = [s for s in rows if s.from_time >= from_date]
        if to_date is not None:
            rows = [s for s in rows if s.to_time <= to_date]

        rows.sort(key=lambda s: s.from_time)
        start = (page - 1) * limit
        return ShiftPage(items=rows[start:start + limit], total=len(rows), page=page, limit=limit)
