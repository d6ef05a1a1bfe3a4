import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ...db.models import MedicalRoomTime, ShiftWorking
from ...exceptions import NoActiveShift, NotFound, SlotConflict
from ..ports.store import StoreTransaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reservation:
    medical_room_time_id: int
    appointment_id: int
    room_id: int
    doctor_id: Optional[int]
    from_time: datetime
    to_time: datetime


class SlotAllocator:
    """Owns occupancy of MedicalRoomTime rows.

    A slot is held by writing the appointment id into its occupancy column with a
    conditional update that only matches while the column is empty, so two writers
    can never both win, whatever process they run in.
    """

    def get_slot(self, tx: StoreTransaction, medical_room_time_id: int) -> MedicalRoomTime:
        slot = tx.get(MedicalRoomTime, medical_room_time_id)
        if slot is None:
            raise NotFound(f"Medical room time {medical_room_time_id} not found")
        return slot

    def covering_shift(self, tx: StoreTransaction, slot: MedicalRoomTime) -> Optional[ShiftWorking]:
        filters = {"room_id": slot.room_id}
        if slot.doctor_id is not None:
            filters["doctor_id"] = slot.doctor_id
        for shift in tx.find(ShiftWorking, **filters):
            if shift.covers(slot.from_time, slot.to_time):
                return shift
        return None

    def check_bookable(self, tx: StoreTransaction, medical_room_time_id: int) -> MedicalRoomTime:
        slot = self.get_slot(tx, medical_room_time_id)
        if self.covering_shift(tx, slot) is None:
            raise NoActiveShift(f"Medical room time {medical_room_time_id} is outside every shift for its room")
        if slot.appointment_id is not None:
            raise SlotConflict(f"Medical room time {medical_room_time_id} is already booked")
        return slot

    def reserve(self, tx: StoreTransaction, medical_room_time_id: int, appointment_id: int) -> Reservation:
        slot = self.check_bookable(tx, medical_room_time_id)
        held = tx.compare_and_set(
            MedicalRoomTime,
            medical_room_time_id,
            expected={"appointment_id": None},
            changes={"appointment_id": appointment_id},
        )
        if not held:
            raise SlotConflict(f"Medical room time {medical_room_time_id} is already booked")
        logger.info(f"Reserved medical room time {medical_room_time_id} for appointment {appointment_id}")
        return Reservation(
            medical_room_time_id=medical_room_time_id,
            appointment_id=appointment_id,
            room_id=slot.room_id,
            doctor_id=slot.doctor_id,
            from_time=slot.from_time,
            to_time=slot.to_time,
        )

    def release(self, tx: StoreTransaction, medical_room_time_id: int, appointment_id: Optional[int] = None) -> bool:
        """Clear the slot's occupancy. Releasing a free slot (or one held by another
        appointment, when ``appointment_id`` is given) changes nothing."""
        slot = tx.get(MedicalRoomTime, medical_room_time_id)
        if slot is None or slot.appointment_id is None:
            return False
        holder = slot.appointment_id if appointment_id is None else appointment_id
        released = tx.compare_and_set(
            MedicalRoomTime,
            medical_room_time_id,
            expected={"appointment_id": holder},
            changes={"appointment_id": None},
        )
        if released:
            logger.info(f"Released medical room time {medical_room_time_id} from appointment {holder}")
        return released
