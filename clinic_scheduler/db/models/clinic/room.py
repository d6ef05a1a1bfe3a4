# clinic_scheduler/db/models/clinic/room.py
from typing import Optional
from sqlalchemy import CheckConstraint
from sqlmodel import SQLModel, Field
from datetime import datetime


class MedicalRoom(SQLModel, table=True):
    __tablename__ = "medical_rooms"
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=100)
    floor: Optional[int] = None
    # bumped on every slot creation so overlap checks for one room serialize
    slot_version: int = Field(default=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class MedicalRoomTime(SQLModel, table=True):
    __tablename__ = "medical_room_times"
    __table_args__ = (CheckConstraint("from_time < to_time", name="ck_room_time_interval"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    room_id: int = Field(foreign_key="medical_rooms.id", index=True)
    doctor_id: Optional[int] = Field(default=None, foreign_key="staff.id", index=True)
    from_time: datetime
    to_time: datetime
    # Occupancy: the single active appointment holding this slot
    appointment_id: Optional[int] = Field(default=None, unique=True, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
