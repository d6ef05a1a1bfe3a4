# clinic_scheduler/db/models/clinic/shift.py
from typing import Optional
from sqlalchemy import CheckConstraint
from sqlmodel import SQLModel, Field
from datetime import datetime


class ShiftWorking(SQLModel, table=True):
    __tablename__ = "shift_workings"
    __table_args__ = (CheckConstraint("from_time < to_time", name="ck_shift_interval"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    doctor_id: int = Field(foreign_key="staff.id", index=True)
    room_id: int = Field(foreign_key="medical_rooms.id", index=True)
    from_time: datetime
    to_time: datetime
    created_at: datetime = Field(default_factory=datetime.utcnow)

    def covers(self, from_time: datetime, to_time: datetime) -> bool:
        return self.from_time <= from_time and to_time <= self.to_time

    def overlaps(self, from_time: datetime, to_time: datetime) -> bool:
        return self.from_time < to_time and from_time < self.to_time
