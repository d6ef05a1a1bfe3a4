# clinic_scheduler/schemas/scheduling/scheduling.py
from pydantic import BaseModel, ConfigDict, field_validator
from typing import List, Optional
from datetime import datetime

from ...utils import to_utc_naive


class ShiftCreate(BaseModel):
    doctor_id: int
    room_id: int
    from_time: datetime
    to_time: datetime

    @field_validator("from_time", "to_time")
    @classmethod
    def normalize_to_utc(cls, v):
        return to_utc_naive(v)


class ShiftUpdate(BaseModel):
    doctor_id: Optional[int] = None
    room_id: Optional[int] = None
    from_time: Optional[datetime] = None
    to_time: Optional[datetime] = None

    @field_validator("from_time", "to_time")
    @classmethod
    def normalize_to_utc(cls, v):
        return to_utc_naive(v)


class ShiftResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    doctor_id: int
    room_id: int
    from_time: datetime
    to_time: datetime
    created_at: datetime


class ShiftListResponse(BaseModel):
    items: List[ShiftResponse]
    total: int
    page: int
    limit: int


class SlotCreate(BaseModel):
    room_id: int
    from_time: datetime
    to_time: datetime
    doctor_id: Optional[int] = None

    @field_validator("from_time", "to_time")
    @classmethod
    def normalize_to_utc(cls, v):
        return to_utc_naive(v)


class SlotResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    room_id: int
    doctor_id: Optional[int] = None
    from_time: datetime
    to_time: datetime
    appointment_id: Optional[int] = None
