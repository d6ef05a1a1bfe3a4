# clinic_scheduler/schemas/appointments/appointment.py
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime


class AppointmentCreate(BaseModel):
    medical_room_time_id: int
    patient_id: int
    notes: Optional[str] = Field(default=None, max_length=1000)


class AppointmentStatusUpdate(BaseModel):
    status: str
    reason: Optional[str] = Field(default=None, max_length=500)


class AppointmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: int
    requested_by: int
    medical_room_time_id: int
    status: str
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class AppointmentListResponse(BaseModel):
    items: List[AppointmentResponse]
    total: int
    page: int
    limit: int


class StatusLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    appointment_id: int
    previous_status: Optional[str] = None
    new_status: str
    actor_id: int
    actor_role: str
    reason: Optional[str] = None
    created_at: datetime


class DiagnosisSuggestionCreate(BaseModel):
    disease_id: str = Field(min_length=1, max_length=100)
    # range is enforced by the ledger so out-of-range values surface as invalid_confidence
    confidence: float
    ai_suggested: bool = True
    description: Optional[str] = Field(default=None, max_length=2000)


class DiagnosisSuggestionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    appointment_id: int
    disease_id: str
    confidence: float
    ai_suggested: bool
    description: Optional[str] = None
    created_at: datetime
