# clinic_scheduler/db/models/clinic/appointment.py
from enum import Enum
from typing import Optional
from sqlalchemy import CheckConstraint
from sqlmodel import SQLModel, Field
from datetime import datetime


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    id: Optional[int] = Field(default=None, primary_key=True)
    patient_id: int = Field(foreign_key="patients.id", index=True)
    requested_by: int = Field(index=True)
    medical_room_time_id: int = Field(foreign_key="medical_room_times.id", index=True)
    status: str = Field(default=AppointmentStatus.PENDING.value, max_length=20)
    notes: Optional[str] = Field(default=None, max_length=1000)
    version: int = Field(default=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class AppointmentStatusLog(SQLModel, table=True):
    __tablename__ = "appointment_status_logs"
    id: Optional[int] = Field(default=None, primary_key=True)
    appointment_id: int = Field(foreign_key="appointments.id", index=True)
    previous_status: Optional[str] = Field(default=None, max_length=20)
    new_status: str = Field(max_length=20)
    actor_id: int
    actor_role: str = Field(max_length=20)
    reason: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class DiagnosisSuggestion(SQLModel, table=True):
    __tablename__ = "diagnosis_suggestions"
    __table_args__ = (
        CheckConstraint("confidence >= 0 AND confidence <= 1", name="ck_suggestion_confidence"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    appointment_id: int = Field(foreign_key="appointments.id", index=True)
    disease_id: str = Field(max_length=100)
    confidence: float
    ai_suggested: bool = Field(default=True)
    description: Optional[str] = Field(default=None, max_length=2000)
    created_at: datetime = Field(default_factory=datetime.utcnow)
