# clinic_scheduler/db/models/staff/staff.py
from enum import Enum
from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime


class Position(str, Enum):
    DOCTOR = "doctor"
    NURSE = "nurse"
    RECEPTIONIST = "receptionist"
    DEPARTMENT_HEAD = "department_head"
    MEDICAL_STAFF = "medical_staff"


class PositionRecord(SQLModel, table=True):
    __tablename__ = "positions"
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=50, unique=True)


class Staff(SQLModel, table=True):
    __tablename__ = "staff"
    id: Optional[int] = Field(default=None, primary_key=True)
    account_id: Optional[int] = Field(default=None, foreign_key="accounts.id")
    firstname: str = Field(max_length=100)
    lastname: str = Field(max_length=100)
    # bumped on every shift write so concurrent shift changes for one doctor serialize
    shift_version: int = Field(default=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class PositionStaff(SQLModel, table=True):
    __tablename__ = "position_staff"
    id: Optional[int] = Field(default=None, primary_key=True)
    staff_id: int = Field(foreign_key="staff.id", index=True)
    position_id: int = Field(foreign_key="positions.id")
