# clinic_scheduler/db/models/staff/account.py
from enum import Enum
from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime


class Role(str, Enum):
    ADMIN = "admin"
    STAFF = "staff"
    PATIENT = "patient"


class Account(SQLModel, table=True):
    __tablename__ = "accounts"
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(max_length=100, unique=True, index=True)
    email: Optional[str] = Field(max_length=100, default=None)
    role: str = Field(default=Role.PATIENT.value, max_length=20)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Patient(SQLModel, table=True):
    __tablename__ = "patients"
    id: Optional[int] = Field(default=None, primary_key=True)
    account_id: Optional[int] = Field(default=None, foreign_key="accounts.id")
    full_name: str = Field(max_length=200)
    created_at: datetime = Field(default_factory=datetime.utcnow)
