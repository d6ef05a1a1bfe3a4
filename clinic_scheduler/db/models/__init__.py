# Models package (re-export feature modules for stable imports)
from .staff.account import Account, Patient, Role
from .staff.staff import Position, PositionRecord, PositionStaff, Staff
from .clinic.room import MedicalRoom, MedicalRoomTime
from .clinic.shift import ShiftWorking
from .clinic.appointment import (
    Appointment,
    AppointmentStatus,
    AppointmentStatusLog,
    DiagnosisSuggestion,
)

__all__ = [
    "Account",
    "Patient",
    "Role",
    "Position",
    "PositionRecord",
    "PositionStaff",
    "Staff",
    "MedicalRoom",
    "MedicalRoomTime",
    "ShiftWorking",
    "Appointment",
    "AppointmentStatus",
    "AppointmentStatusLog",
    "DiagnosisSuggestion",
]
