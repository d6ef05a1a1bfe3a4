# Schemas package (re-export feature modules for stable imports)
from .appointments.appointment import (
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatusUpdate,
    DiagnosisSuggestionCreate,
    DiagnosisSuggestionResponse,
    StatusLogResponse,
)
from .scheduling.scheduling import (
    ShiftCreate,
    ShiftListResponse,
    ShiftResponse,
    ShiftUpdate,
    SlotCreate,
    SlotResponse,
)
from .common.common import ErrorDetail, ErrorResponse, HealthResponse

__all__ = [
    "AppointmentCreate",
    "AppointmentListResponse",
    "AppointmentResponse",
    "AppointmentStatusUpdate",
    "DiagnosisSuggestionCreate",
    "DiagnosisSuggestionResponse",
    "StatusLogResponse",
    "ShiftCreate",
    "ShiftListResponse",
    "ShiftResponse",
    "ShiftUpdate",
    "SlotCreate",
    "SlotResponse",
    "ErrorDetail",
    "ErrorResponse",
    "HealthResponse",
]
