# clinic_scheduler/schemas/common/common.py
from pydantic import BaseModel
from typing import Optional


class ErrorDetail(BaseModel):
    code: str
    message: str


class ErrorResponse(BaseModel):
    success: bool = False
    data: None = None
    error: ErrorDetail


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    timestamp: str
    database_error: Optional[str] = None
