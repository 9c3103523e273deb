# phone_auth/schemas/common/common.py
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    success: bool = False
    error: str


class SessionErrorResponse(BaseModel):
    valid: bool = False
    error: str


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    timestamp: str
