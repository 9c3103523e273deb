# phone_auth/schemas/auth/auth.py
from pydantic import BaseModel, Field, field_validator
from typing import Optional


class SendOTPRequest(BaseModel):
    phone: Optional[str] = Field(None, description="Phone number, with or without country code")
    isSignup: bool = Field(False, description="True for signup, false for login")

    @field_validator('phone')
    @classmethod
    def strip_phone(cls, v):
        return v.strip() if isinstance(v, str) else v


class SendOTPResponse(BaseModel):
    success: bool = True
    message: str
    isDemo: Optional[bool] = None


class VerifyOTPRequest(BaseModel):
    phone: Optional[str] = Field(None, description="Phone number used to request the code")
    otp: Optional[str] = Field(None, description="6-digit OTP")
    isSignup: bool = Field(False, description="True for signup, false for login")

    @field_validator('phone', 'otp')
    @classmethod
    def strip_value(cls, v):
        return v.strip() if isinstance(v, str) else v


class UserResponse(BaseModel):
    id: str
    phone: str
    name: str
    email: Optional[str] = None


class SessionResponse(BaseModel):
    token: str
    expiresAt: int = Field(..., description="Expiry in epoch milliseconds")


class ProviderSessionResponse(BaseModel):
    token: str


class VerifyOTPResponse(BaseModel):
    success: bool = True
    message: str
    user: UserResponse
    session: SessionResponse
    providerSession: Optional[ProviderSessionResponse] = None


class ValidateSessionRequest(BaseModel):
    token: Optional[str] = None


class ValidateSessionResponse(BaseModel):
    valid: bool = True
    user: UserResponse
