"""Pydantic models for the OTP records and the HTTP API."""

from datetime import datetime
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class OTPRecord(BaseModel):
    """One issued verification code."""
    id: str = Field(default_factory=lambda: str(uuid4()), description="Record identifier")
    identity: str = Field(..., description="Normalized phone number the code is bound to")
    code: str = Field(..., description="Fixed-length numeric code")
    created_at: datetime = Field(..., description="Issue time (UTC)")
    expires_at: datetime = Field(..., description="Expiry time (UTC)")
    is_used: bool = Field(default=False, description="Verified, locked out or superseded")
    attempts: int = Field(default=0, ge=0, description="Wrong guesses so far")
    verified_at: Optional[datetime] = Field(None, description="Set once on successful verification")


# ── API ───────────────────────────────────────────────────────────────────


class SendOtpRequest(BaseModel):
    """Request an OTP for a phone number."""
    phone: str = Field("", description="Phone number; spaces, dashes and '+' are ignored")


class SendOtpResponse(BaseModel):
    success: bool = True
    message: str = "OTP sent successfully"
    expires_in_seconds: int = Field(..., description="Seconds until the code expires")


class VerifyOtpRequest(BaseModel):
    """Verify a previously issued OTP."""
    phone: str = Field("", description="Phone number the code was sent to")
    otp: str = Field("", description="Code received by SMS")


class VerifyOtpResponse(BaseModel):
    success: bool
    message: str
    remaining_attempts: Optional[int] = Field(None, description="Guesses left after a mismatch")


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    retry_after: Optional[int] = Field(None, description="Seconds to wait before retrying")


class HealthResponse(BaseModel):
    status: str
    version: str
    timestamp: datetime
    counter_sweep_running: bool
