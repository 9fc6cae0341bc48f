"""
OTP endpoints – issue a code by SMS and verify it.
"""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from otpguard.dependencies import Engine, Source
from otpguard.errors import InvalidIdentityFormatError
from otpguard.models import (
    ErrorResponse,
    SendOtpRequest,
    SendOtpResponse,
    VerifyOtpRequest,
    VerifyOtpResponse,
)
from otpguard.services.lifecycle import VerifyStatus
from otpguard.services.phone import normalize_phone

router = APIRouter(prefix="/api/otp", tags=["otp"])

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


@router.post(
    "/send",
    response_model=SendOtpResponse,
    responses=_ERROR_RESPONSES,
    operation_id="sendOtp",
    summary="Send a one-time verification code to a phone number",
)
async def send_otp(body: SendOtpRequest, engine: Engine, source: Source) -> SendOtpResponse:
    """
    Run the admission pipeline (IP window, IP daily cap, phone format,
    per-phone caps), then generate a code and send it by SMS.
    The code itself is never part of the response.
    """
    result = await engine.gate.issue(source, body.phone)
    return SendOtpResponse(expires_in_seconds=result.expires_in_seconds)


@router.post(
    "/verify",
    response_model=VerifyOtpResponse,
    responses=_ERROR_RESPONSES,
    operation_id="verifyOtp",
    summary="Verify a one-time code",
)
async def verify_otp(body: VerifyOtpRequest, engine: Engine, source: Source):
    engine.gate.check_verification(source)

    otp_code = body.otp.strip()
    if not body.phone.strip() or not otp_code:
        raise InvalidIdentityFormatError("Phone and OTP are required")
    identity = normalize_phone(body.phone)

    outcome = await engine.lifecycle.verify(identity, otp_code)

    if outcome.status is VerifyStatus.SUCCESS:
        return VerifyOtpResponse(success=True, message="OTP verified successfully")

    if outcome.status is VerifyStatus.MISMATCH:
        code = status.HTTP_400_BAD_REQUEST
        payload = VerifyOtpResponse(
            success=False,
            message=f"Invalid OTP. {outcome.remaining_attempts} attempts remaining.",
            remaining_attempts=outcome.remaining_attempts,
        )
    elif outcome.status is VerifyStatus.ATTEMPTS_EXCEEDED:
        code = status.HTTP_429_TOO_MANY_REQUESTS
        payload = VerifyOtpResponse(
            success=False,
            message="Too many wrong attempts. Request a new OTP.",
        )
    else:
        code = status.HTTP_400_BAD_REQUEST
        payload = VerifyOtpResponse(
            success=False,
            message="OTP expired or not found. Request a new one.",
        )
    return JSONResponse(status_code=code, content=payload.model_dump())
