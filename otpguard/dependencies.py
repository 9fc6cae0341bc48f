from typing import Annotated

from fastapi import Depends, Request
from slowapi.util import get_remote_address

from otpguard.services.engine import OTPEngine


def get_engine(request: Request) -> OTPEngine:
    return request.app.state.engine


def get_source(request: Request) -> str:
    """Abuse-control key for the caller: the client IP address."""
    return get_remote_address(request)


Engine = Annotated[OTPEngine, Depends(get_engine)]
Source = Annotated[str, Depends(get_source)]
