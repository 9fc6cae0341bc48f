"""Main FastAPI application for the OTP service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from otpguard.config import LOG_LEVEL
from otpguard.errors import OTPError, RateLimitedError
from otpguard.models import ErrorResponse
from otpguard.rate_limit import limiter
from otpguard.routers import health, otp
from otpguard.services.engine import build_engine

logging.basicConfig(
    level=LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = build_engine()
    await engine.start()
    app.state.engine = engine
    try:
        yield
    finally:
        await engine.stop()


app = FastAPI(
    title="otpguard",
    description="Throttled one-time verification codes bound to phone numbers",
    version="0.1.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)


@app.exception_handler(OTPError)
async def otp_error_handler(request: Request, exc: OTPError) -> JSONResponse:
    if isinstance(exc, RateLimitedError):
        logger.info("Rejected %s %s: %s", request.method, request.url.path, exc.scope.value)
    elif exc.__cause__ is not None:
        logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.__cause__)

    headers = {"Retry-After": str(exc.retry_after)} if exc.retry_after is not None else None
    body = ErrorResponse(message=exc.message, retry_after=exc.retry_after)
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(exclude_none=True),
        headers=headers,
    )


app.include_router(health.router)
app.include_router(otp.router)
