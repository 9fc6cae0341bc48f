"""
Health check endpoint.
"""

from fastapi import APIRouter

from otpguard.dependencies import Engine
from otpguard.models import HealthResponse

router = APIRouter(prefix="/api", tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    operation_id="getHealth",
    summary="Health check",
)
async def get_health(engine: Engine) -> HealthResponse:
    sweeping = engine.window_store.running and engine.daily_counter.running
    return HealthResponse(
        status="ok" if sweeping else "degraded",
        version="0.1.0",
        timestamp=engine.clock.now(),
        counter_sweep_running=sweeping,
    )
