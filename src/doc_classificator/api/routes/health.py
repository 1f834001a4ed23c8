"""
Liveness endpoint with a snapshot of the serving session.
"""

import time

from fastapi import APIRouter, Depends

from ...models.api_models import HealthResponse
from ...session import ClassificationSession
from ...version import API_VERSION
from ..dependencies import get_session

router = APIRouter()

_start_time = time.time()


@router.get("/health", response_model=HealthResponse)
async def health_check(session: ClassificationSession = Depends(get_session)) -> HealthResponse:
    """
    Report liveness, uptime and what the session is doing.

    Never calls the classification model, so it stays cheap for probes.
    """
    return HealthResponse(
        status="healthy",
        version=API_VERSION,
        uptime_seconds=time.time() - _start_time,
        model=str(session.client.model_identifier),
        documents=len(session.store.documents()),
        processing=session.orchestrator.is_running,
    )
