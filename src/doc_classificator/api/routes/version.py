"""
Version information endpoint.
"""

from fastapi import APIRouter, Depends

from ...models.api_models import VersionResponse
from ...session import ClassificationSession
from ...version import API_VERSION
from ..dependencies import get_session

router = APIRouter()


@router.get("/version", response_model=VersionResponse)
async def get_version(session: ClassificationSession = Depends(get_session)) -> VersionResponse:
    """
    Get current API and engine version information.

    Returns:
        Version information for audit and debugging
    """
    return VersionResponse(
        api_version=API_VERSION,
        engine_version=session.engine_version(),
    )
