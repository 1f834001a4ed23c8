"""
Human review endpoints: feedback and corrections.

- POST /api/v1/documents/{id}/feedback    - {"isCorrect": bool}
- POST /api/v1/documents/{id}/correction  - {"categories": [...]}
- GET  /api/v1/corrections/pending        - Unanswered correction requests
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from ...classification.schemas import ClassificationResult
from ...errors import (
    DocumentNotFoundError,
    InvalidStateError,
    ParseFailure,
    TransportFailure,
    ValidationFailure,
)
from ...models.api_models import (
    CorrectionRequest,
    FeedbackRequest,
    FeedbackResponse,
    PendingCorrectionsResponse,
)
from ...session import ClassificationSession
from ..dependencies import get_session


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Review"])


@router.post("/documents/{document_id}/feedback", response_model=FeedbackResponse)
async def submit_feedback(
    document_id: str,
    request: FeedbackRequest,
    session: ClassificationSession = Depends(get_session),
) -> FeedbackResponse:
    """
    Confirm a result, or mark it incorrect and open a correction request.

    Raises:
        HTTPException 404: Unknown document
        HTTPException 409: Document has no successful result
    """
    try:
        event = await session.correction.record_feedback(document_id, request.is_correct)
    except DocumentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    return FeedbackResponse(
        document_id=document_id,
        result=session.store.get_result(document_id),
        correction_needed=event,
    )


@router.post("/documents/{document_id}/correction", response_model=ClassificationResult)
async def submit_correction(
    document_id: str,
    request: CorrectionRequest,
    session: ClassificationSession = Depends(get_session),
) -> ClassificationResult:
    """
    Re-classify a document with reviewer-asserted categories.

    On any failure the previous result is kept.

    Raises:
        HTTPException 404: Unknown document
        HTTPException 409: Document has no successful result
        HTTPException 422: Invalid categories
        HTTPException 502: Classification call failed or returned an invalid reply
    """
    try:
        return await session.correction.request_correction(document_id, request.categories)
    except DocumentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValidationFailure as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except (TransportFailure, ParseFailure) as e:
        logger.error("correction_request_failed", document_id=document_id, error_kind=e.kind)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"{e.kind}: {e}"
        )


@router.get("/corrections/pending", response_model=PendingCorrectionsResponse)
async def list_pending_corrections(
    session: ClassificationSession = Depends(get_session),
) -> PendingCorrectionsResponse:
    return PendingCorrectionsResponse(corrections=session.correction.pending_corrections())
