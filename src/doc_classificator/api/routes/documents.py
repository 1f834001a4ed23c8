"""
Document intake, processing and result endpoints.

- GET  /api/v1/taxonomy                  - Active taxonomy
- POST /api/v1/documents                 - Upload one or more files (pending)
- GET  /api/v1/documents                 - List documents in intake order
- GET  /api/v1/documents/{id}            - Document with its current result
- POST /api/v1/documents/process         - Classify every pending document
- POST /api/v1/documents/process/cancel  - Stop after the in-flight document
- GET  /api/v1/results                   - Current results in intake order
- GET  /api/v1/results/{id}              - Current result of one document
"""

from typing import List

import structlog
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from ...classification.orchestrator import ProcessingSummary
from ...classification.schemas import ClassificationResult
from ...config import settings
from ...errors import DocumentNotFoundError
from ...models.api_models import (
    CancelResponse,
    DocumentDetailResponse,
    DocumentListResponse,
    ResultListResponse,
    TaxonomyResponse,
    UploadResponse,
)
from ...session import ClassificationSession
from ..dependencies import get_session


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1")


# ============================================================================
# TAXONOMY
# ============================================================================

@router.get("/taxonomy", response_model=TaxonomyResponse, tags=["Taxonomy"])
async def get_taxonomy(session: ClassificationSession = Depends(get_session)) -> TaxonomyResponse:
    return TaxonomyResponse(
        version=session.taxonomy.version,
        categories=session.taxonomy.list_categories(),
    )


# ============================================================================
# INTAKE
# ============================================================================

@router.post(
    "/documents",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Documents"],
)
async def upload_documents(
    files: List[UploadFile] = File(..., description="Documents to classify"),
    session: ClassificationSession = Depends(get_session),
) -> UploadResponse:
    """
    Register uploaded files as pending documents.

    Every file is size-checked before any of them is registered, so a
    rejected upload leaves the session unchanged.

    Raises:
        HTTPException 413: If a file exceeds max_upload_size_mb
    """
    max_bytes = settings.max_upload_size_mb * 1024 * 1024
    uploads = []

    for upload in files:
        content = await upload.read()
        if len(content) > max_bytes:
            size_mb = len(content) / (1024 * 1024)
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=(
                    f"File {upload.filename} ({size_mb:.1f}MB) exceeds "
                    f"maximum ({settings.max_upload_size_mb}MB)"
                )
            )
        uploads.append((upload.filename or "unnamed", content, upload.content_type))

    documents = [
        session.orchestrator.ingest(
            name=name,
            content=content,
            # multipart clients default to octet-stream when they know nothing better
            mime_type=None if content_type in (None, "", "application/octet-stream") else content_type,
        )
        for name, content, content_type in uploads
    ]

    logger.info("documents_uploaded", count=len(documents))
    return UploadResponse(documents=documents)


@router.get("/documents", response_model=DocumentListResponse, tags=["Documents"])
async def list_documents(session: ClassificationSession = Depends(get_session)) -> DocumentListResponse:
    return DocumentListResponse(
        documents=session.store.documents(),
        status_counts=session.store.status_counts(),
    )


@router.get("/documents/{document_id}", response_model=DocumentDetailResponse, tags=["Documents"])
async def get_document(
    document_id: str,
    session: ClassificationSession = Depends(get_session),
) -> DocumentDetailResponse:
    try:
        document = session.store.get_document(document_id)
    except DocumentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return DocumentDetailResponse(
        document=document,
        result=session.store.get_result(document_id),
    )


# ============================================================================
# PROCESSING
# ============================================================================

@router.post("/documents/process", response_model=ProcessingSummary, tags=["Processing"])
async def process_documents(session: ClassificationSession = Depends(get_session)) -> ProcessingSummary:
    """
    Classify every pending document, sequentially, in intake order.

    Raises:
        HTTPException 409: If a run is already in progress
    """
    if session.orchestrator.is_running:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Processing is already running for this session"
        )

    summary = await session.orchestrator.process_all()

    logger.info(
        "process_request_completed",
        processed=summary.processed,
        failed=summary.failed,
        cancelled=summary.cancelled
    )
    return summary


@router.post("/documents/process/cancel", response_model=CancelResponse, tags=["Processing"])
async def cancel_processing(session: ClassificationSession = Depends(get_session)) -> CancelResponse:
    """Ask the running batch to stop after the in-flight document."""
    running = session.orchestrator.is_running
    if running:
        session.orchestrator.request_cancel()
    return CancelResponse(cancel_requested=running, running=running)


# ============================================================================
# RESULTS
# ============================================================================

@router.get("/results", response_model=ResultListResponse, tags=["Results"])
async def list_results(session: ClassificationSession = Depends(get_session)) -> ResultListResponse:
    return ResultListResponse(results=session.store.results())


@router.get("/results/{document_id}", response_model=ClassificationResult, tags=["Results"])
async def get_result(
    document_id: str,
    session: ClassificationSession = Depends(get_session),
) -> ClassificationResult:
    try:
        result = session.store.get_result(document_id)
    except DocumentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Document {document_id} has no result yet"
        )
    return result
