"""
API request and response models for FastAPI endpoints.

JSON keys are camelCase, matching the export report.
"""

from typing import Dict, List, Optional

from pydantic import Field

from ..classification.schemas import (
    MAX_CATEGORIES,
    AuditEntry,
    CamelModel,
    ClassificationResult,
    CorrectionNeeded,
)
from ..taxonomy.registry import CategoryDescriptor
from .document import Document
from .engine_version import EngineVersion


class HealthResponse(CamelModel):
    """Health check response."""

    status: str = Field(description="Service status", examples=["healthy"])
    version: str = Field(description="API version", examples=["1.0.0"])
    uptime_seconds: float = Field(description="Service uptime")
    model: str = Field(description="Classification model (provider/model)")
    documents: int = Field(description="Documents in the session")
    processing: bool = Field(description="True while a batch run is in progress")


class VersionResponse(CamelModel):
    """Version information response."""

    api_version: str = Field(description="API version")
    engine_version: EngineVersion = Field(description="Current engine version")


class TaxonomyResponse(CamelModel):
    version: str
    categories: List[CategoryDescriptor]
    max_categories: int = MAX_CATEGORIES


class UploadResponse(CamelModel):
    """Documents created by an upload, all pending."""

    documents: List[Document]


class DocumentListResponse(CamelModel):
    documents: List[Document]
    status_counts: Dict[str, int] = Field(default_factory=dict)


class DocumentDetailResponse(CamelModel):
    document: Document
    result: Optional[ClassificationResult] = None


class CancelResponse(CamelModel):
    cancel_requested: bool
    running: bool


class ResultListResponse(CamelModel):
    results: List[ClassificationResult]


class FeedbackRequest(CamelModel):
    """Reviewer verdict on a result."""

    is_correct: bool = Field(description="True confirms the result, False asks for a correction")


class FeedbackResponse(CamelModel):
    document_id: str
    result: ClassificationResult
    correction_needed: Optional[CorrectionNeeded] = Field(
        default=None,
        description="Present when the result was marked incorrect"
    )


class CorrectionRequest(CamelModel):
    """Human-asserted categories for a document."""

    categories: List[str] = Field(description=f"1-{MAX_CATEGORIES} taxonomy category names")


class PendingCorrectionsResponse(CamelModel):
    corrections: List[CorrectionNeeded]


class AuditLogResponse(CamelModel):
    total: int
    entries: List[AuditEntry]
