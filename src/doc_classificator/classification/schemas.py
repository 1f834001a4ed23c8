"""
Classification schemas for the orchestration engine.

Defines Pydantic models for:
- Category assignments (1-2 per result)
- Result flags, cross-verification and correction records
- Classification results (successful and error-flavored)
- Audit entries
- Raw model output (for validation)
- Classification requests and correction events

JSON field names are camelCase on the wire (documentId, keyFindings, ...);
Python attributes stay snake_case.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from doc_classificator.taxonomy.registry import CategoryDescriptor


MAX_CATEGORIES = 2


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model serializing to camelCase while accepting either spelling."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_json_dict(self) -> Dict[str, Any]:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


# ============================================================================
# ENUMS
# ============================================================================

class AuditAction(str, Enum):
    """State-changing actions recorded in the audit log."""
    CLASSIFIED = "classified"
    CROSS_VERIFIED = "cross_verified"
    FEEDBACK_CORRECT = "feedback_correct"
    FEEDBACK_INCORRECT = "feedback_incorrect"
    MANUAL_CORRECTION = "manual_correction"
    ERROR = "error"


class ErrorKind(str, Enum):
    """Error kinds that end up attached to a document as a result."""
    PRECHECK_FAILURE = "PrecheckFailure"
    TRANSPORT_FAILURE = "TransportFailure"
    PARSE_FAILURE = "ParseFailure"


# ============================================================================
# RESULT BUILDING BLOCKS
# ============================================================================

class CategoryAssignment(CamelModel):
    """Single category assignment with confidence and justification."""

    category: str = Field(..., min_length=1, description="Category name from the taxonomy")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Confidence score 0-1")
    reasoning: str = Field(..., description="Why this category applies")

    @field_validator("reasoning")
    @classmethod
    def reasoning_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("reasoning must be non-empty")
        return v


class ResultFlags(CamelModel):
    """Provenance and review flags on a result."""
    ai_generated: bool = False
    was_corrected: bool = False
    user_confirmed: bool = False
    needs_review: bool = False


class CrossVerification(CamelModel):
    """Outcome of the second, independent classification call."""
    alternate_category: Optional[str] = Field(
        default=None,
        description="Top category of the verification call (None if the call failed)"
    )
    triggered: bool = Field(
        default=False,
        description="True when the verification call disagreed with the primary result"
    )


class CorrectionInfo(CamelModel):
    """Record of a human correction."""
    original_categories: List[CategoryAssignment] = Field(default_factory=list)
    corrected_at: datetime = Field(default_factory=utcnow)


class ErrorInfo(CamelModel):
    """Why a document ended in the error state."""
    kind: ErrorKind
    message: str


class PrecheckReport(CamelModel):
    """Deterministic feasibility report for a document."""
    legible: bool
    page_count: int = Field(default=0, ge=0)
    image_count: int = Field(default=0, ge=0)
    reason: Optional[str] = None


# ============================================================================
# CLASSIFICATION RESULT
# ============================================================================

class ClassificationResult(CamelModel):
    """
    Classification result attached to one document.

    Successful results carry 1-2 distinct categories. Error-flavored
    results carry no categories and an `error` block, so every uploaded
    document always has something to show.
    """

    document_id: str
    document_name: str = ""

    categories: List[CategoryAssignment] = Field(
        default_factory=list,
        max_length=MAX_CATEGORIES,
        description="Ordered category assignments, most confident first"
    )
    key_findings: List[str] = Field(default_factory=list)
    recommendations: str = ""
    created_at: datetime = Field(default_factory=utcnow)

    flags: ResultFlags = Field(default_factory=ResultFlags)
    cross_verification: Optional[CrossVerification] = None
    correction: Optional[CorrectionInfo] = None
    error: Optional[ErrorInfo] = None

    # Audit helpers
    template: Optional[str] = Field(default=None, description="Prompt template used")
    precheck: Optional[PrecheckReport] = None

    @model_validator(mode="after")
    def validate_categories(self):
        """Distinct categories; 1-2 unless this is an error result."""
        names = [c.category for c in self.categories]
        if len(names) != len(set(names)):
            raise ValueError(f"Categories within one result must be distinct: {names}")

        if self.error is None and not self.categories:
            raise ValueError("A successful result needs at least one category")
        if self.error is not None and self.categories:
            raise ValueError("An error result must not carry categories")
        return self

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def top_category(self) -> Optional[str]:
        return self.categories[0].category if self.categories else None

    @property
    def top_confidence(self) -> float:
        return self.categories[0].confidence if self.categories else 0.0

    def category_names(self) -> List[str]:
        return [c.category for c in self.categories]


# ============================================================================
# AUDIT ENTRY
# ============================================================================

class AuditEntry(CamelModel):
    """One immutable audit log record."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    timestamp: datetime = Field(default_factory=utcnow)
    document_id: str
    document_name: str = ""
    action: AuditAction
    details: Dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# RAW MODEL OUTPUT (for validation)
# ============================================================================

class RawCategory(BaseModel):
    """
    Category entry as returned by the model, before business rules.

    Kept loose on purpose: taxonomy membership and confidence range are
    reported by the business-rule stage (validators.py) with precise messages.
    """
    category: str
    confidence: float
    reasoning: str


class LLMRawOutput(BaseModel):
    """
    Raw model output matching the response schema contract.

    {"categories": [...], "keyFindings": [...], "recommendations": "..."}
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    categories: List[RawCategory]
    key_findings: List[str] = Field(default_factory=list)
    recommendations: str = ""

    @field_validator("key_findings", mode="before")
    @classmethod
    def null_findings_as_empty(cls, v):
        return [] if v is None else v

    @field_validator("recommendations", mode="before")
    @classmethod
    def null_recommendations_as_empty(cls, v):
        return "" if v is None else v


class ParsedClassification(BaseModel):
    """Validated model output, ready to become a ClassificationResult."""
    categories: List[CategoryAssignment] = Field(..., min_length=1, max_length=MAX_CATEGORIES)
    key_findings: List[str] = Field(default_factory=list)
    recommendations: str = ""
    warnings: List[str] = Field(default_factory=list)

    @property
    def top_category(self) -> str:
        return self.categories[0].category

    @property
    def top_confidence(self) -> float:
        return self.categories[0].confidence


# ============================================================================
# REQUESTS & EVENTS
# ============================================================================

@dataclass(frozen=True)
class CorrectiveContext:
    """Previous (wrong) categories and the human-asserted correct ones."""
    previous: Tuple[str, ...]
    corrected: Tuple[str, ...]


@dataclass(frozen=True)
class ClassificationRequest:
    """
    Opaque request handed to the classification client.

    Pure function of template, document metadata, excerpt, taxonomy and
    corrective context: same inputs produce identical text.
    """
    template: str
    prompt_version: str
    document_id: str
    system_prompt: str
    user_prompt: str
    is_correction: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def text(self) -> str:
        """Full instruction text (system + user) for single-message transports."""
        return f"{self.system_prompt}\n\n{self.user_prompt}"


class CorrectionNeeded(CamelModel):
    """
    Event published when a reviewer marks a result as incorrect.

    Carries everything an input surface needs to ask for the correct
    categories; the answer comes back through request_correction().
    """
    document_id: str
    document_name: str = ""
    previous_categories: List[str] = Field(default_factory=list)
    taxonomy: List[CategoryDescriptor] = Field(default_factory=list)
    max_categories: int = MAX_CATEGORIES
    requested_at: datetime = Field(default_factory=utcnow)
