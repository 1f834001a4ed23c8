"""
Classification orchestrator: per-document state machine.

Coordinates:
1. Deterministic pre-check (no model call when it fails)
2. Request building from the configured prompt template
3. Classification client call
4. Multi-stage response validation
5. Optional cross-verification with a second, independent call
6. Result storage and audit entries

Documents are processed one at a time, in intake order. Each client call
is an await point; nothing else runs for other documents meanwhile.
"""

import asyncio
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import structlog
from pydantic import Field

from doc_classificator.classification.llm_client import ClassificationClient
from doc_classificator.classification.prompts import (
    build_excerpt,
    build_request,
    get_template_instructions,
)
from doc_classificator.classification.schemas import (
    AuditAction,
    CamelModel,
    ClassificationRequest,
    ClassificationResult,
    CorrectiveContext,
    CrossVerification,
    ErrorInfo,
    ErrorKind,
    ParsedClassification,
    PrecheckReport,
    ResultFlags,
    utcnow,
)
from doc_classificator.classification.store import ClassificationStore
from doc_classificator.classification.validators import parse_classification_response
from doc_classificator.config import settings
from doc_classificator.errors import (
    InvalidStateError,
    ParseFailure,
    TransportFailure,
)
from doc_classificator.intake.document_loader import create_document
from doc_classificator.intake.precheck import MimeTypePrecheck, Precheck
from doc_classificator.models.document import Document, DocumentStatus
from doc_classificator.taxonomy.registry import TaxonomyRegistry, load_taxonomy
from doc_classificator.version import PROMPT_VERSION


logger = structlog.get_logger(__name__)


ERROR_RECOMMENDATIONS = {
    ErrorKind.PRECHECK_FAILURE: (
        "Document failed the legibility check and was not sent for classification. "
        "Re-upload it as a readable PDF, image or text file."
    ),
    ErrorKind.TRANSPORT_FAILURE: (
        "The classification service could not be reached. "
        "Check your API key and connectivity, then re-upload the document."
    ),
    ErrorKind.PARSE_FAILURE: (
        "The model returned an invalid classification. "
        "Re-upload the document or choose another prompt template."
    ),
}


class ProcessingSummary(CamelModel):
    """Outcome of one process_all run."""
    processed: int = 0
    failed: int = 0
    remaining: int = 0
    cancelled: bool = False
    results: List[ClassificationResult] = Field(default_factory=list)


def _category_details(result: ClassificationResult) -> List[Dict[str, Any]]:
    return [{"category": c.category, "confidence": c.confidence} for c in result.categories]


# ============================================================================
# ORCHESTRATOR
# ============================================================================

class ClassificationOrchestrator:
    """
    Drives documents through pre-check, classification and cross-verification.

    One orchestrator owns one store. Template choice and the
    cross-verification policy are fixed at construction.
    """

    def __init__(
        self,
        client: ClassificationClient,
        taxonomy: Optional[TaxonomyRegistry] = None,
        store: Optional[ClassificationStore] = None,
        precheck: Optional[Precheck] = None,
        template: Optional[str] = None,
        cross_verify_enabled: Optional[bool] = None,
        cross_verify_threshold: Optional[float] = None,
        max_excerpt_length: Optional[int] = None,
        include_examples: Optional[bool] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize orchestrator.

        Args:
            client: Classification client capability
            taxonomy: Active taxonomy (default: from settings.taxonomy_file)
            store: Session store (default: new empty store)
            precheck: Pre-check capability (default: MimeTypePrecheck)
            template: Prompt template identifier (default: settings.prompt_template)
            cross_verify_enabled: Cross-verification flag (default: settings)
            cross_verify_threshold: Second call when top confidence is below this
            max_excerpt_length: Excerpt length in characters (default: settings)
            include_examples: Append worked examples to prompts (default: settings)
            clock: Timestamp source for results and audit entries
        """
        self.client = client
        self.taxonomy = taxonomy or load_taxonomy(settings.taxonomy_file)
        self.store = store or ClassificationStore(clock=clock)
        self.precheck = precheck or MimeTypePrecheck()
        self.template = template or settings.prompt_template
        self.cross_verify_enabled = (
            settings.cross_verify_enabled if cross_verify_enabled is None else cross_verify_enabled
        )
        self.cross_verify_threshold = (
            settings.cross_verify_threshold if cross_verify_threshold is None else cross_verify_threshold
        )
        self.max_excerpt_length = (
            settings.prompt_max_excerpt_length if max_excerpt_length is None else max_excerpt_length
        )
        self.include_examples = (
            settings.prompt_include_examples if include_examples is None else include_examples
        )
        self.clock = clock

        # Fail fast on configuration errors
        get_template_instructions(self.template)
        if not 0.0 <= self.cross_verify_threshold <= 1.0:
            raise ValueError(
                f"cross_verify_threshold must be in [0.0, 1.0], got {self.cross_verify_threshold}"
            )

        self._running = False
        self._cancel_requested = asyncio.Event()

        self.logger = logger.bind(
            orchestrator="ClassificationOrchestrator",
            template=self.template,
            cross_verify=self.cross_verify_enabled
        )

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def add_document(self, document: Document) -> Document:
        """Register an already-built pending document."""
        self.store.add_document(document)
        self.logger.info("document_ingested", document_id=document.id, name=document.name)
        return document

    def ingest(self, name: str, content: bytes, mime_type: Optional[str] = None) -> Document:
        """Create a pending document from uploaded bytes and register it."""
        return self.add_document(create_document(name=name, content=content, mime_type=mime_type))

    # ------------------------------------------------------------------
    # Classification calls
    # ------------------------------------------------------------------

    def build_request(
        self,
        document: Document,
        corrective_context: Optional[CorrectiveContext] = None,
    ) -> ClassificationRequest:
        """Build the request for a document with the configured template."""
        return build_request(
            template=self.template,
            document=document,
            excerpt=build_excerpt(document, self.max_excerpt_length),
            taxonomy=self.taxonomy,
            corrective_context=corrective_context,
            include_examples=self.include_examples,
        )

    async def classify_request(self, request: ClassificationRequest) -> ParsedClassification:
        """
        Execute one client call and parse the reply.

        Raises:
            TransportFailure: If the client fails (any client exception counts)
            ParseFailure: If the reply does not validate
        """
        try:
            raw_text = await self.client.classify(request)
        except TransportFailure:
            raise
        except Exception as e:
            raise TransportFailure(f"Classification client failed: {type(e).__name__}: {e}") from e

        return parse_classification_response(raw_text, self.taxonomy)

    # ------------------------------------------------------------------
    # Per-document state machine
    # ------------------------------------------------------------------

    async def process_one(self, document_id: str) -> ClassificationResult:
        """
        Classify one pending document.

        Args:
            document_id: Id of a pending document

        Returns:
            The stored ClassificationResult (error-flavored on failure)

        Raises:
            DocumentNotFoundError: If the id is unknown
            InvalidStateError: If the document is not pending
        """
        document = self.store.get_document(document_id)
        if document.status != DocumentStatus.PENDING:
            raise InvalidStateError(
                f"Document {document_id} is {document.status.value}; only pending documents are processed"
            )

        log = self.logger.bind(document_id=document.id, name=document.name)

        # Step 1: deterministic pre-check
        report = self.precheck.inspect(document)
        if not report.legible:
            document.transition_to(DocumentStatus.ERROR)
            log.warning("precheck_failed", reason=report.reason)
            return self._record_failure(
                document,
                ErrorKind.PRECHECK_FAILURE,
                report.reason or "Document failed legibility check",
                precheck=report,
            )

        # Step 2: primary classification
        document.transition_to(DocumentStatus.PROCESSING)
        request = self.build_request(document)
        log.info("classification_started", prompt_version=request.prompt_version)

        try:
            parsed = await self.classify_request(request)
        except (TransportFailure, ParseFailure) as e:
            # Step 3: error result
            document.transition_to(DocumentStatus.ERROR)
            log.error("classification_failed", error_kind=e.kind, error=str(e))
            return self._record_failure(
                document,
                ErrorKind(e.kind),
                str(e),
                precheck=report,
                errors=getattr(e, "errors", None),
            )

        # Step 4: store result
        result = ClassificationResult(
            document_id=document.id,
            document_name=document.name,
            categories=parsed.categories,
            key_findings=parsed.key_findings,
            recommendations=parsed.recommendations,
            created_at=self.clock(),
            flags=ResultFlags(ai_generated=True),
            template=self.template,
            precheck=report,
        )
        document.transition_to(DocumentStatus.PROCESSED)
        self.store.put_result(result)
        self.store.audit_log.record(
            document_id=document.id,
            document_name=document.name,
            action=AuditAction.CLASSIFIED,
            details={
                "category": result.top_category,
                "confidence": result.top_confidence,
                "categories": _category_details(result),
                "template": self.template,
                "promptVersion": PROMPT_VERSION,
                "model": str(self.client.model_identifier),
                "warnings": parsed.warnings,
            },
        )
        log.info(
            "classification_completed",
            categories=result.category_names(),
            top_confidence=result.top_confidence
        )

        # Step 5: cross-verification policy
        if self.should_cross_verify(result):
            result = await self._cross_verify(document, request, result)

        return result

    def should_cross_verify(self, result: ClassificationResult) -> bool:
        """Second call only when enabled and the top confidence is below threshold."""
        return (
            self.cross_verify_enabled
            and not result.is_error
            and result.top_confidence < self.cross_verify_threshold
        )

    async def _cross_verify(
        self,
        document: Document,
        request: ClassificationRequest,
        primary: ClassificationResult,
    ) -> ClassificationResult:
        """
        Issue one independent verification call and flag disagreement.

        Primary categories are never overwritten. A failed verification call
        leaves the result unverified and flags it for review.
        """
        details: Dict[str, Any] = {
            "primaryCategory": primary.top_category,
            "primaryConfidence": primary.top_confidence,
            "threshold": self.cross_verify_threshold,
        }

        try:
            second = await self.classify_request(request)
        except (TransportFailure, ParseFailure) as e:
            verification = CrossVerification(alternate_category=None, triggered=False)
            needs_review = True
            details.update({"agreed": None, "errorKind": e.kind, "error": str(e)})
            self.logger.warning(
                "cross_verification_failed",
                document_id=document.id,
                error_kind=e.kind,
                error=str(e)
            )
        else:
            alternate = second.top_category
            triggered = alternate != primary.top_category
            verification = CrossVerification(alternate_category=alternate, triggered=triggered)
            needs_review = primary.flags.needs_review or triggered
            details.update({
                "agreed": not triggered,
                "alternateCategory": alternate,
                "alternateConfidence": second.top_confidence,
            })
            self.logger.info(
                "cross_verification_completed",
                document_id=document.id,
                agreed=not triggered,
                alternate_category=alternate
            )

        updated = primary.model_copy(update={
            "cross_verification": verification,
            "flags": primary.flags.model_copy(update={"needs_review": needs_review}),
        })
        self.store.put_result(updated)

        details["triggered"] = verification.triggered
        details["needsReview"] = needs_review
        self.store.audit_log.record(
            document_id=document.id,
            document_name=document.name,
            action=AuditAction.CROSS_VERIFIED,
            details=details,
        )
        return updated

    def _record_failure(
        self,
        document: Document,
        kind: ErrorKind,
        message: str,
        precheck: Optional[PrecheckReport] = None,
        errors: Optional[List[str]] = None,
    ) -> ClassificationResult:
        result = ClassificationResult(
            document_id=document.id,
            document_name=document.name,
            categories=[],
            key_findings=[],
            recommendations=ERROR_RECOMMENDATIONS[kind],
            created_at=self.clock(),
            flags=ResultFlags(ai_generated=False),
            error=ErrorInfo(kind=kind, message=message),
            template=self.template,
            precheck=precheck,
        )
        self.store.put_result(result)

        details: Dict[str, Any] = {"errorKind": kind.value, "message": message}
        if errors:
            details["errors"] = list(errors)
        self.store.audit_log.record(
            document_id=document.id,
            document_name=document.name,
            action=AuditAction.ERROR,
            details=details,
        )
        return result

    # ------------------------------------------------------------------
    # Batch processing
    # ------------------------------------------------------------------

    def request_cancel(self) -> None:
        """Ask a running process_all to stop after the in-flight document."""
        self._cancel_requested.set()

    @property
    def is_running(self) -> bool:
        return self._running

    async def process_all(self, cancel_event: Optional[asyncio.Event] = None) -> ProcessingSummary:
        """
        Process every pending document, sequentially, in intake order.

        Resumable: documents already processed or failed are skipped, so a
        second call only acts on what is still pending. Cancellation is
        cooperative and checked between documents.

        Args:
            cancel_event: Optional external cancellation signal

        Returns:
            ProcessingSummary for this run

        Raises:
            RuntimeError: If a run is already in progress
        """
        if self._running:
            raise RuntimeError("process_all is already running for this session")

        self._running = True
        self._cancel_requested.clear()
        summary = ProcessingSummary()

        try:
            pending = self.store.pending_documents()
            self.logger.info("batch_processing_started", pending_count=len(pending))

            for idx, document in enumerate(pending):
                if self._cancel_requested.is_set() or (cancel_event is not None and cancel_event.is_set()):
                    summary.cancelled = True
                    summary.remaining = len(pending) - idx
                    self.logger.info("batch_processing_cancelled", remaining=summary.remaining)
                    break

                if document.status != DocumentStatus.PENDING:
                    continue

                result = await self.process_one(document.id)
                summary.results.append(result)
                if result.is_error:
                    summary.failed += 1
                else:
                    summary.processed += 1
        finally:
            self._running = False

        self.logger.info(
            "batch_processing_completed",
            processed=summary.processed,
            failed=summary.failed,
            remaining=summary.remaining,
            cancelled=summary.cancelled
        )
        return summary
