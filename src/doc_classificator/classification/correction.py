"""
Human-in-the-loop correction workflow.

A reviewer either confirms a result or marks it incorrect. Marking it
incorrect publishes a CorrectionNeeded event (taxonomy + previous
categories) to subscribers; the reviewer's chosen categories come back
later through request_correction(), which re-classifies the document with
corrective context and replaces the stored result.

Corrections are all-or-nothing: on any failure the previous result stays
in place and the error is raised to the caller.

Feedback and corrections on the same document are serialized by a
per-document lock held across the model call, so each correction records
the result it actually replaced as its original categories.
"""

import asyncio
import inspect
from collections import OrderedDict
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Union

import structlog

from doc_classificator.classification.orchestrator import ClassificationOrchestrator
from doc_classificator.classification.schemas import (
    MAX_CATEGORIES,
    AuditAction,
    CategoryAssignment,
    ClassificationResult,
    CorrectionInfo,
    CorrectionNeeded,
    CorrectiveContext,
    ParsedClassification,
    ResultFlags,
)
from doc_classificator.errors import (
    InvalidStateError,
    ParseFailure,
    TransportFailure,
    ValidationFailure,
)
from doc_classificator.models.document import Document, DocumentStatus


logger = structlog.get_logger(__name__)

CorrectionListener = Callable[[CorrectionNeeded], Union[None, Awaitable[None]]]

REVIEWER_REASONING = "Category asserted by a human reviewer."


def merge_corrected_categories(
    corrected: Sequence[str],
    parsed: ParsedClassification,
) -> List[CategoryAssignment]:
    """
    Combine the reviewer's categories with the model's re-analysis.

    The reviewer decides which categories apply and in what order; the
    model contributes confidence and reasoning for those it also returned.
    Categories the model returned but the reviewer did not assert are dropped.
    """
    by_name = {c.category: c for c in parsed.categories}
    merged = []
    for name in corrected:
        if name in by_name:
            merged.append(by_name[name])
        else:
            merged.append(CategoryAssignment(
                category=name,
                confidence=1.0,
                reasoning=REVIEWER_REASONING,
            ))
    return merged


class CorrectionWorkflow:
    """Feedback and correction operations on top of an orchestrator's store."""

    def __init__(self, orchestrator: ClassificationOrchestrator):
        self.orchestrator = orchestrator
        self.store = orchestrator.store
        self.taxonomy = orchestrator.taxonomy
        self._listeners: List[CorrectionListener] = []
        self._pending: "OrderedDict[str, CorrectionNeeded]" = OrderedDict()
        self._locks: Dict[str, asyncio.Lock] = {}

    # ------------------------------------------------------------------
    # Event channel
    # ------------------------------------------------------------------

    def subscribe(self, listener: CorrectionListener) -> Callable[[], None]:
        """
        Register a listener for CorrectionNeeded events.

        Listeners may be plain callables or coroutine functions.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def pending_corrections(self) -> List[CorrectionNeeded]:
        """Correction requests not yet answered, oldest first."""
        return list(self._pending.values())

    async def _publish(self, event: CorrectionNeeded) -> None:
        for listener in list(self._listeners):
            outcome = listener(event)
            if inspect.isawaitable(outcome):
                await outcome

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def _document_lock(self, document_id: str) -> asyncio.Lock:
        return self._locks.setdefault(document_id, asyncio.Lock())

    def _require_reviewable(self, document_id: str) -> ClassificationResult:
        document = self.store.get_document(document_id)
        result = self.store.get_result(document_id)

        if document.status != DocumentStatus.PROCESSED or result is None or result.is_error:
            raise InvalidStateError(
                f"Document {document_id} has no classification to review "
                f"(status: {document.status.value})"
            )
        return result

    async def record_feedback(self, document_id: str, is_correct: bool) -> Optional[CorrectionNeeded]:
        """
        Record a reviewer verdict on the current result.

        Args:
            document_id: Reviewed document
            is_correct: True to confirm, False to request a correction

        Returns:
            The published CorrectionNeeded event when is_correct is False, else None

        Raises:
            DocumentNotFoundError: If the id is unknown
            InvalidStateError: If the document has no successful result
        """
        self.store.get_document(document_id)

        # Waits for an in-flight correction; listeners run after release
        async with self._document_lock(document_id):
            event = self._apply_feedback(document_id, is_correct)

        if event is not None:
            await self._publish(event)
        return event

    def _apply_feedback(self, document_id: str, is_correct: bool) -> Optional[CorrectionNeeded]:
        result = self._require_reviewable(document_id)
        log = logger.bind(document_id=document_id, is_correct=is_correct)

        if is_correct:
            confirmed = result.model_copy(update={
                "flags": result.flags.model_copy(update={"user_confirmed": True}),
            })
            self.store.put_result(confirmed)
            self._pending.pop(document_id, None)
            self.store.audit_log.record(
                document_id=document_id,
                document_name=result.document_name,
                action=AuditAction.FEEDBACK_CORRECT,
                details={"categories": result.category_names()},
            )
            log.info("feedback_recorded")
            return None

        if result.flags.user_confirmed:
            result = result.model_copy(update={
                "flags": result.flags.model_copy(update={"user_confirmed": False}),
            })
            self.store.put_result(result)

        self.store.audit_log.record(
            document_id=document_id,
            document_name=result.document_name,
            action=AuditAction.FEEDBACK_INCORRECT,
            details={"categories": result.category_names()},
        )

        event = CorrectionNeeded(
            document_id=document_id,
            document_name=result.document_name,
            previous_categories=result.category_names(),
            taxonomy=self.taxonomy.list_categories(),
            requested_at=self.orchestrator.clock(),
        )
        self._pending[document_id] = event
        log.info("correction_requested", previous_categories=event.previous_categories)
        return event

    def validate_corrected_categories(self, corrected_categories: Sequence[str]) -> List[str]:
        """
        Check reviewer input: 1-2 distinct taxonomy members.

        Returns:
            Normalized (whitespace-stripped) category names

        Raises:
            ValidationFailure: On any invalid input
        """
        if isinstance(corrected_categories, str) or not isinstance(corrected_categories, Sequence):
            raise ValidationFailure("Corrected categories must be a list of category names")

        names = []
        for raw in corrected_categories:
            if not isinstance(raw, str):
                raise ValidationFailure(f"Category names must be strings, got {type(raw).__name__}")
            names.append(raw.strip())

        if not names:
            raise ValidationFailure("Select at least 1 category")
        if len(names) > MAX_CATEGORIES:
            raise ValidationFailure(f"Select at most {MAX_CATEGORIES} categories, got {len(names)}")
        if len(set(names)) != len(names):
            raise ValidationFailure(f"Categories must be distinct: {names}")

        unknown = [n for n in names if not self.taxonomy.is_valid(n)]
        if unknown:
            raise ValidationFailure(
                f"Unknown categories: {unknown}. Allowed: {self.taxonomy.names()}"
            )
        return names

    async def request_correction(
        self,
        document_id: str,
        corrected_categories: Sequence[str],
    ) -> ClassificationResult:
        """
        Re-classify a document with the reviewer's categories as corrective context.

        Args:
            document_id: Document to correct
            corrected_categories: 1-2 category names asserted by the reviewer

        Returns:
            The new stored ClassificationResult

        Raises:
            DocumentNotFoundError: If the id is unknown
            InvalidStateError: If the document has no successful result
            ValidationFailure: If the corrected categories are invalid
            TransportFailure / ParseFailure: If re-classification fails (prior result kept)
        """
        document = self.store.get_document(document_id)
        self._require_reviewable(document_id)
        corrected = self.validate_corrected_categories(corrected_categories)

        lock = self._document_lock(document_id)
        if lock.locked():
            logger.info("correction_waiting", document_id=document_id)

        async with lock:
            # Re-read under the lock: an earlier correction may have replaced it
            previous_result = self._require_reviewable(document_id)
            return await self._apply_correction(document, previous_result, corrected)

    async def _apply_correction(
        self,
        document: Document,
        previous_result: ClassificationResult,
        corrected: List[str],
    ) -> ClassificationResult:
        log = logger.bind(document_id=document.id, corrected_categories=corrected)

        context = CorrectiveContext(
            previous=tuple(previous_result.category_names()),
            corrected=tuple(corrected),
        )
        request = self.orchestrator.build_request(document, corrective_context=context)

        try:
            parsed = await self.orchestrator.classify_request(request)
        except (TransportFailure, ParseFailure) as e:
            log.error("correction_failed", error_kind=e.kind, error=str(e))
            raise

        now = self.orchestrator.clock()
        corrected_result = ClassificationResult(
            document_id=document.id,
            document_name=document.name,
            categories=merge_corrected_categories(corrected, parsed),
            key_findings=parsed.key_findings,
            recommendations=parsed.recommendations,
            created_at=now,
            flags=ResultFlags(ai_generated=True, was_corrected=True),
            correction=CorrectionInfo(
                original_categories=previous_result.categories,
                corrected_at=now,
            ),
            template=self.orchestrator.template,
            precheck=previous_result.precheck,
        )

        self.store.put_result(corrected_result)
        self._pending.pop(document.id, None)
        self.store.audit_log.record(
            document_id=document.id,
            document_name=document.name,
            action=AuditAction.MANUAL_CORRECTION,
            details={
                "previousCategories": list(context.previous),
                "correctedCategories": corrected,
                "categories": [
                    {"category": c.category, "confidence": c.confidence}
                    for c in corrected_result.categories
                ],
            },
        )
        log.info("correction_applied")
        return corrected_result
