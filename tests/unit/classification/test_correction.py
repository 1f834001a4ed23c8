"""
Unit tests for the human-in-the-loop correction workflow.
"""

import asyncio

import pytest
import pytest_asyncio

from doc_classificator.classification.correction import (
    REVIEWER_REASONING,
    merge_corrected_categories,
)
from doc_classificator.classification.schemas import AuditAction, CorrectionNeeded, ParsedClassification
from doc_classificator.errors import (
    DocumentNotFoundError,
    InvalidStateError,
    ParseFailure,
    TransportFailure,
    ValidationFailure,
)
from doc_classificator.models.document import DocumentStatus
from tests.fixtures.documents import (
    CONFIDENTIAL_INTERNAL,
    CONFIDENTIAL_POLICY,
    HIGHLY_SENSITIVE,
    PUBLIC,
    UNSAFE,
    category,
    reply,
)


@pytest_asyncio.fixture
async def classified(orchestrator, scripted_client, ingest):
    """A processed document classified as Confidential (Internal)."""
    scripted_client.queue(reply(category(CONFIDENTIAL_INTERNAL, 0.85)))
    doc = ingest("press_release")
    await orchestrator.process_one(doc.id)
    return doc


def _actions(orchestrator, document_id):
    return [e.action for e in orchestrator.store.audit_log.for_document(document_id)]


async def _settle():
    """Let started tasks run until they block."""
    for _ in range(5):
        await asyncio.sleep(0)


def _held_reply(release, text):
    async def outcome(request):
        await release.wait()
        return text
    return outcome


class TestRecordFeedback:

    @pytest.mark.asyncio
    async def test_confirm(self, orchestrator, correction, classified):
        event = await correction.record_feedback(classified.id, True)

        result = orchestrator.store.get_result(classified.id)
        assert event is None
        assert result.flags.user_confirmed
        assert result.category_names() == [CONFIDENTIAL_INTERNAL]
        assert _actions(orchestrator, classified.id) == [AuditAction.CLASSIFIED, AuditAction.FEEDBACK_CORRECT]
        assert correction.pending_corrections() == []

    @pytest.mark.asyncio
    async def test_incorrect_publishes_event(self, orchestrator, correction, classified, taxonomy):
        received = []
        correction.subscribe(received.append)

        event = await correction.record_feedback(classified.id, False)

        assert isinstance(event, CorrectionNeeded)
        assert received == [event]
        assert event.document_id == classified.id
        assert event.document_name == "press_release.txt"
        assert event.previous_categories == [CONFIDENTIAL_INTERNAL]
        assert [c.name for c in event.taxonomy] == taxonomy.names()
        assert correction.pending_corrections() == [event]
        assert _actions(orchestrator, classified.id) == [AuditAction.CLASSIFIED, AuditAction.FEEDBACK_INCORRECT]

    @pytest.mark.asyncio
    async def test_async_listener_awaited(self, correction, classified):
        received = []

        async def listener(event):
            received.append(event.document_id)

        correction.subscribe(listener)
        await correction.record_feedback(classified.id, False)

        assert received == [classified.id]

    @pytest.mark.asyncio
    async def test_unsubscribe(self, correction, classified):
        received = []
        unsubscribe = correction.subscribe(received.append)
        unsubscribe()

        await correction.record_feedback(classified.id, False)

        assert received == []

    @pytest.mark.asyncio
    async def test_incorrect_clears_previous_confirmation(self, orchestrator, correction, classified):
        await correction.record_feedback(classified.id, True)
        await correction.record_feedback(classified.id, False)

        assert not orchestrator.store.get_result(classified.id).flags.user_confirmed

    @pytest.mark.asyncio
    async def test_unknown_document(self, correction):
        with pytest.raises(DocumentNotFoundError):
            await correction.record_feedback("doc-missing", True)

    @pytest.mark.asyncio
    async def test_requires_result(self, correction, ingest):
        doc = ingest("press_release")

        with pytest.raises(InvalidStateError):
            await correction.record_feedback(doc.id, True)

    @pytest.mark.asyncio
    async def test_error_result_cannot_be_reviewed(self, orchestrator, correction, scripted_client, ingest):
        scripted_client.queue(TransportFailure("down"))
        doc = ingest("press_release")
        await orchestrator.process_one(doc.id)

        with pytest.raises(InvalidStateError):
            await correction.record_feedback(doc.id, False)


class TestRequestCorrection:

    @pytest.mark.asyncio
    async def test_feedback_then_correction(self, orchestrator, correction, scripted_client, classified):
        previous = orchestrator.store.get_result(classified.id)
        await correction.record_feedback(classified.id, False)
        scripted_client.queue(reply(category(PUBLIC, 0.95, reasoning="Press release for public distribution")))

        result = await correction.request_correction(classified.id, [PUBLIC])

        assert result.flags.was_corrected
        assert result.flags.ai_generated
        assert result.category_names() == [PUBLIC]
        assert result.categories[0].reasoning == "Press release for public distribution"
        assert result.correction.original_categories == previous.categories
        assert result.correction.corrected_at == result.created_at
        assert orchestrator.store.get_result(classified.id) is result
        assert classified.status == DocumentStatus.PROCESSED
        assert correction.pending_corrections() == []

        actions = _actions(orchestrator, classified.id)
        assert actions == [
            AuditAction.CLASSIFIED,
            AuditAction.FEEDBACK_INCORRECT,
            AuditAction.MANUAL_CORRECTION,
        ]
        entry = orchestrator.store.audit_log.for_document(classified.id)[-1]
        assert entry.details["previousCategories"] == [CONFIDENTIAL_INTERNAL]
        assert entry.details["correctedCategories"] == [PUBLIC]

    @pytest.mark.asyncio
    async def test_corrective_request_carries_context(self, correction, scripted_client, classified):
        scripted_client.queue(reply(category(PUBLIC, 0.9)))

        await correction.request_correction(classified.id, [PUBLIC])

        request = scripted_client.requests[-1]
        assert request.is_correction
        assert f"Previous categories:\n- {CONFIDENTIAL_INTERNAL}" in request.user_prompt
        assert f"asserted by a human reviewer):\n- {PUBLIC}" in request.user_prompt

    @pytest.mark.asyncio
    async def test_original_categories_chain(self, orchestrator, correction, scripted_client, classified):
        scripted_client.queue(reply(category(PUBLIC, 0.9)))
        first = await correction.request_correction(classified.id, [PUBLIC])
        scripted_client.queue(reply(category(CONFIDENTIAL_POLICY, 0.8)))

        second = await correction.request_correction(classified.id, [CONFIDENTIAL_POLICY])

        assert second.correction.original_categories == first.categories

    @pytest.mark.asyncio
    async def test_human_order_wins(self, correction, scripted_client, classified):
        scripted_client.queue(reply(
            category(CONFIDENTIAL_POLICY, 0.9, reasoning="NDA terms"),
            category(HIGHLY_SENSITIVE, 0.7, reasoning="Contains salaries"),
        ))

        result = await correction.request_correction(classified.id, [HIGHLY_SENSITIVE, CONFIDENTIAL_POLICY])

        assert result.category_names() == [HIGHLY_SENSITIVE, CONFIDENTIAL_POLICY]
        assert result.categories[0].reasoning == "Contains salaries"
        assert result.categories[1].confidence == 0.9

    @pytest.mark.asyncio
    @pytest.mark.parametrize("categories", [
        [],
        [PUBLIC, HIGHLY_SENSITIVE, CONFIDENTIAL_POLICY],
        [PUBLIC, PUBLIC],
        ["Top Secret"],
        "Public",
        [42],
    ])
    async def test_invalid_input_rejected(self, orchestrator, correction, scripted_client, classified, categories):
        before = orchestrator.store.get_result(classified.id)
        audit_size = len(orchestrator.store.audit_log)

        with pytest.raises(ValidationFailure):
            await correction.request_correction(classified.id, categories)

        assert orchestrator.store.get_result(classified.id) is before
        assert len(orchestrator.store.audit_log) == audit_size
        assert scripted_client.calls == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("outcome, error_type", [
        (TransportFailure("timeout"), TransportFailure),
        ("not json", ParseFailure),
        (reply(category("Top Secret", 0.9)), ParseFailure),
    ])
    async def test_failure_keeps_prior_result(
        self, orchestrator, correction, scripted_client, classified, outcome, error_type
    ):
        await correction.record_feedback(classified.id, False)
        before = orchestrator.store.get_result(classified.id)
        audit_size = len(orchestrator.store.audit_log)
        scripted_client.queue(outcome)

        with pytest.raises(error_type):
            await correction.request_correction(classified.id, [PUBLIC])

        assert orchestrator.store.get_result(classified.id) is before
        assert len(orchestrator.store.audit_log) == audit_size
        assert len(correction.pending_corrections()) == 1

    @pytest.mark.asyncio
    async def test_requires_processed_document(self, correction, ingest):
        doc = ingest("press_release")

        with pytest.raises(InvalidStateError):
            await correction.request_correction(doc.id, [PUBLIC])

    @pytest.mark.asyncio
    async def test_unknown_document(self, correction):
        with pytest.raises(DocumentNotFoundError):
            await correction.request_correction("doc-missing", [PUBLIC])

class TestConcurrentReview:

    @pytest.mark.asyncio
    async def test_overlapping_corrections_record_replaced_result(
        self, orchestrator, correction, scripted_client, classified
    ):
        release = asyncio.Event()
        scripted_client.queue(
            _held_reply(release, reply(category(UNSAFE, 0.9))),
            reply(category(CONFIDENTIAL_POLICY, 0.8)),
        )

        first = asyncio.create_task(correction.request_correction(classified.id, [UNSAFE]))
        await _settle()
        second = asyncio.create_task(correction.request_correction(classified.id, [CONFIDENTIAL_POLICY]))
        await _settle()

        assert scripted_client.calls == 2
        release.set()
        first_result, second_result = await asyncio.gather(first, second)

        assert first_result.correction.original_categories[0].category == CONFIDENTIAL_INTERNAL
        assert second_result.correction.original_categories == first_result.categories
        assert orchestrator.store.get_result(classified.id) is second_result
        assert f"Previous categories:\n- {CONFIDENTIAL_INTERNAL}" in scripted_client.requests[1].user_prompt
        assert f"Previous categories:\n- {UNSAFE}" in scripted_client.requests[2].user_prompt

        corrections = [
            e.details["previousCategories"]
            for e in orchestrator.store.audit_log.for_document(classified.id)
            if e.action == AuditAction.MANUAL_CORRECTION
        ]
        assert corrections == [[CONFIDENTIAL_INTERNAL], [UNSAFE]]

    @pytest.mark.asyncio
    async def test_confirmation_waits_for_in_flight_correction(
        self, orchestrator, correction, scripted_client, classified
    ):
        release = asyncio.Event()
        scripted_client.queue(_held_reply(release, reply(category(PUBLIC, 0.9))))

        correcting = asyncio.create_task(correction.request_correction(classified.id, [PUBLIC]))
        await _settle()
        confirming = asyncio.create_task(correction.record_feedback(classified.id, True))
        await _settle()

        assert _actions(orchestrator, classified.id) == [AuditAction.CLASSIFIED]
        release.set()
        await asyncio.gather(correcting, confirming)

        result = orchestrator.store.get_result(classified.id)
        assert result.flags.was_corrected
        assert result.flags.user_confirmed
        assert _actions(orchestrator, classified.id) == [
            AuditAction.CLASSIFIED,
            AuditAction.MANUAL_CORRECTION,
            AuditAction.FEEDBACK_CORRECT,
        ]
        assert orchestrator.store.audit_log.for_document(classified.id)[-1].details["categories"] == [PUBLIC]

    @pytest.mark.asyncio
    async def test_failed_correction_releases_document(self, correction, scripted_client, classified):
        scripted_client.queue(TransportFailure("timeout"), reply(category(PUBLIC, 0.9)))

        with pytest.raises(TransportFailure):
            await correction.request_correction(classified.id, [PUBLIC])
        result = await asyncio.wait_for(correction.request_correction(classified.id, [PUBLIC]), timeout=1)

        assert result.category_names() == [PUBLIC]

    @pytest.mark.asyncio
    async def test_listener_may_answer_correction_immediately(self, correction, scripted_client, classified):
        answered = []

        async def reviewer(event):
            answered.append(await correction.request_correction(event.document_id, [PUBLIC]))

        correction.subscribe(reviewer)
        scripted_client.queue(reply(category(PUBLIC, 0.9)))

        await asyncio.wait_for(correction.record_feedback(classified.id, False), timeout=1)

        assert answered[0].flags.was_corrected
        assert correction.pending_corrections() == []



class TestMergeCorrectedCategories:

    def test_omitted_category_gets_reviewer_entry(self):
        parsed = ParsedClassification(categories=[category(PUBLIC, 0.6)])

        merged = merge_corrected_categories([HIGHLY_SENSITIVE, PUBLIC], parsed)

        assert [c.category for c in merged] == [HIGHLY_SENSITIVE, PUBLIC]
        assert merged[0].confidence == 1.0
        assert merged[0].reasoning == REVIEWER_REASONING
        assert merged[1].confidence == 0.6

    def test_unasserted_model_categories_dropped(self):
        parsed = ParsedClassification(categories=[category(PUBLIC, 0.6), category(HIGHLY_SENSITIVE, 0.3)])

        merged = merge_corrected_categories([PUBLIC], parsed)

        assert [c.category for c in merged] == [PUBLIC]
