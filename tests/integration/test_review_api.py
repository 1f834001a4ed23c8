"""
Integration tests for feedback, correction, audit and report endpoints.
"""

import pytest
import pytest_asyncio

from doc_classificator.errors import TransportFailure
from doc_classificator.reporting.export import load_report
from tests.fixtures.documents import (
    CONFIDENTIAL_INTERNAL,
    PUBLIC,
    SAMPLE_DOCUMENTS,
    category,
    reply,
)

pytestmark = [pytest.mark.asyncio, pytest.mark.integration]


@pytest_asyncio.fixture
async def processed_doc(async_client, scripted_client):
    """Press release classified (wrongly) as Confidential (Internal)."""
    response = await async_client.post(
        "/api/v1/documents",
        files=[("files", SAMPLE_DOCUMENTS["press_release"])],
    )
    doc = response.json()["documents"][0]
    scripted_client.queue(reply(category(CONFIDENTIAL_INTERNAL, 0.97)))
    await async_client.post("/api/v1/documents/process")
    return doc


class TestFeedback:

    async def test_confirm(self, async_client, processed_doc):
        response = await async_client.post(
            f"/api/v1/documents/{processed_doc['id']}/feedback",
            json={"isCorrect": True},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["result"]["flags"]["userConfirmed"] is True
        assert data["correctionNeeded"] is None

    async def test_incorrect_opens_correction(self, async_client, processed_doc):
        response = await async_client.post(
            f"/api/v1/documents/{processed_doc['id']}/feedback",
            json={"isCorrect": False},
        )

        event = response.json()["correctionNeeded"]
        assert event["documentId"] == processed_doc["id"]
        assert event["previousCategories"] == [CONFIDENTIAL_INTERNAL]
        assert event["maxCategories"] == 2

        pending = (await async_client.get("/api/v1/corrections/pending")).json()["corrections"]
        assert [p["documentId"] for p in pending] == [processed_doc["id"]]

    async def test_unknown_document(self, async_client):
        response = await async_client.post("/api/v1/documents/doc-missing/feedback", json={"isCorrect": True})
        assert response.status_code == 404

    async def test_pending_document_conflict(self, async_client):
        response = await async_client.post(
            "/api/v1/documents",
            files=[("files", SAMPLE_DOCUMENTS["photo"])],
        )
        doc_id = response.json()["documents"][0]["id"]

        response = await async_client.post(f"/api/v1/documents/{doc_id}/feedback", json={"isCorrect": True})

        assert response.status_code == 409


class TestCorrection:

    async def test_correction_replaces_result(self, async_client, scripted_client, processed_doc):
        doc_id = processed_doc["id"]
        await async_client.post(f"/api/v1/documents/{doc_id}/feedback", json={"isCorrect": False})
        scripted_client.queue(reply(category(PUBLIC, 0.95)))

        response = await async_client.post(
            f"/api/v1/documents/{doc_id}/correction",
            json={"categories": [PUBLIC]},
        )

        assert response.status_code == 200
        data = response.json()
        assert [c["category"] for c in data["categories"]] == [PUBLIC]
        assert data["flags"]["wasCorrected"] is True
        assert data["correction"]["originalCategories"][0]["category"] == CONFIDENTIAL_INTERNAL
        assert (await async_client.get("/api/v1/corrections/pending")).json()["corrections"] == []

        audit = (await async_client.get("/api/v1/audit")).json()
        assert audit["total"] == 3
        assert [e["action"] for e in audit["entries"]] == [
            "classified",
            "feedback_incorrect",
            "manual_correction",
        ]

    @pytest.mark.parametrize("categories", [[], ["Top Secret"], [PUBLIC, PUBLIC]])
    async def test_invalid_categories(self, async_client, processed_doc, categories):
        response = await async_client.post(
            f"/api/v1/documents/{processed_doc['id']}/correction",
            json={"categories": categories},
        )

        assert response.status_code == 422

    async def test_model_failure_keeps_result(self, async_client, scripted_client, processed_doc):
        doc_id = processed_doc["id"]
        scripted_client.queue(TransportFailure("timeout"))

        response = await async_client.post(
            f"/api/v1/documents/{doc_id}/correction",
            json={"categories": [PUBLIC]},
        )

        assert response.status_code == 502
        assert response.json()["detail"].startswith("TransportFailure")
        result = (await async_client.get(f"/api/v1/results/{doc_id}")).json()
        assert [c["category"] for c in result["categories"]] == [CONFIDENTIAL_INTERNAL]

    async def test_unknown_document(self, async_client):
        response = await async_client.post(
            "/api/v1/documents/doc-missing/correction",
            json={"categories": [PUBLIC]},
        )
        assert response.status_code == 404


class TestReport:

    async def test_report_round_trips(self, async_client, processed_doc, taxonomy):
        response = await async_client.get("/api/v1/report")

        assert response.status_code == 200
        data = response.json()
        assert data["summary"]["totalDocuments"] == 1
        counts = {c["category"]: c["count"] for c in data["summary"]["byCategory"]}
        assert counts[CONFIDENTIAL_INTERNAL] == 1
        assert counts[PUBLIC] == 0
        assert data["engineVersion"]["taxonomyVersion"] == taxonomy.version

        report = load_report(response.text)
        assert report.results[0].document_id == processed_doc["id"]
        assert len(report.audit_log) == 1
