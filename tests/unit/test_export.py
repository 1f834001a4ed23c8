"""
Unit tests for the export report.
"""

import json

import pytest
import pytest_asyncio

from doc_classificator.errors import TransportFailure
from doc_classificator.reporting.export import (
    build_export_report,
    export_report_json,
    load_report,
    summarize_by_category,
)
from doc_classificator.version import ENGINE_VERSION
from tests.fixtures.documents import (
    CONFIDENTIAL_INTERNAL,
    FIXED_TIME,
    HIGHLY_SENSITIVE,
    PUBLIC,
    category,
    reply,
)


@pytest_asyncio.fixture
async def populated(orchestrator, scripted_client, ingest):
    """Session with two successes (one multi-category), one failure and one pending document."""
    ingest("employee_records")
    ingest("press_release")
    ingest("strategy_memo")
    scripted_client.queue(
        reply(category(HIGHLY_SENSITIVE, 0.9), category(CONFIDENTIAL_INTERNAL, 0.5)),
        reply(category(PUBLIC, 0.97)),
        TransportFailure("down"),
    )
    await orchestrator.process_all()
    ingest("photo")
    return orchestrator


def _counts(by_category):
    return {c.category: c.count for c in by_category}


class TestSummary:

    @pytest.mark.asyncio
    async def test_counts_per_category(self, populated, taxonomy):
        counts = _counts(summarize_by_category(populated.store.results(), taxonomy))

        assert counts == {
            HIGHLY_SENSITIVE: 1,
            CONFIDENTIAL_INTERNAL: 1,
            "Confidential (Policy-based)": 0,
            PUBLIC: 1,
            "Unsafe Content": 0,
        }

    def test_taxonomy_order(self, taxonomy):
        assert [c.category for c in summarize_by_category([], taxonomy)] == taxonomy.names()


class TestBuildExportReport:

    @pytest.mark.asyncio
    async def test_report_shape(self, populated, taxonomy):
        report = build_export_report(populated.store, taxonomy, generated_at=FIXED_TIME)

        data = json.loads(export_report_json(report))

        assert list(data) == ["generatedAt", "engineVersion", "summary", "results", "auditLog"]
        assert data["generatedAt"] == "2024-05-01T12:00:00Z"
        assert data["engineVersion"]["engineVersion"] == ENGINE_VERSION
        assert data["engineVersion"]["taxonomyVersion"] == taxonomy.version
        assert data["summary"]["totalDocuments"] == 4
        assert len(data["results"]) == 3
        assert len(data["auditLog"]) == 3
        assert data["results"][2]["error"]["kind"] == "TransportFailure"
        assert data["auditLog"][0]["action"] == "classified"

    @pytest.mark.asyncio
    async def test_idempotent(self, populated, taxonomy):
        first = build_export_report(populated.store, taxonomy, generated_at=FIXED_TIME)
        second = build_export_report(populated.store, taxonomy, generated_at=FIXED_TIME)

        assert export_report_json(first) == export_report_json(second)
        assert len(populated.store.audit_log) == 3


class TestLoadReport:

    @pytest.mark.asyncio
    async def test_round_trip_reproduces_counts(self, populated, taxonomy):
        report = build_export_report(populated.store, taxonomy)

        loaded = load_report(export_report_json(report))

        assert loaded.results == report.results
        assert loaded.audit_log == report.audit_log
        assert _counts(summarize_by_category(loaded.results, taxonomy)) == _counts(report.summary.by_category)

    @pytest.mark.asyncio
    async def test_load_from_dict(self, populated, taxonomy):
        report = build_export_report(populated.store, taxonomy)

        loaded = load_report(json.loads(export_report_json(report)))

        assert loaded.summary == report.summary

    @pytest.mark.parametrize("payload", ["not json", '{"results": []}', {"summary": {"totalDocuments": -1}}])
    def test_invalid_report(self, payload):
        with pytest.raises(ValueError, match="Invalid export report"):
            load_report(payload)
