"""
Export report for archival and compliance review.

Shape:
    {
      "generatedAt": "...",
      "engineVersion": {...},
      "summary": {"totalDocuments": N, "byCategory": [{"category": ..., "count": ...}]},
      "results": [...],
      "auditLog": [...]
    }

Per-category counts are derived from the results alone, so re-importing a
report and summarizing its results reproduces the same counts.
"""

from datetime import datetime
from typing import Iterable, List, Optional, Union

import structlog
from pydantic import Field, ValidationError

from doc_classificator.classification.schemas import (
    AuditEntry,
    CamelModel,
    ClassificationResult,
    utcnow,
)
from doc_classificator.classification.store import ClassificationStore
from doc_classificator.models.engine_version import EngineVersion
from doc_classificator.taxonomy.registry import TaxonomyRegistry
from doc_classificator.version import get_current_engine_version


logger = structlog.get_logger(__name__)


class CategoryCount(CamelModel):
    category: str
    count: int = Field(..., ge=0)


class ReportSummary(CamelModel):
    total_documents: int = Field(..., ge=0)
    by_category: List[CategoryCount] = Field(default_factory=list)


class ExportReport(CamelModel):
    """Full session export: summary, results and audit trail."""
    generated_at: datetime = Field(default_factory=utcnow)
    engine_version: Optional[EngineVersion] = None
    summary: ReportSummary
    results: List[ClassificationResult] = Field(default_factory=list)
    audit_log: List[AuditEntry] = Field(default_factory=list)


def summarize_by_category(
    results: Iterable[ClassificationResult],
    taxonomy: TaxonomyRegistry,
) -> List[CategoryCount]:
    """
    Count results per taxonomy category.

    A result counts once for every category it contains, so a result with
    two categories contributes to both. Categories are listed in taxonomy
    order, including those with a zero count.
    """
    results = list(results)
    return [
        CategoryCount(
            category=name,
            count=sum(1 for r in results if name in r.category_names()),
        )
        for name in taxonomy.names()
    ]


def build_export_report(
    store: ClassificationStore,
    taxonomy: TaxonomyRegistry,
    engine_version: Optional[EngineVersion] = None,
    generated_at: Optional[datetime] = None,
) -> ExportReport:
    """
    Snapshot the store into an ExportReport.

    Args:
        store: Session store
        taxonomy: Active taxonomy (drives the byCategory breakdown)
        engine_version: Version block (default: current engine version)
        generated_at: Report timestamp (default: now)

    Returns:
        ExportReport
    """
    results = store.results()
    report = ExportReport(
        generated_at=generated_at or utcnow(),
        engine_version=engine_version or get_current_engine_version(taxonomy.version),
        summary=ReportSummary(
            total_documents=len(store.documents()),
            by_category=summarize_by_category(results, taxonomy),
        ),
        results=results,
        audit_log=list(store.audit_log.entries()),
    )

    logger.info(
        "export_report_built",
        total_documents=report.summary.total_documents,
        results_count=len(report.results),
        audit_entries=len(report.audit_log)
    )
    return report


def export_report_json(report: ExportReport, indent: Optional[int] = 2) -> str:
    """Serialize a report with camelCase keys."""
    return report.model_dump_json(by_alias=True, indent=indent)


def load_report(data: Union[str, bytes, dict]) -> ExportReport:
    """
    Re-import an exported report.

    Args:
        data: JSON text or an already decoded dict

    Returns:
        ExportReport

    Raises:
        ValueError: If the payload is not a valid report
    """
    try:
        if isinstance(data, dict):
            return ExportReport.model_validate(data)
        return ExportReport.model_validate_json(data)
    except ValidationError as e:
        raise ValueError(f"Invalid export report: {e}") from e
