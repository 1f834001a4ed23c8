"""
Reporting package: export of session results and audit trail.
"""

from doc_classificator.reporting.export import (
    CategoryCount,
    ExportReport,
    ReportSummary,
    build_export_report,
    export_report_json,
    load_report,
    summarize_by_category,
)

__all__ = [
    "CategoryCount",
    "ExportReport",
    "ReportSummary",
    "build_export_report",
    "export_report_json",
    "load_report",
    "summarize_by_category",
]
