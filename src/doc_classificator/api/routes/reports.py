"""
Audit trail and export report endpoints.
"""

from fastapi import APIRouter, Depends

from ...models.api_models import AuditLogResponse
from ...reporting.export import ExportReport
from ...session import ClassificationSession
from ..dependencies import get_session

router = APIRouter(prefix="/api/v1", tags=["Reports"])


@router.get("/audit", response_model=AuditLogResponse)
async def get_audit_log(session: ClassificationSession = Depends(get_session)) -> AuditLogResponse:
    """Full audit log in insertion order."""
    entries = list(session.store.audit_log.entries())
    return AuditLogResponse(total=len(entries), entries=entries)


@router.get("/report", response_model=ExportReport)
async def get_report(session: ClassificationSession = Depends(get_session)) -> ExportReport:
    """
    Export report: per-category summary, all results and the audit log.

    The body is the same JSON the CLI writes and load_report() re-imports.
    """
    return session.export_report()
