"""
Audit package: append-only record of state-changing actions.
"""

from doc_classificator.audit.log import AuditLog

__all__ = ["AuditLog"]
