"""
Append-only audit log.

Every state-changing action on a document or its result is recorded here,
in causal (insertion) order. Entries are immutable and never removed.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

import structlog

from doc_classificator.classification.schemas import AuditAction, AuditEntry, utcnow

logger = structlog.get_logger(__name__)


class AuditLog:
    """Ordered, append-only sequence of AuditEntry records."""

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._entries: List[AuditEntry] = []
        self._clock = clock

    def record(
        self,
        document_id: str,
        action: AuditAction,
        details: Optional[Dict[str, Any]] = None,
        document_name: str = "",
    ) -> AuditEntry:
        """
        Append a new entry stamped with the log's clock.

        Args:
            document_id: Document the action applies to
            action: Action performed
            details: Action-specific data (categories, confidences, errors, ...)
            document_name: File name, for human readers of exports

        Returns:
            The appended AuditEntry
        """
        entry = AuditEntry(
            timestamp=self._clock(),
            document_id=document_id,
            document_name=document_name,
            action=action,
            details=dict(details or {}),
        )
        self._entries.append(entry)

        logger.info(
            "audit_entry_recorded",
            document_id=document_id,
            action=action.value,
            sequence=len(self._entries),
        )
        return entry

    def entries(self) -> Tuple[AuditEntry, ...]:
        """Snapshot of all entries in insertion order."""
        return tuple(self._entries)

    def for_document(self, document_id: str) -> List[AuditEntry]:
        return [e for e in self._entries if e.document_id == document_id]

    def with_action(self, action: AuditAction) -> List[AuditEntry]:
        return [e for e in self._entries if e.action == action]

    def __iter__(self) -> Iterator[AuditEntry]:
        return iter(tuple(self._entries))

    def __len__(self) -> int:
        return len(self._entries)
