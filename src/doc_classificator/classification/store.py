"""
Owned session state: documents, their current results and the audit log.

The store is an explicit object handed to the orchestrator and the
correction workflow; there is no process-wide state. Documents keep intake
order and are never removed. Each document has at most one result;
storing a new one replaces the old.
"""

from collections import OrderedDict
from datetime import datetime
from typing import Callable, Dict, List, Optional

from doc_classificator.audit.log import AuditLog
from doc_classificator.classification.schemas import ClassificationResult, utcnow
from doc_classificator.errors import DocumentNotFoundError
from doc_classificator.models.document import Document, DocumentStatus


class ClassificationStore:
    """Document table, result table and audit log for one session."""

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._documents: "OrderedDict[str, Document]" = OrderedDict()
        self._results: Dict[str, ClassificationResult] = {}
        self.audit_log = AuditLog(clock=clock)

    # Documents

    def add_document(self, document: Document) -> Document:
        """
        Register a newly ingested document.

        Raises:
            ValueError: If the id is already registered or the document is not pending
        """
        if document.id in self._documents:
            raise ValueError(f"Document already registered: {document.id}")
        if document.status != DocumentStatus.PENDING:
            raise ValueError(f"New documents must be pending, got {document.status.value}")
        self._documents[document.id] = document
        return document

    def get_document(self, document_id: str) -> Document:
        """
        Raises:
            DocumentNotFoundError: If no such document exists
        """
        try:
            return self._documents[document_id]
        except KeyError:
            raise DocumentNotFoundError(document_id) from None

    def has_document(self, document_id: str) -> bool:
        return document_id in self._documents

    def documents(self) -> List[Document]:
        """All documents in intake order."""
        return list(self._documents.values())

    def pending_documents(self) -> List[Document]:
        return [d for d in self._documents.values() if d.status == DocumentStatus.PENDING]

    # Results

    def get_result(self, document_id: str) -> Optional[ClassificationResult]:
        self.get_document(document_id)
        return self._results.get(document_id)

    def put_result(self, result: ClassificationResult) -> None:
        """Store (or replace) the result for its document."""
        self.get_document(result.document_id)
        self._results[result.document_id] = result

    def results(self) -> List[ClassificationResult]:
        """Current results in document intake order."""
        return [self._results[doc_id] for doc_id in self._documents if doc_id in self._results]

    def status_counts(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in DocumentStatus}
        for document in self._documents.values():
            counts[document.status.value] += 1
        return counts
