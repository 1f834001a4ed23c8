"""
Document model - an uploaded file tracked through classification.

Raw bytes stay on the instance for excerpt building and pre-checks, but are
never serialized into API responses or export reports.

The regular lifecycle is pending → processing → processed | error. A document
rejected by the pre-check goes straight from pending to error and never
enters processing. No status ever returns to pending.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..errors import InvalidStatusTransition


class DocumentStatus(str, Enum):
    """Lifecycle of a document inside one session."""
    PENDING = "pending"
    PROCESSING = "processing"
    PROCESSED = "processed"
    ERROR = "error"


# Regular path: pending → processing → processed | error.
# Extra edge pending → error: pre-check rejection only (process_one step 1).
ALLOWED_TRANSITIONS: Dict[DocumentStatus, FrozenSet[DocumentStatus]] = {
    DocumentStatus.PENDING: frozenset({DocumentStatus.PROCESSING, DocumentStatus.ERROR}),
    DocumentStatus.PROCESSING: frozenset({DocumentStatus.PROCESSED, DocumentStatus.ERROR}),
    DocumentStatus.PROCESSED: frozenset(),
    DocumentStatus.ERROR: frozenset(),
}


def generate_document_id() -> str:
    """Opaque, session-unique document token."""
    return f"doc-{uuid.uuid4().hex}"


class Document(BaseModel):
    """Uploaded document metadata plus its classification status."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
    )

    id: str = Field(default_factory=generate_document_id, description="Opaque unique token")
    name: str = Field(description="Original file name")
    mime_type: str = Field(description="Declared MIME type")
    size_bytes: int = Field(ge=0, description="Content size in bytes")
    status: DocumentStatus = Field(default=DocumentStatus.PENDING)
    uploaded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    content: Optional[bytes] = Field(default=None, exclude=True, repr=False)

    @property
    def is_text(self) -> bool:
        return "text" in self.mime_type.lower()

    def transition_to(self, new_status: DocumentStatus) -> None:
        """
        Move to a new status, enforcing monotonic transitions.

        Raises:
            InvalidStatusTransition: If the move is not allowed
        """
        if new_status not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidStatusTransition(
                f"Document {self.id}: cannot move from {self.status.value} to {new_status.value}"
            )
        self.status = new_status
