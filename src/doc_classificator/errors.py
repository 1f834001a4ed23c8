"""
Error hierarchy for the classification engine.

PrecheckFailure, TransportFailure and ParseFailure are turned into
error-flavored ClassificationResults by the orchestrator. ValidationFailure
only aborts a correction attempt. The remaining errors signal misuse of the
engine's operations (unknown ids, illegal state changes).
"""

from typing import List, Optional


class ClassificationError(Exception):
    """Base class for all engine errors."""

    kind = "ClassificationError"


class PrecheckFailure(ClassificationError):
    """Document is not legible/processable. Terminal, no model call."""

    kind = "PrecheckFailure"


class TransportFailure(ClassificationError):
    """Network or API-level failure while calling the classification client."""

    kind = "TransportFailure"


class ParseFailure(ClassificationError):
    """Model response is malformed or violates the response schema."""

    kind = "ParseFailure"

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = list(errors or [])


class ValidationFailure(ClassificationError):
    """Invalid correction input submitted by a human reviewer."""

    kind = "ValidationFailure"


class DocumentNotFoundError(ClassificationError, KeyError):
    """No document with the given id exists in the session."""

    kind = "DocumentNotFound"

    def __init__(self, document_id: str):
        super().__init__(f"Unknown document: {document_id}")
        self.document_id = document_id

    def __str__(self) -> str:
        return self.args[0]


class InvalidStateError(ClassificationError):
    """Operation is not allowed in the document's current state."""

    kind = "InvalidState"


class InvalidStatusTransition(InvalidStateError):
    """Document status change would violate pending → processing → terminal."""

    kind = "InvalidStatusTransition"
