"""
Intake package: document creation, text decoding and pre-checks.
"""

from doc_classificator.intake.document_loader import (
    create_document,
    decode_text,
    extract_text,
    guess_mime_type,
    load_document,
)
from doc_classificator.intake.precheck import MimeTypePrecheck, Precheck, StaticPrecheck

__all__ = [
    "create_document",
    "decode_text",
    "extract_text",
    "guess_mime_type",
    "load_document",
    "MimeTypePrecheck",
    "Precheck",
    "StaticPrecheck",
]
