"""
Document intake: turn uploaded bytes into session Documents.

Also provides text decoding for text-like documents, used when building
the excerpt sent to the classification client.
"""

import mimetypes
from pathlib import Path
from typing import Optional, Union

import charset_normalizer
import structlog

from ..models.document import Document

logger = structlog.get_logger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"


def guess_mime_type(name: str) -> str:
    """
    Guess MIME type from file name.

    Args:
        name: File name (extension is what matters)

    Returns:
        MIME type, or application/octet-stream if unknown
    """
    mime_type, _ = mimetypes.guess_type(name)
    return mime_type or DEFAULT_MIME_TYPE


def create_document(
    name: str,
    content: bytes,
    mime_type: Optional[str] = None,
) -> Document:
    """
    Create a pending Document from uploaded content.

    Args:
        name: Original file name
        content: Raw file bytes
        mime_type: Declared MIME type (guessed from name when missing)

    Returns:
        Document in pending status
    """
    document = Document(
        name=name,
        mime_type=mime_type or guess_mime_type(name),
        size_bytes=len(content),
        content=content,
    )

    logger.debug(
        "document_created",
        document_id=document.id,
        name=name,
        mime_type=document.mime_type,
        size_bytes=document.size_bytes,
    )

    return document


def load_document(path: Union[str, Path]) -> Document:
    """
    Read a file from disk into a pending Document.

    Args:
        path: File path

    Returns:
        Document in pending status
    """
    file_path = Path(path)
    with open(file_path, "rb") as f:
        content = f.read()
    return create_document(name=file_path.name, content=content)


def decode_text(content: Optional[bytes], charset: Optional[str] = None) -> str:
    """
    Decode text content handling various encodings.

    Tries the declared charset, then charset detection, then UTF-8 with
    replacement characters.

    Args:
        content: Raw bytes
        charset: Declared charset, if any

    Returns:
        Decoded string content
    """
    if not content:
        return ""

    # Try declared charset first
    if charset:
        try:
            return content.decode(charset)
        except (UnicodeDecodeError, LookupError):
            pass

    # Try charset detection
    detected = charset_normalizer.from_bytes(content).best()
    if detected:
        return str(detected)

    # Final fallback
    return content.decode("utf-8", errors="replace")


def charset_from_mime_type(mime_type: str) -> Optional[str]:
    """Extract the charset parameter from a MIME type, e.g. 'text/plain; charset=latin-1'."""
    for param in mime_type.split(";")[1:]:
        key, _, value = param.strip().partition("=")
        if key.lower() == "charset" and value:
            return value.strip('"')
    return None


def extract_text(document: Document) -> str:
    """
    Decoded text of a text-like document.

    Returns:
        Document text, or "" for non-text documents
    """
    if not document.is_text:
        return ""
    return decode_text(document.content, charset_from_mime_type(document.mime_type))
