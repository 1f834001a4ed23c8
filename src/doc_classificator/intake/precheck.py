"""
Deterministic pre-check run before any classification call.

A Precheck inspects a document and reports whether it is legible, plus
page and image counts. It is injected into the orchestrator so tests and
integrations can supply fixed values.
"""

import math
from abc import ABC, abstractmethod
from typing import Tuple

import fitz  # PyMuPDF
import structlog

from ..classification.schemas import PrecheckReport
from ..models.document import Document

# Characters per "page" for plain text documents
TEXT_PAGE_SIZE = 3000

logger = structlog.get_logger(__name__)


def inspect_pdf(content: bytes) -> Tuple[int, int]:
    """
    Count pages and distinct embedded images of a PDF.

    Args:
        content: Raw PDF bytes

    Returns:
        (page_count, image_count)

    Raises:
        ValueError: If the bytes cannot be opened as a PDF, the PDF is
            password-protected, or it has no pages
    """
    try:
        pdf = fitz.open(stream=content, filetype="pdf")
    except (RuntimeError, ValueError) as e:
        raise ValueError(f"Unreadable PDF: {e}") from e

    with pdf:
        if pdf.needs_pass:
            raise ValueError("PDF is password-protected")
        if pdf.page_count == 0:
            raise ValueError("PDF has no pages")

        # Same image reused on several pages shares one xref
        image_xrefs = {image[0] for page in pdf for image in page.get_images(full=True)}
        return pdf.page_count, len(image_xrefs)


class Precheck(ABC):
    """Feasibility check capability."""

    @abstractmethod
    def inspect(self, document: Document) -> PrecheckReport:
        """
        Inspect a document.

        Args:
            document: Document to inspect

        Returns:
            PrecheckReport with legibility, page and image counts
        """


class MimeTypePrecheck(Precheck):
    """
    Default pre-check based on the declared type and content.

    Legible iff the type is PDF, image or text and there is content.
    PDFs must also open and contain at least one page.
    """

    def inspect(self, document: Document) -> PrecheckReport:
        mime_type = document.mime_type.lower()
        content = document.content or b""

        is_pdf = "pdf" in mime_type
        is_image = "image" in mime_type
        is_text = "text" in mime_type

        if not (is_pdf or is_image or is_text):
            return PrecheckReport(
                legible=False,
                reason=f"Unsupported document type: {document.mime_type}",
            )

        if not content:
            return PrecheckReport(legible=False, reason="Document is empty")

        if is_pdf:
            try:
                page_count, image_count = inspect_pdf(content)
            except ValueError as e:
                logger.warning("pdf_inspection_failed", document_id=document.id, error=str(e))
                return PrecheckReport(legible=False, reason=str(e))
        elif is_image:
            page_count, image_count = 1, 1
        else:
            page_count = max(1, math.ceil(len(content) / TEXT_PAGE_SIZE))
            image_count = 0

        return PrecheckReport(legible=True, page_count=page_count, image_count=image_count)


class StaticPrecheck(Precheck):
    """Returns the same report for every document."""

    def __init__(self, report: PrecheckReport):
        self.report = report

    def inspect(self, document: Document) -> PrecheckReport:
        return self.report
