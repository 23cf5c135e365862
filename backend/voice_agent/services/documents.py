"""
Document Extraction - Text out of uploaded plain-text and PDF files.
"""

import io
import logging
from typing import Optional

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from ..core.exceptions import UnsupportedUpload

logger = logging.getLogger(__name__)

TEXT_TYPES = {"text/plain", "text/markdown", "text/csv"}
PDF_TYPES = {"application/pdf"}
MAX_DOCUMENT_CHARS = 12000


def check_upload(content_type: Optional[str], filename: Optional[str] = None) -> str:
    """
    Return "text" or "pdf" for a supported upload.

    Raises:
        UnsupportedUpload: Anything that is neither text nor PDF
    """
    media_type = (content_type or "").split(";")[0].strip().lower()
    name = (filename or "").lower()
    if media_type in PDF_TYPES or name.endswith(".pdf"):
        return "pdf"
    if media_type in TEXT_TYPES or name.endswith((".txt", ".md")):
        return "text"
    raise UnsupportedUpload(content_type)


def extract_pdf_text(data: bytes) -> str:
    reader = PdfReader(io.BytesIO(data))
    pages = []
    for page in reader.pages:
        text = page.extract_text() or ""
        if text.strip():
            pages.append(text.strip())
    return "\n\n".join(pages)


def extract_text(data: bytes, content_type: Optional[str], filename: Optional[str] = None) -> str:
    """
    Extract readable text, truncated to MAX_DOCUMENT_CHARS.

    Raises:
        UnsupportedUpload: Unsupported type, or nothing readable inside
    """
    kind = check_upload(content_type, filename)
    if kind == "pdf":
        try:
            text = extract_pdf_text(data)
        except PdfReadError as e:
            logger.warning(f"Unreadable PDF upload {filename}: {e}")
            raise UnsupportedUpload(content_type) from e
    else:
        text = data.decode("utf-8", errors="ignore")

    text = text.strip()
    if not text:
        raise UnsupportedUpload(content_type)

    logger.debug(f"Extracted {len(text)} chars from {filename or kind}")
    return text[:MAX_DOCUMENT_CHARS]
