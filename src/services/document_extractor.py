"""Plain-text extraction for PDF, DOCX and text documents.

Used for PDF URLs found by the direct fetch strategy and for files
uploaded with multipart chat requests.
"""

import io
from pathlib import PurePosixPath

import docx2txt
import fitz  # PyMuPDF

PDF_CONTENT_TYPE = "application/pdf"
DOCX_CONTENT_TYPE = (
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
)

# Pages with less text than this are scanned covers, blank pages, etc.
_MIN_PAGE_CHARS = 30


class UnsupportedDocumentError(ValueError):
    """Raised for attachment types we cannot turn into text."""


def is_pdf(content_type: str | None, data: bytes, filename: str = "") -> bool:
    """Detect a PDF by content type, magic bytes or file extension."""
    if content_type and PDF_CONTENT_TYPE in content_type.lower():
        return True
    if data[:4] == b"%PDF":
        return True
    return filename.lower().endswith(".pdf")


def is_docx(content_type: str | None, filename: str = "") -> bool:
    if content_type and DOCX_CONTENT_TYPE in content_type.lower():
        return True
    return filename.lower().endswith(".docx")


def extract_pdf(data: bytes) -> tuple[str, str]:
    """Extract (title, text) from PDF bytes.

    Returns:
        The document's metadata title ("" when absent) and page texts
        joined by blank lines.
    """
    doc = fitz.open(stream=data, filetype="pdf")
    try:
        title = (doc.metadata or {}).get("title") or ""
        pages = []
        for page in doc:
            text = page.get_text().strip()
            if len(text) >= _MIN_PAGE_CHARS:
                pages.append(text)
    finally:
        doc.close()
    return title.strip(), "\n\n".join(pages)


def extract_docx(data: bytes) -> str:
    return (docx2txt.process(io.BytesIO(data)) or "").strip()


def extract_document_text(filename: str, content_type: str | None, data: bytes) -> str:
    """Extract text from an uploaded document.

    Args:
        filename: Client-supplied file name (used for type sniffing)
        content_type: Client-supplied MIME type, may be None
        data: Raw file bytes

    Returns:
        Extracted plain text (may be empty)

    Raises:
        UnsupportedDocumentError: If the file is not PDF, DOCX or text
    """
    if is_pdf(content_type, data, filename):
        _, text = extract_pdf(data)
        return text
    if is_docx(content_type, filename):
        return extract_docx(data)
    suffix = PurePosixPath(filename).suffix.lower()
    if (content_type or "").startswith("text/") or suffix in (".txt", ".md", ".csv"):
        return data.decode("utf-8", errors="replace").strip()
    raise UnsupportedDocumentError(
        f"Unsupported attachment type for {filename!r}: {content_type or 'unknown'}"
    )
