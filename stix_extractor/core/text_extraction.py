"""Plain-text extraction from uploaded documents.

PDF pages are read with PyMuPDF, Word documents with python-docx, and
text/JSON uploads are decoded as UTF-8. Extraction never raises: any
failure becomes a short explanatory string, which is what gets stored as the
document's text and later handed to the extractor (the prompt accepts any
string).
"""

import io
import logging
from typing import Protocol

import fitz  # PyMuPDF
from docx import Document

logger = logging.getLogger(__name__)

PDF_TYPE = "application/pdf"
DOCX_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
DOC_TYPE = "application/msword"
TEXT_TYPES = ("text/plain", "application/json")


class TextExtractor(Protocol):
    def extract_text(self, content: bytes, mime_type: str) -> str: ...


class DocumentTextExtractor:
    """Turns uploaded bytes into the plain text sent to the providers."""

    def extract_text(self, content: bytes, mime_type: str) -> str:
        """Extract text for a MIME type.

        Args:
            content: Raw file bytes.
            mime_type: Declared MIME type of the upload.

        Returns:
            Extracted text, or a placeholder message when the type is
            unsupported or parsing failed.
        """
        try:
            if mime_type == PDF_TYPE:
                return self._extract_pdf(content)
            if mime_type in (DOCX_TYPE, DOC_TYPE):
                return self._extract_docx(content)
            if mime_type in TEXT_TYPES:
                return content.decode("utf-8", errors="replace")
            return f"Unsupported file type: {mime_type}. Text extraction not available."
        except Exception as e:
            logger.error(f"Text extraction failed for {mime_type}: {type(e).__name__}: {e}")
            return "Failed to extract text from the document. Please try again with a different file."

    def _extract_pdf(self, content: bytes) -> str:
        try:
            doc = fitz.open(stream=content, filetype="pdf")
        except Exception as e:
            logger.warning(f"PDF could not be opened: {e}")
            return "Unable to parse PDF content"

        if doc.page_count == 0:
            doc.close()
            return "Unable to parse PDF content"

        with doc:
            pages = [page.get_text() for page in doc]

        text = "\n".join(p for p in pages if p.strip())
        logger.debug(f"Read {len(pages)} PDF pages, {len(text)} chars")
        return text or "No text extracted from PDF"

    def _extract_docx(self, content: bytes) -> str:
        try:
            doc = Document(io.BytesIO(content))
        except Exception as e:
            # Legacy .doc binaries land here too; python-docx reads only OOXML
            logger.warning(f"Word document could not be opened: {e}")
            return "Unable to parse Word document content"

        paragraphs = [p.text for p in doc.paragraphs if p.text.strip()]
        return "\n\n".join(paragraphs) or "No text extracted from document"


def extract_text(content: bytes, mime_type: str) -> str:
    """Convenience wrapper around DocumentTextExtractor.extract_text()."""
    return DocumentTextExtractor().extract_text(content, mime_type)
