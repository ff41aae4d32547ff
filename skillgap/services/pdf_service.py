"""
PDF text extraction for the upload endpoint.

Text-layer extraction only (pdfplumber); scanned PDFs without a text layer
are rejected rather than OCR'd. Extraction is blocking and can take seconds
on large files, so async callers go through extract_text_async().
"""
import asyncio
import io

import pdfplumber

from skillgap.core.config import settings
from skillgap.core.exceptions import PDFExtractionException
from skillgap.core.logging import get_logger

logger = get_logger(__name__)

PDF_MAGIC = b"%PDF-"


def extract_text(pdf_bytes: bytes, filename: str = "document.pdf") -> str:
    """
    Extract the text layer of a PDF.

    Raises:
        PDFExtractionException: empty, oversized, not a PDF, unreadable, or no text
    """
    if not pdf_bytes:
        raise PDFExtractionException(f"{filename} is empty")

    if len(pdf_bytes) > settings.max_pdf_size_bytes:
        raise PDFExtractionException(
            f"{filename} is too large. Maximum size is {settings.max_pdf_size_mb} MB."
        )

    if not pdf_bytes.startswith(PDF_MAGIC):
        raise PDFExtractionException(f"{filename} is not a PDF file")

    try:
        with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
            text = "\n".join(page.extract_text() or "" for page in pdf.pages)
    except Exception as exc:
        logger.error("pdf_parse_failed", filename=filename, error=str(exc))
        raise PDFExtractionException(f"Could not read {filename}") from exc

    text = text.strip()
    if not text:
        logger.warning("pdf_empty_text", filename=filename)
        raise PDFExtractionException(f"{filename} contains no extractable text")

    logger.info("pdf_text_extracted", filename=filename, chars=len(text))
    return text


async def extract_text_async(pdf_bytes: bytes, filename: str = "document.pdf") -> str:
    return await asyncio.to_thread(extract_text, pdf_bytes, filename)
