"""Text extraction from (optionally password-protected) PDF statements."""

import logging
from dataclasses import dataclass
from io import BytesIO
from typing import Optional

import pdfplumber
from pdfminer.pdfdocument import PDFPasswordIncorrect

logger = logging.getLogger(__name__)

PASSWORD_REQUIRED_MESSAGE = "This PDF is password protected. Please provide the password."
WRONG_PASSWORD_MESSAGE = "Incorrect password provided."
NO_TEXT_MESSAGE = "No text content found in PDF. The file might be image-based or corrupted."


@dataclass(frozen=True)
class PdfExtraction:
    """Result of extracting text from a PDF."""

    success: bool
    text: str = ""
    error: Optional[str] = None
    requires_password: bool = False


def _is_password_error(error: BaseException) -> bool:
    """Walk the exception chain looking for an encryption/password failure."""
    seen = set()
    pending: list[BaseException] = [error]

    while pending:
        current = pending.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))

        if isinstance(current, PDFPasswordIncorrect):
            return True
        message = str(current).lower()
        if "password" in message or "encrypt" in message:
            return True

        pending.extend(arg for arg in current.args if isinstance(arg, BaseException))
        for linked in (current.__cause__, current.__context__):
            if linked is not None:
                pending.append(linked)

    return False


def extract_pdf_text(contents: bytes, password: Optional[str] = None) -> PdfExtraction:
    """
    Extract text from every page of a PDF.

    Args:
        contents: Raw PDF bytes
        password: Optional password for encrypted statements

    Returns:
        PdfExtraction with the page text joined by newlines on success, or
        the reason for failure (including whether a password is needed)
    """
    try:
        with pdfplumber.open(BytesIO(contents), password=password or "") as pdf:
            pages = []
            for page in pdf.pages:
                text = page.extract_text() or ""
                if text.strip():
                    pages.append(text)
            logger.info(f"Extracted text from {len(pages)}/{len(pdf.pages)} PDF pages")
    except Exception as e:
        if _is_password_error(e):
            if not password:
                return PdfExtraction(success=False, requires_password=True, error=PASSWORD_REQUIRED_MESSAGE)
            return PdfExtraction(success=False, error=WRONG_PASSWORD_MESSAGE)

        logger.error(f"PDF extraction failed: {e}")
        return PdfExtraction(success=False, error=f"Unable to process PDF: {e}")

    full_text = "\n".join(pages)
    if not full_text.strip():
        return PdfExtraction(success=False, error=NO_TEXT_MESSAGE)

    return PdfExtraction(success=True, text=full_text)
