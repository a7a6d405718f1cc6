"""
Text extraction from purchase-order PDFs.
Text-layer PDFs only; pages without extractable text are rebuilt from
pdfplumber's character objects where possible.
"""

import os
from typing import List

import pdfplumber

from po_lifecycle.errors import ExtractionError
from po_lifecycle.utils.logging import setup_logging


logger = setup_logging(__name__)

LINE_TOLERANCE = 3  # vertical gap (pt) that starts a new line


def rebuild_text_from_chars(chars: List[dict]) -> str:
    """Rebuild page text from pdfplumber char dicts, ordered top-to-bottom, left-to-right."""
    if not chars:
        return ""

    ordered = sorted(chars, key=lambda c: (int(round(c.get("top", 0))), int(round(c.get("x0", 0)))))
    lines = []
    current_top = None
    current_line: List[str] = []
    for char in ordered:
        top = int(round(char.get("top", 0)))
        if current_top is None:
            current_top = top
        if abs(top - current_top) > LINE_TOLERANCE:
            lines.append("".join(current_line))
            current_line = []
            current_top = top
        current_line.append(char.get("text", ""))
    if current_line:
        lines.append("".join(current_line))

    return "\n".join(line for line in lines if line.strip())


def extract_text_from_pdf(pdf_path: str) -> str:
    """
    Extract the text of every page in a PDF.

    Raises:
        ExtractionError: the file is missing or pdfplumber cannot open it
    """
    if not os.path.exists(pdf_path):
        raise ExtractionError(f"PDF file not found: {pdf_path}", {"path": pdf_path})

    text_parts = []
    try:
        with pdfplumber.open(pdf_path) as pdf:
            for page_num, page in enumerate(pdf.pages, 1):
                page_text = page.extract_text()
                if page_text and page_text.strip():
                    text_parts.append(page_text)
                    logger.debug(f"Extracted text from PDF page {page_num}")
                    continue

                rebuilt = rebuild_text_from_chars(page.chars)
                if rebuilt:
                    logger.debug(f"Rebuilt text from characters on PDF page {page_num}")
                    text_parts.append(rebuilt)
                else:
                    logger.warning(f"No text found on PDF page {page_num}")
    except Exception as e:
        logger.error(f"Error extracting text from PDF: {e}")
        raise ExtractionError(f"Could not read PDF: {e}", {"path": pdf_path}) from e

    return "\n".join(text_parts)
