"""
PDF purchase-order extractor.
Runs text extraction, LLM structuring and validation with retry and
exponential backoff, and records every outcome as a `pdf_processing` event.
"""

import asyncio
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from po_lifecycle.errors import ExtractionError
from po_lifecycle.extraction.llm import parse_extracted_json, request_extraction
from po_lifecycle.extraction.text import extract_text_from_pdf
from po_lifecycle.metrics.recorder import MetricsRecorder
from po_lifecycle.validation.schema import DEFAULT_VALUES, validate_schema
from po_lifecycle.utils.logging import setup_logging
from po_lifecycle.config import get_config


logger = setup_logging(__name__)
config = get_config()

PDF_PROCESSING_METRIC = "pdf_processing"


class ExtractionResult(BaseModel):
    """A PO document extracted from a PDF."""
    data: Dict[str, Any]
    attempts: int
    processing_time: float  # seconds
    source: str


def apply_defaults(data: Dict[str, Any]) -> Dict[str, Any]:
    """Fill DEFAULT_VALUES for fields the document left out."""
    for path, value in DEFAULT_VALUES.items():
        *parents, leaf = path.split(".")
        target = data
        for part in parents:
            target = target.setdefault(part, {}) if isinstance(target, dict) else None
            if not isinstance(target, dict):
                break
        if isinstance(target, dict) and target.get(leaf) is None:
            target[leaf] = value
    return data


class PDFExtractor:
    """
    Extracts structured PO documents from PDFs.

    Args:
        recorder: receives one `pdf_processing` event per call
        max_attempts: LLM attempts before giving up
        backoff_seconds: base delay; attempt n waits backoff * 2**(n-1)
        llm: chat model override (defaults to the configured provider)
    """

    def __init__(
        self,
        recorder: Optional[MetricsRecorder] = None,
        max_attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        llm=None,
    ):
        self.recorder = recorder
        self.max_attempts = max_attempts or config.EXTRACTION_MAX_ATTEMPTS
        self.backoff_seconds = config.EXTRACTION_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds
        self.llm = llm

    async def process(self, pdf_path: str) -> ExtractionResult:
        """
        Extract a PO document from pdf_path.

        Raises:
            ExtractionError: unreadable file, too little text, or every attempt failed
        """
        start_time = time.perf_counter()
        source = Path(pdf_path).name
        attempts = 0

        try:
            text = extract_text_from_pdf(pdf_path)
            if len(text.strip()) < config.EXTRACTION_MIN_TEXT_LENGTH:
                raise ExtractionError(
                    "Not enough text in PDF to extract a purchase order",
                    {"path": pdf_path, "textLength": len(text.strip())},
                )

            data, attempts = await self.extract_with_retry(text)

        except ExtractionError as e:
            if isinstance(e.details, dict):
                attempts = e.details.get("attempts", attempts)
            self._record(source, False, attempts, time.perf_counter() - start_time, error=e.message)
            raise

        elapsed = time.perf_counter() - start_time
        self._record(source, True, attempts, elapsed)
        logger.info(f"Extracted PO {data.get('header', {}).get('poNumber')} from {source} in {elapsed:.2f}s")

        return ExtractionResult(data=data, attempts=attempts, processing_time=elapsed, source=source)

    async def extract_with_retry(self, text: str):
        """Returns (document, attempts used). Raises ExtractionError after the last attempt."""
        errors: List[str] = []

        for attempt in range(1, self.max_attempts + 1):
            try:
                reply = await request_extraction(text, self.llm)
                data = apply_defaults(parse_extracted_json(reply))
                validation = validate_schema(data)
                if not validation.valid:
                    raise ValueError(f"Response does not match schema: {'; '.join(validation.messages)}")
                return data, attempt

            except Exception as e:
                errors.append(str(e))
                logger.warning(f"Extraction attempt {attempt}/{self.max_attempts} failed: {e}")
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.backoff_seconds * (2 ** (attempt - 1)))

        raise ExtractionError(
            f"Processing failed after {self.max_attempts} attempts",
            {"attempts": self.max_attempts, "errors": errors},
        )

    def _record(self, source: str, success: bool, attempts: int, elapsed: float, error: str = None) -> None:
        if self.recorder is None:
            return
        event = {
            "file": source,
            "success": success,
            "attempts": attempts,
            "processingTime": round(elapsed, 4),
        }
        if error:
            event["error"] = error
        self.recorder.record_metric(PDF_PROCESSING_METRIC, event)
