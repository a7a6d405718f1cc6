"""
PDF to purchase-order extraction.
"""

from po_lifecycle.extraction.processor import ExtractionResult, PDFExtractor

__all__ = ["ExtractionResult", "PDFExtractor"]
