"""
Lexi - PDF Text Extraction
===========================
Extraction collaborator: uploaded PDF bytes → plain text, one page per
line block.  Backed by PyMuPDF (``fitz``).  The core treats the result
as opaque text.
"""

from __future__ import annotations

import time

import fitz  # PyMuPDF

from lexi.src.core.exceptions import ExtractionFailed
from lexi.src.utils.logger import get_logger

logger = get_logger(__name__)


def extract_text(data: bytes) -> str:
    """
    Extract the text layer of every page of a PDF.

    Raises:
        ExtractionFailed: If *data* is empty or not a readable PDF.
    """
    if not data:
        raise ExtractionFailed("Uploaded file is empty.", {"size": 0})

    t_start = time.perf_counter()
    try:
        with fitz.open(stream=data, filetype="pdf") as doc:
            pages = [page.get_text() for page in doc]
    except Exception as exc:
        logger.error("PDF parsing failed (%d bytes): %s", len(data), exc)
        raise ExtractionFailed("Failed to parse PDF file.", {"size": len(data)}) from exc

    text = "\n".join(pages)
    logger.info("Extracted %d chars from %d page(s) in %.1fms.", len(text), len(pages), (time.perf_counter() - t_start) * 1000)
    return text
