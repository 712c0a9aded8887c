"""Tests for PyMuPDF text extraction."""

import fitz
import pytest

from lexi.src.core.exceptions import ExtractionFailed
from lexi.src.utils.pdf_extractor import extract_text


def _make_pdf(*pages: str) -> bytes:
    doc = fitz.open()
    for text in pages:
        doc.new_page().insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


class TestExtractText:

    def test_reads_every_page_in_order(self) -> None:
        text = extract_text(_make_pdf("The tenant must pay rent.", "The landlord handles repairs."))

        assert "The tenant must pay rent." in text
        assert text.index("rent.") < text.index("repairs.")

    def test_empty_bytes_raise(self) -> None:
        with pytest.raises(ExtractionFailed):
            extract_text(b"")

    def test_garbage_bytes_raise(self) -> None:
        with pytest.raises(ExtractionFailed) as excinfo:
            extract_text(b"definitely not a pdf")
        assert excinfo.value.details == {"size": 20}
