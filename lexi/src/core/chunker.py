"""
Lexi - Chunker
===============
Deterministic sliding-window segmentation of extracted document text.

Windows of at most ``size`` characters are cut at the last sentence
terminator (``.``) or newline when that boundary lies in the second half
of the window; otherwise the window is cut at the hard limit.
Consecutive chunks share up to ``overlap`` characters so a sentence cut
by a window edge is still seen whole by at least one chunk.

Usage:
    from lexi.src.core.chunker import chunk_text
    chunks = chunk_text(raw_text, size=1000, overlap=200)
"""

from __future__ import annotations

from lexi.src.utils.logger import get_logger
from lexi.src.utils.text_utils import normalize_text

logger = get_logger(__name__)

_BOUNDARY_CHARS = (".", "\n")

# Boundary must sit beyond this fraction of the window to be used
_MIN_BOUNDARY_RATIO = 0.5


def chunk_text(text: str, size: int, overlap: int) -> list[str]:
    """
    Split *text* into overlapping chunks.

    Args:
        text: Extracted document text.  Normalised (whitespace collapsed,
            trimmed) before splitting.
        size: Maximum characters per chunk.
        overlap: Characters shared by consecutive chunks, ``0 ≤ overlap < size``.

    Returns:
        Non-empty ordered list of trimmed chunks.

    Raises:
        ValueError: If the parameters are out of range or the text is
            empty after normalisation.
    """
    if size < 1:
        raise ValueError(f"size must be ≥ 1, got {size}")
    if not 0 <= overlap < size:
        raise ValueError(f"overlap must satisfy 0 ≤ overlap < size ({size}), got {overlap}")

    normalized = normalize_text(text)
    if not normalized:
        raise ValueError("Cannot chunk empty text.")

    length = len(normalized)
    if length <= size:
        return [normalized]

    chunks: list[str] = []
    start = 0

    while start < length:
        end = min(start + size, length)

        if end >= length:
            cut = end
            next_start = length
        else:
            window = normalized[start:end]
            boundary = max(window.rfind(ch) for ch in _BOUNDARY_CHARS)

            if boundary > size * _MIN_BOUNDARY_RATIO:
                cut = start + boundary + 1
            else:
                cut = end

            next_start = cut - overlap
            if next_start <= start:
                # Boundary cut shorter than the overlap: resume right after it
                next_start = cut

        piece = normalized[start:cut].strip()
        if piece:
            chunks.append(piece)
        start = next_start

    logger.debug("Chunked %d chars into %d chunk(s) (size=%d, overlap=%d).", length, len(chunks), size, overlap)
    return chunks
