"""
Lexi - Text Utilities
======================
Helper functions for text normalisation, content hashing and
excerpt rendering.

These utilities are consumed by the chunker, the answer synthesizer
and the session orchestrator, and should remain stateless and
side-effect-free.
"""

from __future__ import annotations

import hashlib
import re
import unicodedata


# ── Non-printable character pattern ────────────────────────────────────
# Control characters (except whitespace, which is collapsed separately),
# BOM, zero-width characters and soft hyphens left behind by PDF text layers.
_NON_PRINTABLE_RE = re.compile(r"[\x00-\x08\x0e-\x1f\x7f-\x9f\ufeff\u200b\u200c\u200d\u200e\u200f\u00ad\u2060\ufffe]")

_WHITESPACE_RE = re.compile(r"\s+")


# ── Public API ─────────────────────────────────────────────────────────

def normalize_text(text: str) -> str:
    """
    Prepare extracted document text for chunking.

    Steps:
        1. Unicode NFC normalisation.
        2. Strip non-printable / zero-width characters.
        3. Collapse every whitespace run (newlines included) into a
           single space.
        4. Strip leading / trailing whitespace.

    Args:
        text: Raw text produced by the extraction collaborator.

    Returns:
        Single-line normalised text.  Empty if *text* held no printable
        content.
    """
    text = unicodedata.normalize("NFC", text)
    text = _NON_PRINTABLE_RE.sub("", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def content_hash(data: bytes) -> str:
    """Return the SHA-256 hex digest used for duplicate-content detection."""
    return hashlib.sha256(data).hexdigest()


def truncate_excerpt(text: str, max_chars: int) -> str:
    """
    Cut *text* to at most *max_chars* characters for source attribution.

    A trailing ``...`` marks excerpts that were actually shortened.
    """
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."
