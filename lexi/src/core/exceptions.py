"""
Lexi - Exception Hierarchy
===========================
Every failure the core reports is a ``LexiError`` subclass carrying a
human-readable message and a ``details`` dict for logs and API
responses.

Taxonomy
--------
``ValidationError``
    Bad input (empty document, missing query).  Reported immediately.
``ConflictError``
    Name or content duplicate.  Carries the existing record so the
    caller can re-issue the upload with ``overwrite=True``.
``ServiceUnavailable``
    Embedding or completion capability down / misconfigured.  Never
    retried inside the core.
``NotFoundError``
    Unknown (or foreign-owned) document or session.
``ExtractionFailed``
    The extraction collaborator could not read the uploaded bytes.
``DimensionMismatch``
    Internal invariant violation: vectors from different models mixed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from lexi.src.database.models import DocumentRecord


class LexiError(Exception):
    """Base exception for all Lexi errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# ── Validation ─────────────────────────────────────────────────────────

class ValidationError(LexiError):
    """Raised when caller input is unusable."""


class EmptyDocument(ValidationError):
    """Extraction produced no non-whitespace text."""

    def __init__(self, original_name: str) -> None:
        super().__init__(f"No text could be extracted from '{original_name}'.", {"original_name": original_name})


class MissingQuery(ValidationError):
    """A question was empty or whitespace only."""

    def __init__(self) -> None:
        super().__init__("A non-empty question is required.", {"field": "query_text"})


# ── Conflicts ──────────────────────────────────────────────────────────

class ConflictError(LexiError):
    """
    Raised when an upload collides with an existing document.

    Attributes:
        code: Stable machine-readable conflict code.
        existing: The already-stored record the upload collides with.
    """

    code = "CONFLICT"

    def __init__(self, message: str, existing: DocumentRecord) -> None:
        self.existing = existing
        super().__init__(message, {"code": self.code, "document_id": existing.id, "original_name": existing.original_name})

    @property
    def document_id(self) -> str:
        return self.existing.id


class NameConflict(ConflictError):
    """A document with the same name already exists for this user."""

    code = "NAME_EXISTS"

    def __init__(self, existing: DocumentRecord) -> None:
        super().__init__(f"A file named '{existing.original_name}' already exists.", existing)


class DuplicateContent(ConflictError):
    """The same bytes were already uploaded under a different name."""

    code = "DUPLICATE_FILE"

    def __init__(self, existing: DocumentRecord) -> None:
        super().__init__(f"This document has already been uploaded as '{existing.original_name}'.", existing)


# ── External capabilities ──────────────────────────────────────────────

class ServiceUnavailable(LexiError):
    """The embedding or completion capability cannot serve the request."""


class EmbeddingServiceUnavailable(ServiceUnavailable):
    """The embedding model is unreachable or misconfigured."""


class SynthesisFailed(ServiceUnavailable):
    """The completion model failed to produce an answer."""


class ExtractionFailed(LexiError):
    """The uploaded bytes are not a readable document."""


# ── Lookups ────────────────────────────────────────────────────────────

class NotFoundError(LexiError):
    """A referenced record does not exist for this user."""


class DocumentNotFound(NotFoundError):

    def __init__(self, document_id: str) -> None:
        super().__init__(f"Document not found: {document_id}", {"document_id": document_id})


class SessionNotFound(NotFoundError):

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Chat session not found: {session_id}", {"session_id": session_id})


# ── Internal invariants ────────────────────────────────────────────────

class DimensionMismatch(LexiError):
    """Two vectors of different length met in a similarity computation."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"Vector dimension mismatch: expected {expected}, got {actual}.", {"expected": expected, "actual": actual})
