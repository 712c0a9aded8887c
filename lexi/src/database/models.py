"""
Lexi - Storage Records & Repository Protocols
===============================================
Plain records exchanged with the persistent storage collaborator, and
the structural interfaces the orchestrator depends on.  The MongoDB
implementations live in ``mongo_store.py``; tests substitute in-memory
fakes.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal, Protocol, runtime_checkable

Role = Literal["user", "assistant"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass(slots=True)
class DocumentRecord:
    """Persisted metadata of one uploaded document.  ``id`` is also its vector-index key."""

    id: str
    user_id: str
    original_name: str
    filename: str
    content_hash: str
    content: str
    chunk_count: int = 0
    embeddings: list[list[float]] = field(default_factory=list, repr=False)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)


@dataclass(slots=True)
class ChatTurn:
    """One message of a conversation."""

    role: Role
    content: str
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=_utcnow)


@dataclass(slots=True)
class ChatSession:
    """A conversation, optionally bound to one document."""

    id: str
    user_id: str
    title: str
    document_id: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)


@runtime_checkable
class DocumentRepository(Protocol):
    """Document metadata CRUD, always scoped by owner."""

    async def get(self, document_id: str, user_id: str | None = None) -> DocumentRecord | None: ...

    async def find_by_name(self, user_id: str, original_name: str) -> DocumentRecord | None: ...

    async def find_by_hash(self, user_id: str, content_hash: str) -> DocumentRecord | None: ...

    async def save(self, record: DocumentRecord) -> DocumentRecord: ...

    async def delete(self, document_id: str) -> bool: ...

    async def list_for_user(self, user_id: str) -> list[DocumentRecord]: ...

    async def list_all(self) -> list[DocumentRecord]: ...


@runtime_checkable
class SessionRepository(Protocol):
    """Chat session + message persistence."""

    async def create(self, session: ChatSession) -> ChatSession: ...

    async def get(self, session_id: str, user_id: str | None = None) -> ChatSession | None: ...

    async def get_messages(self, session_id: str) -> list[ChatTurn]: ...

    async def add_message(self, session_id: str, turn: ChatTurn) -> ChatTurn: ...

    async def touch(self, session_id: str) -> None: ...

    async def list_for_user(self, user_id: str) -> list[ChatSession]: ...

    async def delete(self, session_id: str) -> bool: ...

    async def delete_for_document(self, document_id: str) -> int: ...
