"""
Shared test fixtures.

Provides: deterministic keyword embedder, scripted chat model, in-memory
document/session repositories and a fully wired orchestrator.
No network or MongoDB access.
"""

import os

# Settings are loaded at import time; give the required fields test values first.
os.environ.setdefault("MONGO_URI", "mongodb://localhost:27017")
os.environ.setdefault("ENV", "prod")

import re
from dataclasses import replace
from datetime import datetime, timezone

import pytest
from langchain_core.messages import AIMessage

from lexi.src.core.embeddings import EmbeddingGateway
from lexi.src.core.orchestrator import SessionOrchestrator
from lexi.src.core.rag_engine import AnswerSynthesizer
from lexi.src.core.retriever import Retriever
from lexi.src.database.models import ChatSession, ChatTurn, DocumentRecord
from lexi.src.database.vector_store import VectorIndex

VOCABULARY = ("rent", "repairs", "tenant", "landlord", "deposit", "pets", "notice", "utilities")

_WORD_RE = re.compile(r"[a-z]+")


class KeywordEmbedder:
    """Counts vocabulary words; the last dimension is a constant bias so no vector is zero."""

    def __init__(self, vocabulary=VOCABULARY):
        self.vocabulary = vocabulary
        self.calls: list[list[str]] = []

    def vector(self, text: str) -> list[float]:
        words = _WORD_RE.findall(text.lower())
        return [float(words.count(term)) for term in self.vocabulary] + [0.1]

    async def aembed_documents(self, texts):
        self.calls.append(list(texts))
        return [self.vector(t) for t in texts]


class FailingEmbedder:
    def __init__(self, exc: Exception | None = None):
        self.exc = exc or ConnectionError("embedding endpoint unreachable")

    async def aembed_documents(self, texts):
        raise self.exc


class ScriptedChatModel:
    """Returns a fixed answer (or raises) and records every prompt it receives."""

    def __init__(self, answer: str = "The tenant pays rent monthly.", exc: Exception | None = None):
        self.answer = answer
        self.exc = exc
        self.calls: list[list] = []

    async def ainvoke(self, input, **kwargs):
        self.calls.append(list(input))
        if self.exc is not None:
            raise self.exc
        return AIMessage(content=self.answer)


class InMemoryDocumentStore:
    def __init__(self):
        self.records: dict[str, DocumentRecord] = {}

    async def get(self, document_id, user_id=None):
        record = self.records.get(document_id)
        if record is None or (user_id is not None and record.user_id != user_id):
            return None
        return replace(record)

    async def find_by_name(self, user_id, original_name):
        return next((replace(r) for r in self.records.values() if r.user_id == user_id and r.original_name == original_name), None)

    async def find_by_hash(self, user_id, content_hash):
        return next((replace(r) for r in self.records.values() if r.user_id == user_id and r.content_hash == content_hash), None)

    async def save(self, record):
        self.records[record.id] = replace(record)
        return record

    async def delete(self, document_id):
        return self.records.pop(document_id, None) is not None

    async def list_for_user(self, user_id):
        owned = [replace(r) for r in self.records.values() if r.user_id == user_id]
        return sorted(owned, key=lambda r: r.created_at, reverse=True)

    async def list_all(self):
        return [replace(r) for r in self.records.values()]


class InMemorySessionStore:
    def __init__(self):
        self.sessions: dict[str, ChatSession] = {}
        self.messages: dict[str, list[ChatTurn]] = {}
        self.touched: list[str] = []

    async def create(self, session):
        self.sessions[session.id] = session
        self.messages[session.id] = []
        return session

    async def get(self, session_id, user_id=None):
        session = self.sessions.get(session_id)
        if session is None or (user_id is not None and session.user_id != user_id):
            return None
        return session

    async def get_messages(self, session_id):
        return list(self.messages.get(session_id, []))

    async def add_message(self, session_id, turn):
        self.messages.setdefault(session_id, []).append(turn)
        return turn

    async def touch(self, session_id):
        self.touched.append(session_id)
        self.sessions[session_id].updated_at = datetime.now(timezone.utc)

    async def list_for_user(self, user_id):
        owned = [s for s in self.sessions.values() if s.user_id == user_id]
        return sorted(owned, key=lambda s: s.updated_at, reverse=True)

    async def delete(self, session_id):
        self.messages.pop(session_id, None)
        return self.sessions.pop(session_id, None) is not None

    async def delete_for_document(self, document_id):
        doomed = [sid for sid, s in self.sessions.items() if s.document_id == document_id]
        for sid in doomed:
            del self.sessions[sid]
            self.messages.pop(sid, None)
        return len(doomed)


LEASE_TEXT = (
    "The tenant must pay rent on the first day of each month. "
    "Late rent incurs a fee of fifty dollars. "
    "The landlord must complete repairs within fourteen days of written notice. "
    "A security deposit equal to one month of rent is held by the landlord. "
    "No pets are allowed without written consent of the landlord. "
    "The tenant is responsible for utilities including water and electricity."
)


@pytest.fixture
def lease_text() -> str:
    return LEASE_TEXT


@pytest.fixture
def embedder() -> KeywordEmbedder:
    return KeywordEmbedder()


@pytest.fixture
def failing_embedder() -> FailingEmbedder:
    return FailingEmbedder()


@pytest.fixture
def gateway(embedder: KeywordEmbedder) -> EmbeddingGateway:
    return EmbeddingGateway(embedder)


@pytest.fixture
def index() -> VectorIndex:
    return VectorIndex()


@pytest.fixture
def retriever(index: VectorIndex, gateway: EmbeddingGateway) -> Retriever:
    return Retriever(index, gateway)


@pytest.fixture
def chat_model() -> ScriptedChatModel:
    return ScriptedChatModel()


@pytest.fixture
def failing_chat_model() -> ScriptedChatModel:
    return ScriptedChatModel(exc=TimeoutError("completion timed out"))


@pytest.fixture
def synthesizer(retriever: Retriever, chat_model: ScriptedChatModel) -> AnswerSynthesizer:
    return AnswerSynthesizer(retriever, llm=chat_model, top_k=3, history_window=6, excerpt_chars=200)


@pytest.fixture
def document_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def extracted_texts() -> dict[bytes, str]:
    """Upload bytes → text the fake extractor returns.  Unknown bytes extract to LEASE_TEXT."""
    return {}


@pytest.fixture
def orchestrator(index, gateway, synthesizer, document_store, session_store, extracted_texts) -> SessionOrchestrator:
    def extractor(data: bytes) -> str:
        return extracted_texts.get(data, LEASE_TEXT)

    return SessionOrchestrator(index=index, gateway=gateway, synthesizer=synthesizer, documents=document_store, sessions=session_store, extractor=extractor, chunk_size=120, chunk_overlap=20)
