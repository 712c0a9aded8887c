"""
Lexi - Session Orchestrator
============================
Sequences ingestion, removal and question answering against the core
components and the storage collaborator.  It is the only writer of the
``VectorIndex``.

Ingest flow:
    1. Hash the uploaded bytes (SHA-256).
    2. Policy checks → ``NameConflict`` / ``DuplicateContent`` unless
       ``overwrite`` is set.
    3. Extract text (off the event loop) → ``EmptyDocument`` if blank.
    4. Chunk → embed (one batched call) → ``VectorIndex.put``.
    5. Persist metadata + embeddings.

    The index is keyed by the durable document id.  An overwrite keeps
    the existing id, so step 4 replaces the old entry wholesale.  If the
    caller abandons the operation before step 4, nothing is indexed.

Remove flow:
    Dependent sessions, then the record, then the index entry.

Ask flow:
    1. Load session (owner-scoped) + history, then persist the user turn.
    2. No document → fixed "please upload" answer.
    3. Otherwise delegate to the ``AnswerSynthesizer``; a
       ``ServiceUnavailable`` becomes the fixed apology.
    4. Persist the assistant turn, touch the session.

Usage:
    from lexi.src.core.orchestrator import SessionOrchestrator
    orchestrator = SessionOrchestrator.from_settings()
    result = await orchestrator.ingest(pdf_bytes, "lease.pdf", user_id)
    reply = await orchestrator.ask(session_id, user_id, "Who pays for repairs?")
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Callable

from lexi.config.prompt_templates import DEFAULT_SESSION_TITLE, NO_DOCUMENT_RESPONSE, SYNTHESIS_FAILED_RESPONSE
from lexi.config.settings import settings
from lexi.src.core.chunker import chunk_text
from lexi.src.core.embeddings import EmbeddingGateway
from lexi.src.core.exceptions import DocumentNotFound, DuplicateContent, EmptyDocument, MissingQuery, NameConflict, ServiceUnavailable, SessionNotFound
from lexi.src.core.rag_engine import AnswerSynthesizer, SourceSnippet
from lexi.src.core.retriever import Retriever
from lexi.src.database.models import ChatSession, ChatTurn, DocumentRecord, DocumentRepository, SessionRepository, new_id
from lexi.src.database.vector_store import VectorIndex
from lexi.src.utils.logger import get_logger
from lexi.src.utils.pdf_extractor import extract_text
from lexi.src.utils.text_utils import content_hash, normalize_text

logger = get_logger(__name__)

Extractor = Callable[[bytes], str]


@dataclass(frozen=True, slots=True)
class IngestResult:
    document: DocumentRecord
    chunk_count: int
    overwritten: bool


@dataclass(frozen=True, slots=True)
class SessionDetail:
    session: ChatSession
    messages: list[ChatTurn] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class AskResult:
    user_turn: ChatTurn
    assistant_turn: ChatTurn
    sources: list[SourceSnippet] = field(default_factory=list)


class SessionOrchestrator:
    """
    Entry point for document and chat-session operations.

    Parameters
    ----------
    index
        The ``VectorIndex`` this orchestrator owns.
    gateway
        ``EmbeddingGateway`` used for chunk embeddings.
    synthesizer
        ``AnswerSynthesizer`` used to answer questions.
    documents, sessions
        Storage collaborators.
    extractor
        ``bytes → str`` text extraction.  Defaults to the PyMuPDF extractor.
    chunk_size, chunk_overlap
        Chunker parameters.  Default to ``settings.CHUNK_SIZE`` /
        ``settings.CHUNK_OVERLAP``.
    """

    __slots__ = ("_index", "_gateway", "_synthesizer", "_documents", "_sessions", "_extractor", "_chunk_size", "_chunk_overlap")

    def __init__(self, index: VectorIndex, gateway: EmbeddingGateway, synthesizer: AnswerSynthesizer, documents: DocumentRepository, sessions: SessionRepository, extractor: Extractor = extract_text, chunk_size: int | None = None, chunk_overlap: int | None = None) -> None:
        self._index = index
        self._gateway = gateway
        self._synthesizer = synthesizer
        self._documents = documents
        self._sessions = sessions
        self._extractor = extractor
        self._chunk_size = chunk_size or settings.CHUNK_SIZE
        self._chunk_overlap = settings.CHUNK_OVERLAP if chunk_overlap is None else chunk_overlap


    @classmethod
    def from_settings(cls, documents: DocumentRepository | None = None, sessions: SessionRepository | None = None) -> "SessionOrchestrator":
        """Wire the default stack: in-memory index, Gemini models, MongoDB stores."""
        from lexi.src.database.mongo_store import MongoDocumentStore, MongoSessionStore

        index = VectorIndex()
        gateway = EmbeddingGateway()
        synthesizer = AnswerSynthesizer(Retriever(index, gateway))
        return cls(index=index, gateway=gateway, synthesizer=synthesizer, documents=documents or MongoDocumentStore(), sessions=sessions or MongoSessionStore())


    @property
    def index(self) -> VectorIndex:
        return self._index

    # ══════════════════════════════════════════════════════════════════
    #  INGEST
    # ══════════════════════════════════════════════════════════════════

    async def ingest(self, document_bytes: bytes, original_name: str, user_id: str, overwrite: bool = False) -> IngestResult:
        """
        Index and persist an uploaded document.

        Raises
        ------
        NameConflict
            *user_id* already has a document named *original_name* and
            *overwrite* is False.
        DuplicateContent
            The same bytes exist under another name and *overwrite* is False.
        ExtractionFailed
            The bytes are not a readable document.
        EmptyDocument
            Extraction yielded no text.
        EmbeddingServiceUnavailable
            The embedding model failed; nothing is indexed or persisted.
        """
        t_start = time.perf_counter()
        file_hash = content_hash(document_bytes)
        logger.info("[INGEST] '%s' for user '%s' (hash=%s…, overwrite=%s).", original_name, user_id, file_hash[:10], overwrite)

        # ── Policy checks ──────────────────────────────────────────────
        same_name = await self._documents.find_by_name(user_id, original_name)
        if same_name is not None and not overwrite:
            logger.info("[INGEST] Name conflict with document '%s'.", same_name.id)
            raise NameConflict(same_name)

        if not overwrite:
            same_content = await self._documents.find_by_hash(user_id, file_hash)
            if same_content is not None:
                logger.info("[INGEST] Duplicate content of document '%s'.", same_content.id)
                raise DuplicateContent(same_content)

        # ── Extract ────────────────────────────────────────────────────
        raw_text = await asyncio.to_thread(self._extractor, document_bytes)
        if not raw_text or not normalize_text(raw_text):
            logger.warning("[INGEST] No text extracted from '%s'.", original_name)
            raise EmptyDocument(original_name)

        # ── Chunk ──────────────────────────────────────────────────────
        t_chunk = time.perf_counter()
        chunks = chunk_text(raw_text, self._chunk_size, self._chunk_overlap)
        chunk_ms = (time.perf_counter() - t_chunk) * 1000
        logger.info("[INGEST] '%s' → %d chunk(s) in %.1fms.", original_name, len(chunks), chunk_ms)

        # ── Embed ──────────────────────────────────────────────────────
        t_embed = time.perf_counter()
        vectors = await self._gateway.embed(chunks)
        embed_ms = (time.perf_counter() - t_embed) * 1000

        # ── Index ──────────────────────────────────────────────────────
        overwritten = same_name is not None
        document_id = same_name.id if overwritten else new_id()
        self._index.put(document_id, chunks, vectors)

        # ── Persist ────────────────────────────────────────────────────
        if overwritten:
            record = same_name
            record.content_hash = file_hash
            record.content = raw_text
        else:
            record = DocumentRecord(id=document_id, user_id=user_id, original_name=original_name, filename=original_name, content_hash=file_hash, content=raw_text)
        record.chunk_count = len(chunks)
        record.embeddings = vectors
        record = await self._documents.save(record)

        total_ms = (time.perf_counter() - t_start) * 1000
        logger.info("[INGEST] %s '%s' as '%s'; embed: %.1fms, total: %.1fms.", "Overwrote" if overwritten else "Stored", original_name, document_id, embed_ms, total_ms)
        return IngestResult(document=record, chunk_count=len(chunks), overwritten=overwritten)

    # ══════════════════════════════════════════════════════════════════
    #  REMOVE
    # ══════════════════════════════════════════════════════════════════

    async def remove(self, document_id: str, user_id: str) -> None:
        """
        Delete a document, its sessions and its index entry.

        Raises
        ------
        DocumentNotFound
            If *user_id* owns no document *document_id*.
        """
        document = await self._documents.get(document_id, user_id)
        if document is None:
            raise DocumentNotFound(document_id)

        deleted_sessions = await self._sessions.delete_for_document(document_id)
        await self._documents.delete(document_id)
        self._index.remove(document_id)

        logger.info("[REMOVE] Document '%s' (%s) removed with %d session(s).", document_id, document.original_name, deleted_sessions)

    # ══════════════════════════════════════════════════════════════════
    #  ASK
    # ══════════════════════════════════════════════════════════════════

    async def ask(self, session_id: str, user_id: str, query_text: str) -> AskResult:
        """
        Answer *query_text* within a chat session and record both turns.

        Raises
        ------
        MissingQuery
            If *query_text* is blank.
        SessionNotFound
            If *user_id* owns no session *session_id*.
        """
        if not query_text or not query_text.strip():
            raise MissingQuery()

        t_start = time.perf_counter()
        session = await self._sessions.get(session_id, user_id)
        if session is None:
            raise SessionNotFound(session_id)

        history = await self._sessions.get_messages(session_id)
        user_turn = await self._sessions.add_message(session_id, ChatTurn(role="user", content=query_text))
        sources: list[SourceSnippet] = []

        document = await self._documents.get(session.document_id, user_id) if session.document_id else None
        if document is None:
            logger.info("[ASK] Session '%s' has no document; asking for an upload.", session_id)
            response = NO_DOCUMENT_RESPONSE
        else:
            try:
                result = await self._synthesizer.answer(query_text, document.id, history)
                response, sources = result.response, result.sources
            except ServiceUnavailable as exc:
                logger.error("[ASK] Answering failed for session '%s': %s", session_id, exc)
                response = SYNTHESIS_FAILED_RESPONSE

        assistant_turn = await self._sessions.add_message(session_id, ChatTurn(role="assistant", content=response))
        await self._sessions.touch(session_id)

        logger.info("[ASK] Session '%s' answered in %.1fms (%d source(s)).", session_id, (time.perf_counter() - t_start) * 1000, len(sources))
        return AskResult(user_turn=user_turn, assistant_turn=assistant_turn, sources=sources)

    # ══════════════════════════════════════════════════════════════════
    #  SESSIONS & LISTING
    # ══════════════════════════════════════════════════════════════════

    async def create_session(self, user_id: str, title: str | None = None, document_id: str | None = None) -> ChatSession:
        """
        Open a chat session, optionally bound to one of *user_id*'s documents.

        Raises
        ------
        DocumentNotFound
            If *document_id* is given but not owned by *user_id*.
        """
        if document_id is not None and await self._documents.get(document_id, user_id) is None:
            raise DocumentNotFound(document_id)

        session = ChatSession(id=new_id(), user_id=user_id, title=title or DEFAULT_SESSION_TITLE, document_id=document_id)
        return await self._sessions.create(session)


    async def list_sessions(self, user_id: str) -> list[ChatSession]:
        """*user_id*'s sessions, most recently active first."""
        return await self._sessions.list_for_user(user_id)


    async def get_session(self, session_id: str, user_id: str) -> SessionDetail:
        """
        Load one session with its turns in chronological order.

        Raises
        ------
        SessionNotFound
            If *user_id* owns no session *session_id*.
        """
        session = await self._sessions.get(session_id, user_id)
        if session is None:
            raise SessionNotFound(session_id)
        return SessionDetail(session=session, messages=await self._sessions.get_messages(session_id))


    async def delete_session(self, session_id: str, user_id: str) -> None:
        """
        Delete one session and its turns.  The bound document is kept.

        Raises
        ------
        SessionNotFound
            If *user_id* owns no session *session_id*.
        """
        if await self._sessions.get(session_id, user_id) is None:
            raise SessionNotFound(session_id)
        await self._sessions.delete(session_id)
        logger.info("[SESSION] Session '%s' deleted.", session_id)


    async def list_documents(self, user_id: str) -> list[DocumentRecord]:
        return await self._documents.list_for_user(user_id)


    async def rehydrate_index(self) -> int:
        """
        Rebuild index entries from persisted content and embeddings.

        The stored text is re-chunked with the current chunker settings;
        documents whose chunk count no longer matches their stored
        embeddings are skipped.

        Returns
        -------
        int
            Number of documents restored into the index.
        """
        restored = 0
        for record in await self._documents.list_all():
            if not record.embeddings or not normalize_text(record.content):
                logger.warning("[REHYDRATE] '%s' has no stored content/embeddings; skipped.", record.id)
                continue

            chunks = chunk_text(record.content, self._chunk_size, self._chunk_overlap)
            if len(chunks) != len(record.embeddings):
                logger.warning("[REHYDRATE] '%s' re-chunked to %d chunk(s) but has %d stored embedding(s); re-upload required.", record.id, len(chunks), len(record.embeddings))
                continue

            self._index.put(record.id, chunks, record.embeddings)
            restored += 1

        logger.info("[REHYDRATE] Restored %d document(s) into the index.", restored)
        return restored
