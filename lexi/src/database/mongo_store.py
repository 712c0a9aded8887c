"""
Lexi - MongoDB Storage
=======================
Async document and chat-session stores backed by MongoDB via ``motor``.

Ownership isolation is enforced: every user-facing lookup filters by
``user_id``, so one user can never reach another user's documents or
sessions.

Collection schemas::

    documents: {
        "_id": str, "user_id": str, "original_name": str, "filename": str,
        "content_hash": str, "content": str, "chunk_count": int,
        "embeddings": [[float, ...], ...],
        "created_at": datetime, "updated_at": datetime
    }

    sessions: {
        "_id": str, "user_id": str, "document_id": str | None, "title": str,
        "messages": [{"id": str, "role": str, "content": str, "created_at": datetime}, ...],
        "created_at": datetime, "updated_at": datetime
    }

Usage:
    from lexi.src.database.mongo_store import MongoDocumentStore, MongoSessionStore
    documents = MongoDocumentStore()
    sessions = MongoSessionStore()
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import motor.motor_asyncio

from lexi.config.settings import settings
from lexi.src.database.models import ChatSession, ChatTurn, DocumentRecord
from lexi.src.utils.logger import get_logger

logger = get_logger(__name__)

# Metadata-only projection for listings
_LISTING_PROJECTION = {"content": 0, "embeddings": 0}


# ══════════════════════════════════════════════════════════════════════
#  MONGODB SINGLETON CLIENT
# ══════════════════════════════════════════════════════════════════════

_mongo_client: motor.motor_asyncio.AsyncIOMotorClient | None = None


def _get_mongo_client() -> motor.motor_asyncio.AsyncIOMotorClient:
    """Return (or create) the module-level async MongoDB client."""
    global _mongo_client
    if _mongo_client is None:
        _mongo_client = motor.motor_asyncio.AsyncIOMotorClient(settings.MONGO_URI.get_secret_value())
        logger.info("MongoDB async client created (singleton).")
    return _mongo_client


def _get_database() -> motor.motor_asyncio.AsyncIOMotorDatabase:
    return _get_mongo_client()[settings.MONGO_DB_NAME]


# ══════════════════════════════════════════════════════════════════════
#  DOCUMENTS
# ══════════════════════════════════════════════════════════════════════


def _to_document(doc: dict[str, Any]) -> DocumentRecord:
    return DocumentRecord(id=doc["_id"], user_id=doc["user_id"], original_name=doc["original_name"], filename=doc.get("filename", doc["original_name"]), content_hash=doc["content_hash"], content=doc.get("content", ""), chunk_count=doc.get("chunk_count", 0), embeddings=doc.get("embeddings", []), created_at=doc["created_at"], updated_at=doc["updated_at"])


class MongoDocumentStore:
    """Document metadata store (``documents`` collection)."""

    __slots__ = ("_collection",)

    def __init__(self, collection_name: str = "documents", database: motor.motor_asyncio.AsyncIOMotorDatabase | None = None) -> None:
        db = database if database is not None else _get_database()
        self._collection = db[collection_name]


    async def get(self, document_id: str, user_id: str | None = None) -> DocumentRecord | None:
        query: dict[str, Any] = {"_id": document_id}
        if user_id is not None:
            query["user_id"] = user_id
        doc = await self._collection.find_one(query)
        return _to_document(doc) if doc else None


    async def find_by_name(self, user_id: str, original_name: str) -> DocumentRecord | None:
        doc = await self._collection.find_one({"user_id": user_id, "original_name": original_name})
        return _to_document(doc) if doc else None


    async def find_by_hash(self, user_id: str, content_hash: str) -> DocumentRecord | None:
        doc = await self._collection.find_one({"user_id": user_id, "content_hash": content_hash})
        return _to_document(doc) if doc else None


    async def save(self, record: DocumentRecord) -> DocumentRecord:
        """Insert or fully replace *record* (upsert on ``_id``)."""
        record.updated_at = datetime.now(timezone.utc)
        payload = {"user_id": record.user_id, "original_name": record.original_name, "filename": record.filename, "content_hash": record.content_hash, "content": record.content, "chunk_count": record.chunk_count, "embeddings": record.embeddings, "created_at": record.created_at, "updated_at": record.updated_at}
        await self._collection.replace_one({"_id": record.id}, payload, upsert=True)
        logger.info("[DOCUMENTS] Saved '%s' (%s, %d chunks).", record.id, record.original_name, record.chunk_count)
        return record


    async def delete(self, document_id: str) -> bool:
        result = await self._collection.delete_one({"_id": document_id})
        return result.deleted_count > 0


    async def list_for_user(self, user_id: str) -> list[DocumentRecord]:
        """All of *user_id*'s documents, newest first, without content or embeddings."""
        cursor = self._collection.find({"user_id": user_id}, _LISTING_PROJECTION).sort("created_at", -1)
        return [_to_document(doc) for doc in await cursor.to_list(length=None)]


    async def list_all(self) -> list[DocumentRecord]:
        """Every stored document, including content and embeddings."""
        cursor = self._collection.find({})
        return [_to_document(doc) for doc in await cursor.to_list(length=None)]


# ══════════════════════════════════════════════════════════════════════
#  CHAT SESSIONS
# ══════════════════════════════════════════════════════════════════════


def _to_session(doc: dict[str, Any]) -> ChatSession:
    return ChatSession(id=doc["_id"], user_id=doc["user_id"], title=doc["title"], document_id=doc.get("document_id"), created_at=doc["created_at"], updated_at=doc["updated_at"])


def _to_turn(msg: dict[str, Any]) -> ChatTurn:
    return ChatTurn(role=msg["role"], content=msg["content"], id=msg["id"], created_at=msg["created_at"])


class MongoSessionStore:
    """
    Chat-session store (``sessions`` collection).

    Messages are embedded in their session document and appended with
    ``$push``, so they are always returned in chronological order.
    """

    __slots__ = ("_collection",)

    def __init__(self, collection_name: str = "sessions", database: motor.motor_asyncio.AsyncIOMotorDatabase | None = None) -> None:
        db = database if database is not None else _get_database()
        self._collection = db[collection_name]


    async def create(self, session: ChatSession) -> ChatSession:
        await self._collection.insert_one({"_id": session.id, "user_id": session.user_id, "document_id": session.document_id, "title": session.title, "messages": [], "created_at": session.created_at, "updated_at": session.updated_at})
        logger.info("[SESSION] Created session '%s' (document=%s).", session.id, session.document_id)
        return session


    async def get(self, session_id: str, user_id: str | None = None) -> ChatSession | None:
        query: dict[str, Any] = {"_id": session_id}
        if user_id is not None:
            query["user_id"] = user_id
        doc = await self._collection.find_one(query, {"messages": 0})
        return _to_session(doc) if doc else None


    async def get_messages(self, session_id: str) -> list[ChatTurn]:
        doc = await self._collection.find_one({"_id": session_id}, {"messages": 1})
        if doc is None:
            return []
        return [_to_turn(msg) for msg in doc.get("messages", [])]


    async def add_message(self, session_id: str, turn: ChatTurn) -> ChatTurn:
        message = {"id": turn.id, "role": turn.role, "content": turn.content, "created_at": turn.created_at}
        await self._collection.update_one({"_id": session_id}, {"$push": {"messages": message}})
        return turn


    async def touch(self, session_id: str) -> None:
        await self._collection.update_one({"_id": session_id}, {"$set": {"updated_at": datetime.now(timezone.utc)}})


    async def list_for_user(self, user_id: str) -> list[ChatSession]:
        """*user_id*'s sessions without messages, newest ``updated_at`` first."""
        cursor = self._collection.find({"user_id": user_id}, {"messages": 0}).sort("updated_at", -1)
        return [_to_session(doc) for doc in await cursor.to_list(length=None)]


    async def delete(self, session_id: str) -> bool:
        result = await self._collection.delete_one({"_id": session_id})
        return result.deleted_count > 0


    async def delete_for_document(self, document_id: str) -> int:
        result = await self._collection.delete_many({"document_id": document_id})
        if result.deleted_count:
            logger.info("[SESSION] Deleted %d session(s) bound to document '%s'.", result.deleted_count, document_id)
        return result.deleted_count
