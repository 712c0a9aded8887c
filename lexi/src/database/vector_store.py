"""
Lexi - VectorIndex
===================
In-memory, per-document vector index used for retrieval.

Each document id maps to one immutable ``IndexEntry`` holding the
document's chunks and their embeddings as parallel tuples.  Entries are
only ever replaced or removed as a whole.

Design decisions:
  • **Explicit instance**: the index is a plain object injected into the
    orchestrator, not a module-level registry; ``reset()`` clears it.
  • **Atomic replacement**: ``put`` builds the complete entry before
    publishing it under the lock, so a reader sees either the old set or
    the new one, never a mix.  Last successful ``put`` wins.
  • **Single lock**: one ``threading.Lock`` guards the mapping.  Searches
    only hold it long enough to grab the entry reference; scoring runs
    outside the lock on the immutable snapshot.
  • **No persistence, no eviction**: process-lifetime storage.  Persisted
    embeddings can be replayed through ``put`` after a restart.

Usage:
    from lexi.src.database.vector_store import VectorIndex
    index = VectorIndex()
    index.put("doc-1", chunks, vectors)
    results = index.search("doc-1", query_vector, top_k=3)
"""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Sequence

from lexi.src.core.exceptions import DimensionMismatch
from lexi.src.utils.logger import get_logger

logger = get_logger(__name__)

Vector = Sequence[float]


@dataclass(frozen=True, slots=True)
class SimilarityResult:
    """One ranked chunk.  ``rank`` is the chunk's original position in its document."""

    text: str
    score: float
    rank: int


@dataclass(frozen=True, slots=True)
class IndexEntry:
    """A document's chunk/vector set.  ``chunks[i]`` was embedded as ``vectors[i]``."""

    document_id: str
    chunks: tuple[str, ...]
    vectors: tuple[tuple[float, ...], ...]
    processed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def chunk_count(self) -> int:
        return len(self.chunks)

    @property
    def dimension(self) -> int:
        return len(self.vectors[0]) if self.vectors else 0


def cosine_similarity(a: Vector, b: Vector) -> float:
    """
    Cosine of the angle between *a* and *b*.

    Returns ``0.0`` when either vector has zero norm.

    Raises
    ------
    DimensionMismatch
        If the vectors differ in length.
    """
    if len(a) != len(b):
        logger.error("Cosine similarity on vectors of different length (%d vs %d); embeddings from different models mixed?", len(a), len(b))
        raise DimensionMismatch(len(a), len(b))

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


class VectorIndex:
    """
    Thread-safe mapping of document id → ``IndexEntry``.

    All vectors stored in one index share a single dimension, fixed by
    the first successful ``put`` and released again by ``reset()``.
    """

    __slots__ = ("_entries", "_lock", "_dimension")

    def __init__(self) -> None:
        self._entries: dict[str, IndexEntry] = {}
        self._lock = threading.Lock()
        self._dimension: int | None = None


    def put(self, document_id: str, chunks: Sequence[str], vectors: Sequence[Vector]) -> IndexEntry:
        """
        Replace the entry for *document_id* with *chunks* / *vectors*.

        Raises
        ------
        ValueError
            If the sequences differ in length or are empty.
        DimensionMismatch
            If the vectors disagree in length with each other or with the
            vectors already in the index.
        """
        if len(chunks) != len(vectors):
            raise ValueError(f"Length mismatch: {len(chunks)} chunks vs {len(vectors)} vectors.")
        if not chunks:
            raise ValueError(f"Refusing to index document '{document_id}' with no chunks.")

        frozen_vectors = tuple(tuple(float(x) for x in vec) for vec in vectors)
        dimension = len(frozen_vectors[0])
        for vec in frozen_vectors:
            if len(vec) != dimension:
                logger.error("Document '%s' carries vectors of mixed length (%d vs %d).", document_id, dimension, len(vec))
                raise DimensionMismatch(dimension, len(vec))

        entry = IndexEntry(document_id=document_id, chunks=tuple(chunks), vectors=frozen_vectors)

        with self._lock:
            if self._dimension is not None and self._dimension != dimension:
                logger.error("Document '%s' vectors have dimension %d; index holds dimension %d.", document_id, dimension, self._dimension)
                raise DimensionMismatch(self._dimension, dimension)
            replaced = document_id in self._entries
            self._entries[document_id] = entry
            self._dimension = dimension

        logger.info("%s index entry '%s' (%d chunks, dim=%d).", "Replaced" if replaced else "Stored", document_id, entry.chunk_count, dimension)
        return entry


    def search(self, document_id: str, query_vector: Vector, top_k: int = 3) -> list[SimilarityResult]:
        """
        Rank *document_id*'s chunks by cosine similarity to *query_vector*.

        Returns
        -------
        list[SimilarityResult]
            At most *top_k* results, best first; equal scores keep their
            original chunk order.  Empty if the document is not indexed.
        """
        if top_k < 1:
            return []

        with self._lock:
            entry = self._entries.get(document_id)

        if entry is None:
            logger.info("Search on unindexed document '%s'; no evidence.", document_id)
            return []

        scored = [
            SimilarityResult(text=chunk, score=cosine_similarity(query_vector, vec), rank=i)
            for i, (chunk, vec) in enumerate(zip(entry.chunks, entry.vectors))
        ]
        # sorted() is stable: ties stay in chunk order
        scored.sort(key=lambda r: r.score, reverse=True)

        results = scored[:top_k]
        logger.debug("Search on '%s' scored %d chunk(s), returning %d.", document_id, len(scored), len(results))
        return results


    def remove(self, document_id: str) -> bool:
        """Drop the entry for *document_id*.  Returns True if one existed."""
        with self._lock:
            removed = self._entries.pop(document_id, None) is not None

        if removed:
            logger.info("Removed index entry '%s'.", document_id)
        return removed


    def get(self, document_id: str) -> IndexEntry | None:
        with self._lock:
            return self._entries.get(document_id)


    def document_ids(self) -> list[str]:
        with self._lock:
            return list(self._entries)


    def reset(self) -> None:
        """Clear every entry and release the dimension lock-in."""
        with self._lock:
            self._entries.clear()
            self._dimension = None
        logger.warning("Vector index reset.")


    def __contains__(self, document_id: object) -> bool:
        with self._lock:
            return document_id in self._entries


    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


    def __repr__(self) -> str:
        return f"VectorIndex(documents={len(self)}, dimension={self._dimension})"
