"""
Lexi - Retriever
=================
Query text → ranked evidence for one document: embed the question as a
single-element batch, then delegate ranking to the ``VectorIndex``.
"""

from __future__ import annotations

import time

from lexi.config.settings import settings
from lexi.src.core.embeddings import EmbeddingGateway
from lexi.src.database.vector_store import SimilarityResult, VectorIndex
from lexi.src.utils.logger import get_logger

logger = get_logger(__name__)


class Retriever:
    """
    Top-K chunk retrieval scoped to a single document.

    Parameters
    ----------
    index
        The ``VectorIndex`` to search.
    gateway
        The ``EmbeddingGateway`` used to embed queries.  Must wrap the
        same model that embedded the indexed chunks.
    """

    __slots__ = ("_index", "_gateway")

    def __init__(self, index: VectorIndex, gateway: EmbeddingGateway) -> None:
        self._index = index
        self._gateway = gateway


    async def retrieve(self, document_id: str, query_text: str, top_k: int | None = None) -> list[SimilarityResult]:
        """
        Return up to *top_k* chunks of *document_id* most similar to *query_text*.

        *top_k* defaults to ``settings.RETRIEVAL_TOP_K``.  An unindexed
        document (or *top_k* below 1) yields ``[]`` without calling the
        embedding service.
        """
        top_k = settings.RETRIEVAL_TOP_K if top_k is None else top_k
        if top_k < 1:
            return []

        if document_id not in self._index:
            logger.info("[RETRIEVE] Document '%s' has no indexed chunks.", document_id)
            return []

        t_start = time.perf_counter()
        query_vector = await self._gateway.embed_query(query_text)
        results = self._index.search(document_id, query_vector, top_k)

        elapsed_ms = (time.perf_counter() - t_start) * 1000
        logger.info("[RETRIEVE] '%s' → %d chunk(s) in %.1fms (top score=%s).", document_id, len(results), elapsed_ms, f"{results[0].score:.3f}" if results else "n/a")
        return results
