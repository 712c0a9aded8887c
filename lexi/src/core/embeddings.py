"""
Lexi - Embedding Gateway
=========================
Thin capability boundary in front of the external embedding model.

The gateway owns two contracts and nothing else:
  • **Batching**: one model call per ``embed`` call, never one per text.
  • **Shape**: one vector per input text, all of the same length.

Any failure of the underlying service (missing credential, transport
error, malformed response) is reported as ``EmbeddingServiceUnavailable``
and never retried here; retry policy belongs to the caller.

Usage:
    from lexi.src.core.embeddings import EmbeddingGateway
    gateway = EmbeddingGateway()                # Gemini via LangChain
    vectors = await gateway.embed(["chunk one", "chunk two"])
"""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable

from lexi.config.settings import settings
from lexi.src.core.exceptions import EmbeddingServiceUnavailable
from lexi.src.utils.logger import get_logger

logger = get_logger(__name__)

Vector = list[float]


@runtime_checkable
class Embedder(Protocol):
    """Structural type for any LangChain-compatible async embedding model."""

    async def aembed_documents(self, texts: list[str]) -> list[list[float]]: ...


def build_embedder() -> Embedder:
    """
    Create the Gemini embedding model from settings.

    Raises:
        EmbeddingServiceUnavailable: If ``GOOGLE_API_KEY`` is not configured
            or the client cannot be constructed.
    """
    if settings.GOOGLE_API_KEY is None:
        raise EmbeddingServiceUnavailable("GOOGLE_API_KEY is not set; embedding service unavailable.", {"model": settings.EMBEDDING_MODEL})

    try:
        from langchain_google_genai import GoogleGenerativeAIEmbeddings

        embedder = GoogleGenerativeAIEmbeddings(model=settings.EMBEDDING_MODEL, google_api_key=settings.GOOGLE_API_KEY.get_secret_value())
    except Exception as exc:
        raise EmbeddingServiceUnavailable(f"Failed to initialise embedding model: {exc}", {"model": settings.EMBEDDING_MODEL}) from exc

    logger.info("Embedding model initialised: %s", settings.EMBEDDING_MODEL)
    return embedder


class EmbeddingGateway:
    """
    Batched text → vector mapping with shape guarantees.

    Parameters
    ----------
    embedder
        Any object satisfying the ``Embedder`` protocol.  When omitted the
        Gemini model is built lazily on the first ``embed`` call, so a
        missing credential surfaces as ``EmbeddingServiceUnavailable`` at
        use time rather than at construction.
    """

    __slots__ = ("_embedder",)

    def __init__(self, embedder: Embedder | None = None) -> None:
        self._embedder = embedder


    async def embed(self, texts: list[str]) -> list[Vector]:
        """
        Embed *texts* in a single model call.

        Returns
        -------
        list[Vector]
            One vector per input text, in input order.

        Raises
        ------
        EmbeddingServiceUnavailable
            If the model is unreachable, misconfigured, or returns a
            response of the wrong shape.
        """
        if not texts:
            return []

        if self._embedder is None:
            self._embedder = build_embedder()

        t_start = time.perf_counter()
        try:
            vectors = await self._embedder.aembed_documents(list(texts))
        except Exception as exc:
            logger.error("Embedding call for %d text(s) failed: %s", len(texts), exc)
            raise EmbeddingServiceUnavailable(f"Embedding service call failed: {exc}", {"batch_size": len(texts)}) from exc

        if len(vectors) != len(texts):
            raise EmbeddingServiceUnavailable(f"Embedding service returned {len(vectors)} vector(s) for {len(texts)} text(s).", {"batch_size": len(texts)})

        dimensions = {len(vec) for vec in vectors}
        if len(dimensions) != 1 or 0 in dimensions:
            raise EmbeddingServiceUnavailable(f"Embedding service returned inconsistent vector lengths: {sorted(dimensions)}.", {"batch_size": len(texts)})

        elapsed_ms = (time.perf_counter() - t_start) * 1000
        logger.info("Embedded %d text(s) (dim=%d) in %.1fms.", len(texts), dimensions.pop(), elapsed_ms)
        return [list(map(float, vec)) for vec in vectors]


    async def embed_query(self, text: str) -> Vector:
        """Embed a single query as a one-element batch."""
        return (await self.embed([text]))[0]
