"""
Lexi - Answer Synthesizer
==========================
Turns retrieved evidence + conversation history into a grounded answer.

Flow:
    1. Retrieve top-K chunks for (document, question).
    2. No chunks → fixed "no relevant information" answer, no sources.
    3. Build the evidence context (chunks in rank order, blank-line
       separated) and the trailing history window (``role: content``).
    4. System message = domain framing + evidence + history; the
       question follows as its own human message.
    5. Call Gemini via LangChain with a bounded output length and a low
       temperature.
    6. Return the model text plus one truncated excerpt per retrieved
       chunk, in rank order.

Any completion failure is raised as ``SynthesisFailed``; turning it into
a user-visible apology is the caller's job.

Usage:
    from lexi.src.core.rag_engine import AnswerSynthesizer
    synthesizer = AnswerSynthesizer(retriever)
    result = await synthesizer.answer("Who pays for repairs?", doc_id, history)
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence, runtime_checkable

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from lexi.config.prompt_templates import HISTORY_SECTION_TEMPLATE, NO_CONTEXT_RESPONSE, SYSTEM_PROMPT_TEMPLATE
from lexi.config.settings import settings
from lexi.src.core.exceptions import MissingQuery, SynthesisFailed
from lexi.src.core.retriever import Retriever
from lexi.src.database.models import ChatTurn
from lexi.src.database.vector_store import SimilarityResult
from lexi.src.utils.logger import get_logger
from lexi.src.utils.text_utils import truncate_excerpt

logger = get_logger(__name__)


@runtime_checkable
class ChatModel(Protocol):
    """Anything LangChain-shaped that answers a list of messages asynchronously."""

    async def ainvoke(self, input: list[BaseMessage], **kwargs: Any) -> Any: ...


@dataclass(frozen=True, slots=True)
class SourceSnippet:
    excerpt: str
    similarity: float


@dataclass(frozen=True, slots=True)
class SynthesisResult:
    response: str
    sources: list[SourceSnippet] = field(default_factory=list)


def build_chat_model() -> ChatModel:
    """
    Create the Gemini chat model from settings.

    Raises:
        SynthesisFailed: If ``GOOGLE_API_KEY`` is not configured or the
            client cannot be constructed.
    """
    if settings.GOOGLE_API_KEY is None:
        raise SynthesisFailed("GOOGLE_API_KEY is not set; completion service unavailable.", {"model": settings.LLM_MODEL})

    try:
        from langchain_google_genai import ChatGoogleGenerativeAI

        llm = ChatGoogleGenerativeAI(model=settings.LLM_MODEL, temperature=settings.LLM_TEMPERATURE, max_output_tokens=settings.LLM_MAX_OUTPUT_TOKENS, google_api_key=settings.GOOGLE_API_KEY.get_secret_value())
    except Exception as exc:
        raise SynthesisFailed(f"Failed to initialise chat model: {exc}", {"model": settings.LLM_MODEL}) from exc

    logger.info("LLM initialised: %s (temperature=%.1f, max_output_tokens=%d)", settings.LLM_MODEL, settings.LLM_TEMPERATURE, settings.LLM_MAX_OUTPUT_TOKENS)
    return llm


class AnswerSynthesizer:
    """
    Retrieval-grounded answer generation for a single document.

    Parameters
    ----------
    retriever
        The ``Retriever`` supplying ranked evidence.
    llm
        Optional chat model.  Built lazily from settings on first use.
    top_k
        Evidence chunks per question.  Defaults to ``settings.RETRIEVAL_TOP_K``.
    history_window
        Trailing turns replayed into the prompt.  Defaults to
        ``settings.HISTORY_WINDOW``.
    excerpt_chars
        Length of each source excerpt.  Defaults to
        ``settings.SOURCE_EXCERPT_CHARS``.
    """

    __slots__ = ("_retriever", "_llm", "_top_k", "_history_window", "_excerpt_chars")

    def __init__(self, retriever: Retriever, llm: ChatModel | None = None, top_k: int | None = None, history_window: int | None = None, excerpt_chars: int | None = None) -> None:
        self._retriever = retriever
        self._llm = llm
        self._top_k = settings.RETRIEVAL_TOP_K if top_k is None else top_k
        self._history_window = settings.HISTORY_WINDOW if history_window is None else history_window
        self._excerpt_chars = excerpt_chars or settings.SOURCE_EXCERPT_CHARS


    async def answer(self, query_text: str, document_id: str, history: Sequence[ChatTurn] = ()) -> SynthesisResult:
        """
        Answer *query_text* from *document_id*'s evidence.

        Raises
        ------
        MissingQuery
            If *query_text* is blank.
        EmbeddingServiceUnavailable
            If the query cannot be embedded.
        SynthesisFailed
            If the completion model fails.
        """
        if not query_text or not query_text.strip():
            raise MissingQuery()

        t_start = time.perf_counter()

        # ── 1. Retrieve ───────────────────────────────────────────────
        results = await self._retriever.retrieve(document_id, query_text, self._top_k)

        # ── 2. No evidence → fixed answer ─────────────────────────────
        if not results:
            logger.warning("[RAG] No relevant context for document '%s'.", document_id)
            return SynthesisResult(response=NO_CONTEXT_RESPONSE, sources=[])

        # ── 3–4. Build prompt ─────────────────────────────────────────
        messages = self.build_messages(query_text, results, history)

        # ── 5. Call the model ─────────────────────────────────────────
        t_llm = time.perf_counter()
        response = await self._complete(messages)
        llm_ms = (time.perf_counter() - t_llm) * 1000

        # ── 6. Attach provenance ──────────────────────────────────────
        sources = [SourceSnippet(excerpt=truncate_excerpt(r.text, self._excerpt_chars), similarity=r.score) for r in results]

        total_ms = (time.perf_counter() - t_start) * 1000
        logger.info("[RAG] Answered from %d chunk(s): llm=%.1fms, total=%.1fms (%d chars).", len(results), llm_ms, total_ms, len(response))
        return SynthesisResult(response=response, sources=sources)


    def build_messages(self, query_text: str, results: Sequence[SimilarityResult], history: Sequence[ChatTurn]) -> list[BaseMessage]:
        """System message with evidence + history, then the question."""
        context = self._format_context(results)
        history_str = self._format_history(history, self._history_window)
        history_section = HISTORY_SECTION_TEMPLATE.format(history=history_str) if history_str else ""

        system_prompt = SYSTEM_PROMPT_TEMPLATE.format(domain=settings.ASSISTANT_DOMAIN, context=context, history_section=history_section)
        return [SystemMessage(content=system_prompt), HumanMessage(content=query_text)]


    async def _complete(self, messages: list[BaseMessage]) -> str:
        if self._llm is None:
            self._llm = build_chat_model()

        try:
            response_obj = await self._llm.ainvoke(messages)
        except Exception as exc:
            logger.exception("[RAG] LLM call failed.")
            raise SynthesisFailed(f"Completion service call failed: {exc}", {"model": settings.LLM_MODEL}) from exc

        content = response_obj.content if hasattr(response_obj, "content") else response_obj
        if isinstance(content, list):
            # Multi-part responses: keep the text parts
            content = "".join(part if isinstance(part, str) else str(part.get("text", "")) for part in content)
        if not isinstance(content, str) or not content.strip():
            raise SynthesisFailed("Completion service returned an empty answer.", {"model": settings.LLM_MODEL})
        return content

    # ══════════════════════════════════════════════════════════════════
    #  PROMPT FORMATTING
    # ══════════════════════════════════════════════════════════════════

    @staticmethod
    def _format_context(results: Sequence[SimilarityResult]) -> str:
        return "\n\n".join(r.text for r in results)


    @staticmethod
    def _format_history(history: Sequence[ChatTurn], window: int) -> str:
        """Last *window* turns, oldest first, one ``role: content`` line each."""
        if window <= 0 or not history:
            return ""
        return "\n".join(f"{turn.role}: {turn.content}" for turn in list(history)[-window:])
