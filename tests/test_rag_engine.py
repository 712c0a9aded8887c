"""Tests for the AnswerSynthesizer: prompt building, provenance and failure semantics."""

from unittest.mock import patch

import pytest
from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import SecretStr

from lexi.config.prompt_templates import NO_CONTEXT_RESPONSE
from lexi.src.core.exceptions import EmbeddingServiceUnavailable, MissingQuery, SynthesisFailed
from lexi.src.core.embeddings import EmbeddingGateway
from lexi.src.core.rag_engine import AnswerSynthesizer, SourceSnippet, build_chat_model
from lexi.src.core.retriever import Retriever
from lexi.src.database.models import ChatTurn
from lexi.src.database.vector_store import VectorIndex

LONG_CLAUSE = "The landlord must complete repairs " + "within a reasonable period " * 12 + "after notice."


@pytest.fixture
def indexed(index: VectorIndex, embedder) -> VectorIndex:
    chunks = ["The tenant must pay rent monthly.", LONG_CLAUSE, "No pets allowed.", "Utilities are paid by the tenant."]
    index.put("lease", chunks, [embedder.vector(c) for c in chunks])
    return index


def _history(n: int) -> list[ChatTurn]:
    return [ChatTurn(role="user" if i % 2 == 0 else "assistant", content=f"turn {i}") for i in range(n)]


class TestScenarioB:

    @pytest.mark.asyncio
    async def test_no_indexed_chunks_gives_fixed_answer(self, synthesizer: AnswerSynthesizer, chat_model) -> None:
        result = await synthesizer.answer("Who pays rent?", "never-ingested", [])

        assert result.response == NO_CONTEXT_RESPONSE
        assert result.sources == []
        assert chat_model.calls == []


class TestAnswer:

    @pytest.mark.asyncio
    async def test_returns_model_text(self, synthesizer: AnswerSynthesizer, indexed: VectorIndex) -> None:
        result = await synthesizer.answer("Who pays rent?", "lease")
        assert result.response == "The tenant pays rent monthly."

    @pytest.mark.asyncio
    async def test_sources_follow_rank_order(self, synthesizer: AnswerSynthesizer, indexed: VectorIndex) -> None:
        result = await synthesizer.answer("Who handles repairs after notice?", "lease")

        assert len(result.sources) == 3
        scores = [s.similarity for s in result.sources]
        assert scores == sorted(scores, reverse=True)
        assert result.sources[0].excerpt.startswith("The landlord must complete repairs")

    @pytest.mark.asyncio
    async def test_long_excerpt_is_truncated(self, synthesizer: AnswerSynthesizer, indexed: VectorIndex) -> None:
        result = await synthesizer.answer("repairs notice", "lease")

        top = result.sources[0]
        assert top.excerpt == LONG_CLAUSE[:200] + "..."

    @pytest.mark.asyncio
    async def test_short_excerpt_kept_whole(self, synthesizer: AnswerSynthesizer, indexed: VectorIndex) -> None:
        result = await synthesizer.answer("pets", "lease")
        assert SourceSnippet(excerpt="No pets allowed.", similarity=result.sources[0].similarity) == result.sources[0]

    @pytest.mark.asyncio
    async def test_blank_query_rejected(self, synthesizer: AnswerSynthesizer) -> None:
        with pytest.raises(MissingQuery):
            await synthesizer.answer("   ", "lease")

    @pytest.mark.asyncio
    async def test_zero_top_k_is_not_replaced_by_default(self, retriever: Retriever, indexed: VectorIndex, chat_model) -> None:
        result = await AnswerSynthesizer(retriever, llm=chat_model, top_k=0).answer("rent?", "lease")

        assert result.response == NO_CONTEXT_RESPONSE
        assert chat_model.calls == []


class TestPrompt:

    @pytest.mark.asyncio
    async def test_system_message_then_question(self, synthesizer: AnswerSynthesizer, indexed: VectorIndex, chat_model) -> None:
        await synthesizer.answer("Who pays utilities?", "lease")

        system, human = chat_model.calls[0]
        assert isinstance(system, SystemMessage)
        assert isinstance(human, HumanMessage)
        assert human.content == "Who pays utilities?"

    @pytest.mark.asyncio
    async def test_evidence_joined_by_blank_line_in_rank_order(self, synthesizer: AnswerSynthesizer, indexed: VectorIndex, chat_model) -> None:
        result = await synthesizer.answer("tenant utilities", "lease")

        system_prompt = chat_model.calls[0][0].content
        assert "Utilities are paid by the tenant.\n\nThe tenant must pay rent monthly." in system_prompt
        assert result.sources[0].excerpt == "Utilities are paid by the tenant."

    @pytest.mark.asyncio
    async def test_history_trimmed_to_last_six_turns(self, synthesizer: AnswerSynthesizer, indexed: VectorIndex, chat_model) -> None:
        await synthesizer.answer("rent?", "lease", _history(10))

        system_prompt = chat_model.calls[0][0].content
        assert "Previous conversation:\nuser: turn 4\nassistant: turn 5\nuser: turn 6\nassistant: turn 7\nuser: turn 8\nassistant: turn 9" in system_prompt
        assert "turn 3" not in system_prompt

    @pytest.mark.asyncio
    async def test_no_history_section_without_turns(self, synthesizer: AnswerSynthesizer, indexed: VectorIndex, chat_model) -> None:
        await synthesizer.answer("rent?", "lease", [])
        assert "Previous conversation" not in chat_model.calls[0][0].content

    @pytest.mark.asyncio
    async def test_domain_framing_from_settings(self, synthesizer: AnswerSynthesizer, indexed: VectorIndex, chat_model) -> None:
        with patch("lexi.src.core.rag_engine.settings.ASSISTANT_DOMAIN", "commercial lease agreements"):
            await synthesizer.answer("rent?", "lease")
        assert "answers questions about commercial lease agreements" in chat_model.calls[0][0].content


class TestFailures:

    @pytest.mark.asyncio
    async def test_completion_error_raises_synthesis_failed(self, retriever: Retriever, indexed: VectorIndex, failing_chat_model) -> None:
        synthesizer = AnswerSynthesizer(retriever, llm=failing_chat_model)

        with pytest.raises(SynthesisFailed) as excinfo:
            await synthesizer.answer("rent?", "lease")
        assert isinstance(excinfo.value.__cause__, TimeoutError)

    @pytest.mark.asyncio
    async def test_empty_completion_raises_synthesis_failed(self, retriever: Retriever, indexed: VectorIndex, chat_model) -> None:
        chat_model.answer = "   "
        with pytest.raises(SynthesisFailed):
            await AnswerSynthesizer(retriever, llm=chat_model).answer("rent?", "lease")

    @pytest.mark.asyncio
    async def test_embedding_outage_propagates(self, indexed: VectorIndex, failing_embedder, chat_model) -> None:
        synthesizer = AnswerSynthesizer(Retriever(indexed, EmbeddingGateway(failing_embedder)), llm=chat_model)

        with pytest.raises(EmbeddingServiceUnavailable):
            await synthesizer.answer("rent?", "lease")
        assert chat_model.calls == []

    def test_build_chat_model_without_key(self) -> None:
        with patch("lexi.src.core.rag_engine.settings.GOOGLE_API_KEY", None):
            with pytest.raises(SynthesisFailed):
                build_chat_model()

    def test_build_chat_model_uses_configured_limits(self) -> None:
        with patch("lexi.src.core.rag_engine.settings.GOOGLE_API_KEY", SecretStr("test-key")), patch("langchain_google_genai.ChatGoogleGenerativeAI") as factory:
            build_chat_model()

        kwargs = factory.call_args.kwargs
        assert kwargs["temperature"] == 0.3
        assert kwargs["max_output_tokens"] == 500
