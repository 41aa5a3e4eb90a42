"""Tests for query classification and the RAG pipeline."""

from __future__ import annotations

import asyncio
import re

import pytest

from conftest import ScriptedChatBackend, make_chunk
from ragkit_engine.agent.llm import ChatBackendError
from ragkit_engine.agent.rag import (
    NO_RESULTS_ANSWER,
    RAG_SYSTEM_PROMPT,
    GenerationMethod,
    QueryType,
    RagPipeline,
    build_context_block,
    build_fallback_answer,
    classify_query,
    extract_thinking,
    is_casual_conversation,
)
from ragkit_engine.knowledge.indexing import IndexingService
from ragkit_engine.knowledge.schema import SearchResult
from ragkit_engine.knowledge.seed import load_seed_documents
from ragkit_engine.knowledge.store import VectorStore


async def _seed(store: VectorStore) -> None:
    await IndexingService(store, source=object()).index_documents(load_seed_documents())  # type: ignore[arg-type]


class TestClassifyQuery:
    @pytest.mark.parametrize("query,tag", [
        ("hello", "greeting"),
        ("Hi there!", "greeting"),
        ("  Good morning  ", "greeting"),
        ("how are you today?", "greeting"),
        ("thanks a lot", "thanks"),
        ("Thank you!", "thanks"),
        ("bye", "farewell"),
        ("ok", "acknowledgment"),
        ("who are you?", "identity"),
    ])
    def test_casual(self, query, tag):
        assert classify_query(query) == tag
        assert is_casual_conversation(query)

    @pytest.mark.parametrize("query", [
        "What is your return policy?",
        "your shipping options",
        "history of the company",
        "okra recipes",
        "How do I track my order?",
    ])
    def test_knowledge(self, query):
        assert classify_query(query) is None
        assert not is_casual_conversation(query)

    def test_custom_patterns(self):
        patterns = [(re.compile(r"^ping\b"), "ping")]
        assert classify_query("ping", patterns) == "ping"
        assert classify_query("hello", patterns) is None


class TestExtractThinking:
    def test_splits_block(self):
        answer, thinking = extract_thinking("<think>\nreasoning here\n</think>\n\nThe answer.")
        assert answer == "The answer."
        assert thinking == "reasoning here"

    def test_no_block(self):
        assert extract_thinking("Plain answer") == ("Plain answer", None)

    def test_only_first_block_extracted(self):
        answer, thinking = extract_thinking("<think>one</think>A <think>two</think>")
        assert thinking == "one"
        assert answer == "A <think>two</think>"


class TestPromptHelpers:
    def test_context_block_numbered(self):
        results = [
            SearchResult(make_chunk("a", "Alpha text", title="Alpha"), 0.9),
            SearchResult(make_chunk("b", "Beta text", title="Beta"), 0.8),
        ]
        assert build_context_block(results) == "[Document 1: Alpha]\nAlpha text\n\n[Document 2: Beta]\nBeta text"

    def test_fallback_quotes_top_chunk(self):
        results = [
            SearchResult(make_chunk("a", "Alpha text", title="Alpha"), 0.1),
            SearchResult(make_chunk("b", "Beta text", title="Beta"), 0.05),
        ]
        answer = build_fallback_answer(results)
        assert "**Alpha**" in answer
        assert "Alpha text" in answer
        assert "Beta" not in answer

    def test_fallback_without_results(self):
        assert build_fallback_answer([]) == NO_RESULTS_ANSWER


class TestRagPipeline:
    @pytest.mark.asyncio
    async def test_casual_goes_direct(self, store: VectorStore, chat_backend: ScriptedChatBackend, embedder):
        await _seed(store)
        calls_before = len(embedder.calls)
        pipeline = RagPipeline(store, chat_backend)

        result = await pipeline.query("hello")

        assert result.generation_method is GenerationMethod.DIRECT_LLM
        assert result.query_type is QueryType.CASUAL
        assert result.sources == []
        assert chat_backend.calls == [[{"role": "user", "content": "hello"}]]
        assert len(embedder.calls) == calls_before

    @pytest.mark.asyncio
    async def test_knowledge_query_grounded(self, store: VectorStore, chat_backend: ScriptedChatBackend):
        await _seed(store)
        pipeline = RagPipeline(store, chat_backend)

        result = await pipeline.query("What is your return policy?")

        assert result.generation_method is GenerationMethod.RAG
        assert result.query_type is QueryType.KNOWLEDGE
        assert result.sources[0].chunk.title.startswith("Return Policy")
        assert result.sources[0].score > 0.3
        assert all(s.score > 0.3 for s in result.sources)

        messages = chat_backend.calls[0]
        assert messages[0] == {"role": "system", "content": RAG_SYSTEM_PROMPT}
        assert "[Document 1: Return Policy (Part 1/1)]" in messages[1]["content"]
        assert "Question: What is your return policy?" in messages[1]["content"]

    @pytest.mark.asyncio
    async def test_unrelated_query_backend_up(self, store: VectorStore, chat_backend: ScriptedChatBackend):
        await _seed(store)
        pipeline = RagPipeline(store, chat_backend)

        result = await pipeline.query("zxqv blorp")

        assert result.generation_method is GenerationMethod.DIRECT_LLM
        assert result.query_type is QueryType.KNOWLEDGE
        assert result.sources == []
        assert chat_backend.calls == [[{"role": "user", "content": "zxqv blorp"}]]

    @pytest.mark.asyncio
    async def test_unrelated_query_backend_down(self, store: VectorStore):
        await _seed(store)
        backend = ScriptedChatBackend(available=False)
        pipeline = RagPipeline(store, backend)

        result = await pipeline.query("zxqv blorp")

        assert result.generation_method is GenerationMethod.FALLBACK
        assert len(result.sources) == 3
        assert result.sources[0].chunk.content in result.answer
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_casual_backend_down_falls_back(self, store: VectorStore):
        await _seed(store)
        backend = ScriptedChatBackend(available=False)
        pipeline = RagPipeline(store, backend)

        result = await pipeline.query("hello")

        assert result.generation_method is GenerationMethod.FALLBACK
        assert result.query_type is QueryType.CASUAL
        assert result.sources

    @pytest.mark.asyncio
    async def test_backend_down_empty_store(self, store: VectorStore):
        pipeline = RagPipeline(store, ScriptedChatBackend(available=False))
        result = await pipeline.query("What is your return policy?")
        assert result.generation_method is GenerationMethod.FALLBACK
        assert result.answer == NO_RESULTS_ANSWER
        assert result.sources == []

    @pytest.mark.asyncio
    async def test_threshold_configurable(self, store: VectorStore, chat_backend: ScriptedChatBackend):
        await _seed(store)
        pipeline = RagPipeline(store, chat_backend, relevance_threshold=0.99)
        result = await pipeline.query("What is your return policy?")
        assert result.generation_method is GenerationMethod.DIRECT_LLM
        assert result.sources == []

    @pytest.mark.asyncio
    async def test_top_k_limits_retrieval(self, store: VectorStore):
        await _seed(store)
        pipeline = RagPipeline(store, ScriptedChatBackend(available=False))
        result = await pipeline.query("zxqv blorp", top_k=5)
        assert len(result.sources) == 5

    @pytest.mark.asyncio
    async def test_thinking_included_on_request(self, store: VectorStore):
        backend = ScriptedChatBackend(reply="<think>consider greeting</think>Hello! How can I help?")
        pipeline = RagPipeline(store, backend)

        result = await pipeline.query("hi", include_thinking=True)
        data = result.to_dict()
        assert data["answer"] == "Hello! How can I help?"
        assert data["thinking"] == "consider greeting"

    @pytest.mark.asyncio
    async def test_thinking_discarded_by_default(self, store: VectorStore):
        backend = ScriptedChatBackend(reply="<think>consider greeting</think>Hello!")
        pipeline = RagPipeline(store, backend)

        data = (await pipeline.query("hi")).to_dict()
        assert data["answer"] == "Hello!"
        assert "thinking" not in data

    @pytest.mark.asyncio
    async def test_result_dict_shape(self, store: VectorStore, chat_backend: ScriptedChatBackend):
        await _seed(store)
        pipeline = RagPipeline(store, chat_backend)

        data = (await pipeline.query("What is your return policy?")).to_dict()

        source = data["sources"][0]
        assert set(source) == {"id", "title", "category", "url", "relevanceScore"}
        assert source["category"] == "support"
        assert data["metadata"] == {
            "generationMethod": "rag",
            "documentsRetrieved": len(data["sources"]),
            "model": "test-model",
            "queryType": "knowledge",
        }

    @pytest.mark.asyncio
    async def test_health_timeout_counts_as_unavailable(self, store: VectorStore, monkeypatch):
        class HangingBackend(ScriptedChatBackend):
            async def health_check(self) -> bool:
                await asyncio.sleep(5)
                return True

        monkeypatch.setattr("ragkit_engine.agent.rag.HEALTH_CHECK_TIMEOUT", 0.01)
        pipeline = RagPipeline(store, HangingBackend())
        assert await pipeline.backend_available() is False

    @pytest.mark.asyncio
    async def test_chat_failure_propagates(self, store: VectorStore):
        class FailingBackend(ScriptedChatBackend):
            async def chat(self, messages, **options):
                raise ChatBackendError("Ollama API error: 500 - boom")

        pipeline = RagPipeline(store, FailingBackend())
        with pytest.raises(ChatBackendError):
            await pipeline.query("hello")

    @pytest.mark.asyncio
    async def test_search_only(self, store: VectorStore, chat_backend: ScriptedChatBackend):
        await _seed(store)
        pipeline = RagPipeline(store, chat_backend)
        results = await pipeline.search("refund on returns", top_k=2)
        assert len(results) == 2
        assert results[0].chunk.title.startswith("Return Policy")
        assert chat_backend.calls == []
