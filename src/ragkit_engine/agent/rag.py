"""Retrieval-augmented generation pipeline.

Per query:
1. Classify the query as casual conversation or a knowledge question.
2. Casual queries go straight to the chat backend when it is up.
3. Knowledge queries retrieve from the vector store, keep the chunks
   above the relevance threshold, and answer with grounded generation,
   a plain model call, or a quoted excerpt when the backend is down.
4. A ``<think>...</think>`` block in the model output is split off.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence

from ragkit_engine.agent.llm import ChatBackend
from ragkit_engine.knowledge.schema import SearchResult
from ragkit_engine.knowledge.store import VectorStore

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 3
DEFAULT_RELEVANCE_THRESHOLD = 0.3
HEALTH_CHECK_TIMEOUT = 10.0


class QueryType(str, Enum):
    CASUAL = "casual"
    KNOWLEDGE = "knowledge"


class GenerationMethod(str, Enum):
    DIRECT_LLM = "direct-llm"
    RAG = "rag"
    FALLBACK = "fallback"


# Evaluated in order against the trimmed, lower-cased query.
CASUAL_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"^(hi|hello|hey|sup|yo|greetings?|good\s+(morning|afternoon|evening|day))\b"), "greeting"),
    (re.compile(r"^(how\s+are\s+you|what'?s\s+up|how'?s\s+it\s+going)\b"), "greeting"),
    (re.compile(r"^(thanks?|thank\s+you|thx|cheers)\b"), "thanks"),
    (re.compile(r"^(bye|goodbye|see\s+ya|later|cya)\b"), "farewell"),
    (re.compile(r"^(ok|okay|cool|nice|great|awesome|sure)\b"), "acknowledgment"),
    (re.compile(r"^(who\s+are\s+you|what\s+are\s+you|introduce\s+yourself)\b"), "identity"),
)

RAG_SYSTEM_PROMPT = (
    "You are a helpful assistant that answers questions based on the provided context.\n"
    "Use the information from the context to provide accurate and helpful answers.\n"
    "If the context doesn't contain relevant information to answer the question, say so politely.\n"
    "Always be concise and direct in your responses."
)

NO_RESULTS_ANSWER = "I couldn't find any relevant information to answer your question."

_THINK_BLOCK = re.compile(r"<think>([\s\S]*?)</think>")


def classify_query(
    query: str,
    patterns: Sequence[tuple[re.Pattern[str], str]] = CASUAL_PATTERNS,
) -> str | None:
    """Return the tag of the first casual pattern the query matches, if any."""
    normalized = query.strip().lower()
    for pattern, tag in patterns:
        if pattern.search(normalized):
            return tag
    return None


def is_casual_conversation(query: str) -> bool:
    return classify_query(query) is not None


def extract_thinking(text: str) -> tuple[str, str | None]:
    """Split the first <think> block off the model output.

    Returns (answer, thinking); thinking is None when no block is present.
    """
    match = _THINK_BLOCK.search(text)
    if match is None:
        return text, None
    thinking = match.group(1).strip()
    answer = (text[:match.start()] + text[match.end():]).strip()
    return answer, thinking


def build_context_block(results: Sequence[SearchResult]) -> str:
    """Render retrieved chunks as numbered context sections."""
    return "\n\n".join(
        f"[Document {i}: {r.chunk.title}]\n{r.chunk.content}"
        for i, r in enumerate(results, start=1)
    )


def build_rag_messages(query: str, results: Sequence[SearchResult]) -> list[dict[str, str]]:
    user_prompt = (
        f"Context:\n{build_context_block(results)}\n\n---\n\n"
        f"Question: {query}\n\n"
        "Please provide a helpful answer based on the context above."
    )
    return [
        {"role": "system", "content": RAG_SYSTEM_PROMPT},
        {"role": "user", "content": user_prompt},
    ]


def build_fallback_answer(results: Sequence[SearchResult]) -> str:
    """Quote the top retrieved chunk verbatim."""
    if not results:
        return NO_RESULTS_ANSWER
    top = results[0].chunk
    return (
        f"Based on the available information:\n\n**{top.title}**\n\n{top.content}\n\n"
        "*Note: This is a direct excerpt from our knowledge base. "
        "For a more detailed response, please make sure the chat backend is running.*"
    )


@dataclass
class RagAnswer:
    """Result of one pipeline query."""
    answer: str
    generation_method: GenerationMethod
    query_type: QueryType
    model: str
    sources: list[SearchResult] = field(default_factory=list)
    thinking: str | None = None
    include_thinking: bool = False

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "answer": self.answer,
            "sources": [
                {
                    "id": r.chunk.id,
                    "title": r.chunk.title,
                    "category": r.chunk.category,
                    "url": r.chunk.url,
                    "relevanceScore": r.score,
                }
                for r in self.sources
            ],
            "metadata": {
                "generationMethod": self.generation_method.value,
                "documentsRetrieved": len(self.sources),
                "model": self.model,
                "queryType": self.query_type.value,
            },
        }
        if self.include_thinking:
            data["thinking"] = self.thinking
        return data


class RagPipeline:
    """Routes each query to direct generation, grounded generation or fallback."""

    def __init__(
        self,
        store: VectorStore,
        backend: ChatBackend,
        default_top_k: int = DEFAULT_TOP_K,
        relevance_threshold: float = DEFAULT_RELEVANCE_THRESHOLD,
        chat_timeout: float | None = None,
        casual_patterns: Sequence[tuple[re.Pattern[str], str]] = CASUAL_PATTERNS,
    ) -> None:
        self._store = store
        self._backend = backend
        self.default_top_k = default_top_k
        self.relevance_threshold = relevance_threshold
        self._chat_timeout = chat_timeout
        self._casual_patterns = casual_patterns

    async def backend_available(self) -> bool:
        """Probe the chat backend. A timed-out probe counts as unavailable."""
        try:
            return await asyncio.wait_for(self._backend.health_check(), timeout=HEALTH_CHECK_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning("Chat backend health check timed out")
            return False

    async def _generate(self, messages: list[dict[str, str]]) -> str:
        if self._chat_timeout:
            return await asyncio.wait_for(self._backend.chat(messages), timeout=self._chat_timeout)
        return await self._backend.chat(messages)

    async def query(
        self,
        query: str,
        top_k: int | None = None,
        include_thinking: bool = False,
    ) -> RagAnswer:
        top_k = top_k or self.default_top_k
        model = self._backend.model_info()["model"]

        available = await self.backend_available()
        casual_tag = classify_query(query, self._casual_patterns)
        query_type = QueryType.CASUAL if casual_tag else QueryType.KNOWLEDGE

        if casual_tag and available:
            logger.info("Casual conversation (%s), using direct model response", casual_tag)
            raw = await self._generate([{"role": "user", "content": query}])
            return self._finish(raw, GenerationMethod.DIRECT_LLM, query_type, model, [], include_thinking)

        retrieved = await self._store.search(query, top_k)
        for rank, result in enumerate(retrieved, start=1):
            logger.debug("  %d. %s (score: %.4f)", rank, result.chunk.title, result.score)
        relevant = [r for r in retrieved if r.score > self.relevance_threshold]
        logger.info(
            "Retrieved %d documents, %d above relevance threshold %.2f",
            len(retrieved), len(relevant), self.relevance_threshold,
        )

        if not relevant and available:
            logger.info("No relevant documents, using direct model response")
            raw = await self._generate([{"role": "user", "content": query}])
            return self._finish(raw, GenerationMethod.DIRECT_LLM, query_type, model, [], include_thinking)

        if available:
            logger.info("Generating grounded response from %d documents", len(relevant))
            raw = await self._generate(build_rag_messages(query, relevant))
            return self._finish(raw, GenerationMethod.RAG, query_type, model, relevant, include_thinking)

        logger.warning("Chat backend unavailable, answering from the top retrieved document")
        return self._finish(
            build_fallback_answer(retrieved),
            GenerationMethod.FALLBACK,
            query_type,
            model,
            retrieved,
            include_thinking,
        )

    def _finish(
        self,
        raw: str,
        method: GenerationMethod,
        query_type: QueryType,
        model: str,
        sources: list[SearchResult],
        include_thinking: bool,
    ) -> RagAnswer:
        answer, thinking = extract_thinking(raw)
        return RagAnswer(
            answer=answer,
            generation_method=method,
            query_type=query_type,
            model=model,
            sources=sources,
            thinking=thinking if include_thinking else None,
            include_thinking=include_thinking,
        )

    async def search(self, query: str, top_k: int = 5) -> list[SearchResult]:
        """Retrieval only, no generation."""
        return await self._store.search(query, top_k)
