"""Shared test fixtures for ragkit-engine."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Sequence

import pytest

from ragkit_engine.config import EngineSettings
from ragkit_engine.knowledge.schema import KnowledgeChunk
from ragkit_engine.knowledge.store import VectorStore

# Each dimension counts occurrences of one keyword, so texts sharing
# keywords get a positive cosine and unrelated texts score 0.
VOCABULARY = (
    "return", "policy", "refund", "shipping", "warranty", "api",
    "price", "account", "order", "payment", "battery", "display",
)


class KeywordEmbedder:
    """Deterministic embedding gateway for tests."""

    def __init__(self, vocabulary: Sequence[str] = VOCABULARY) -> None:
        self.model_name = "keyword-test"
        self.vocabulary = tuple(vocabulary)
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        lowered = text.lower()
        return [float(lowered.count(word)) for word in self.vocabulary]

    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        return [await self.embed(text) for text in texts]


class ScriptedChatBackend:
    """Chat backend that records prompts and returns a canned reply."""

    def __init__(self, reply: str = "Scripted answer.", available: bool = True) -> None:
        self.model = "test-model"
        self.base_url = "http://chat.test"
        self.reply = reply
        self.available = available
        self.calls: list[list[dict[str, str]]] = []

    async def chat(self, messages: list[dict[str, str]], **options: Any) -> str:
        self.calls.append(messages)
        return self.reply

    async def health_check(self) -> bool:
        return self.available

    def model_info(self) -> dict[str, str]:
        return {"baseUrl": self.base_url, "model": self.model}


def make_chunk(
    chunk_id: str,
    content: str,
    title: str = "Doc",
    category: str = "general",
    url: str | None = None,
) -> KnowledgeChunk:
    return KnowledgeChunk(
        id=chunk_id,
        title=title,
        content=content,
        chunk_index=0,
        total_chunks=1,
        category=category,
        content_hash=f"hash-{chunk_id}",
        url=url,
    )


@pytest.fixture
def embedder() -> KeywordEmbedder:
    return KeywordEmbedder()


@pytest.fixture
def chat_backend() -> ScriptedChatBackend:
    return ScriptedChatBackend()


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "vector_store.json"


@pytest.fixture
def store(embedder: KeywordEmbedder, store_path: Path) -> VectorStore:
    return VectorStore(embedder, store_path=store_path)


@pytest.fixture
def settings(store_path: Path) -> EngineSettings:
    """Settings pointing at a temp store, without the seed knowledge base."""
    return EngineSettings(store_path=str(store_path), seed_knowledge_base=False)
