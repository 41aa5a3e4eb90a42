"""Embedding gateway and vector similarity.

The default gateway runs a sentence-transformers model in process.
Any object satisfying ``EmbeddingGateway`` can replace it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol, Sequence

import numpy as np

from ragkit_engine.knowledge.errors import DimensionMismatchError

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODEL = "all-MiniLM-L6-v2"


class EmbeddingGateway(Protocol):
    """Converts text to a fixed-dimension vector."""

    model_name: str

    async def embed(self, text: str) -> list[float]: ...

    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]: ...


class SentenceTransformerEmbedder:
    """Mean-pooled, normalized sentence-transformers embeddings."""

    def __init__(self, model_name: str = DEFAULT_EMBEDDING_MODEL, device: str | None = None) -> None:
        self.model_name = model_name
        self._device = device
        self._model: Any = None

    def _get_model(self) -> Any:
        """Lazy-load the model on first use."""
        if self._model is not None:
            return self._model

        from sentence_transformers import SentenceTransformer

        logger.info("Loading embedding model: %s", self.model_name)
        self._model = SentenceTransformer(self.model_name, device=self._device)
        logger.info("Embedding model loaded")
        return self._model

    def _encode(self, text: str) -> list[float]:
        vector = self._get_model().encode(text, normalize_embeddings=True)
        return [float(x) for x in vector]

    async def embed(self, text: str) -> list[float]:
        # encode() blocks, run it in the default executor.
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._encode, text)

    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        return [await self.embed(text) for text in texts]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two equal-length vectors, 0.0 if either has zero norm."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise DimensionMismatchError(
            f"Vectors must have the same dimension ({va.size} != {vb.size})"
        )

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(va, vb) / (norm_a * norm_b))
