"""Persistent vector store with linear cosine-similarity search.

Chunks and their embeddings are held in two index-aligned lists and
persisted as a single JSON snapshot that is rewritten on every mutation.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Sequence

from ragkit_engine.knowledge.embeddings import EmbeddingGateway, cosine_similarity
from ragkit_engine.knowledge.errors import DimensionMismatchError, StoreLoadError, StorePersistError
from ragkit_engine.knowledge.schema import SNAPSHOT_VERSION, KnowledgeChunk, SearchResult

logger = logging.getLogger(__name__)

DEFAULT_STORE_PATH = Path("data") / "vector_store.json"


class VectorStore:
    """Owns the chunk/embedding arrays and the snapshot file."""

    def __init__(
        self,
        embedder: EmbeddingGateway,
        store_path: Path | str = DEFAULT_STORE_PATH,
        embed_timeout: float | None = 60.0,
    ) -> None:
        self._embedder = embedder
        self.store_path = Path(store_path)
        self._embed_timeout = embed_timeout
        self._chunks: list[KnowledgeChunk] = []
        self._embeddings: list[list[float]] = []
        self.is_indexed = False
        self._initialized = False
        self._write_lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._chunks)

    @property
    def embedding_count(self) -> int:
        return len(self._embeddings)

    @property
    def embedding_dimension(self) -> int:
        return len(self._embeddings[0]) if self._embeddings else 0

    async def initialize(self) -> None:
        """Load the snapshot once. A missing snapshot means an empty store."""
        if self._initialized:
            return
        await self.load()
        self._initialized = True

    async def _embed(self, text: str) -> list[float]:
        if self._embed_timeout:
            return await asyncio.wait_for(self._embedder.embed(text), timeout=self._embed_timeout)
        return await self._embedder.embed(text)

    async def index_documents(self, chunks: Sequence[KnowledgeChunk]) -> int:
        """Embed and append chunks whose id is not stored yet, then persist.

        Returns the number of newly indexed chunks. A failure part-way
        through leaves the chunks embedded so far in memory, unsaved.
        """
        await self.initialize()

        async with self._write_lock:
            known_ids = {c.id for c in self._chunks}
            new_chunks: list[KnowledgeChunk] = []
            for chunk in chunks:
                if chunk.id not in known_ids:
                    known_ids.add(chunk.id)
                    new_chunks.append(chunk)

            if not new_chunks:
                logger.info("All %d documents already indexed, skipping", len(chunks))
                return 0

            logger.info(
                "Indexing %d new documents (%d already indexed)",
                len(new_chunks), len(chunks) - len(new_chunks),
            )
            for position, chunk in enumerate(new_chunks, start=1):
                # Title is prepended for richer semantics.
                embedding = await self._embed(f"{chunk.title}. {chunk.content}")
                if self._embeddings and len(embedding) != self.embedding_dimension:
                    raise DimensionMismatchError(
                        f"Embedding dimension {len(embedding)} does not match "
                        f"store dimension {self.embedding_dimension}"
                    )
                self._chunks.append(chunk)
                self._embeddings.append(embedding)
                logger.debug("Indexed: %s (%d/%d)", chunk.title, position, len(new_chunks))

            self.is_indexed = True
            await self.save()

        logger.info("Indexing complete, %d new documents indexed", len(new_chunks))
        return len(new_chunks)

    async def search(self, query: str, top_k: int = 3) -> list[SearchResult]:
        """Return the ``top_k`` most similar chunks, best first.

        Equal scores keep their storage order.
        """
        await self.initialize()

        if not query.strip() or top_k < 1:
            return []
        if not self._chunks:
            logger.warning("Vector store is empty, index some documents first")
            return []

        query_embedding = await self._embed(query)
        scored = [
            (index, cosine_similarity(query_embedding, embedding))
            for index, embedding in enumerate(self._embeddings)
        ]
        scored.sort(key=lambda item: item[1], reverse=True)

        return [
            SearchResult(chunk=self._chunks[index], score=score)
            for index, score in scored[:top_k]
        ]

    async def remove_document(self, chunk_id: str) -> bool:
        """Remove a chunk and its embedding. Returns False if the id is unknown."""
        await self.initialize()

        async with self._write_lock:
            for index, chunk in enumerate(self._chunks):
                if chunk.id == chunk_id:
                    del self._chunks[index]
                    del self._embeddings[index]
                    break
            else:
                return False

            await self.save()
        return True

    async def clear(self) -> None:
        """Remove every chunk and persist the empty store."""
        await self.initialize()

        async with self._write_lock:
            self._chunks = []
            self._embeddings = []
            self.is_indexed = False
            await self.save()
        logger.info("Cleared all documents from vector store")

    def get_all_documents(self) -> list[KnowledgeChunk]:
        return list(self._chunks)

    def get_stats(self) -> dict[str, Any]:
        return {
            "totalDocuments": len(self._chunks),
            "isIndexed": self.is_indexed,
            "embeddingDimension": self.embedding_dimension,
            "storePath": str(self.store_path),
        }

    async def save(self) -> None:
        """Overwrite the snapshot file with the current state."""
        data = {
            "documents": [c.to_dict() for c in self._chunks],
            "embeddings": self._embeddings,
            "isIndexed": self.is_indexed,
            "savedAt": datetime.now(timezone.utc).isoformat(),
            "version": SNAPSHOT_VERSION,
        }
        tmp_path = self.store_path.with_name(self.store_path.name + ".tmp")
        try:
            self.store_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(data), encoding="utf-8")
            os.replace(tmp_path, self.store_path)
        except OSError as e:
            logger.error("Failed to save vector store: %s", e)
            raise StorePersistError(f"Failed to save vector store to {self.store_path}: {e}") from e

        logger.debug("Vector store saved to %s", self.store_path)

    async def load(self) -> bool:
        """Replace the in-memory state with the snapshot.

        Returns False when no snapshot exists. Any other failure raises
        StoreLoadError and leaves the current state untouched.
        """
        try:
            raw = self.store_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info("No existing vector store at %s, starting fresh", self.store_path)
            return False
        except OSError as e:
            raise StoreLoadError(f"Failed to read vector store {self.store_path}: {e}") from e

        try:
            data = json.loads(raw)
            chunks = [KnowledgeChunk.from_dict(d) for d in data.get("documents", [])]
            embeddings = [[float(x) for x in e] for e in data.get("embeddings", [])]
            is_indexed = bool(data.get("isIndexed", False))
        except (json.JSONDecodeError, AttributeError, KeyError, TypeError, ValueError) as e:
            raise StoreLoadError(f"Failed to parse vector store {self.store_path}: {e}") from e

        if len(chunks) != len(embeddings):
            raise StoreLoadError(
                f"Vector store {self.store_path} is inconsistent: "
                f"{len(chunks)} documents, {len(embeddings)} embeddings"
            )

        self._chunks = chunks
        self._embeddings = embeddings
        self.is_indexed = is_indexed
        logger.info(
            "Loaded %d documents from %s (last saved: %s)",
            len(chunks), self.store_path, data.get("savedAt"),
        )
        return True
