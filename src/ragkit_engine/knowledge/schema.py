"""Data model for the knowledge base and its snapshot file."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


SNAPSHOT_VERSION = "1.0"
CHUNK_ID_SEPARATOR = "-chunk-"


@dataclass
class SourceDocument:
    """A raw document handed to the chunker. Never stored directly."""
    title: str
    content: str
    url: str | None = None
    description: str = ""
    scraped_at: str | None = None
    source_key: str | None = None
    category: str | None = None

    @property
    def identity_key(self) -> str:
        """Stable key the chunk ids are derived from."""
        return self.url or self.source_key or self.title


@dataclass
class KnowledgeChunk:
    """A chunk of a source document, the unit that is embedded and retrieved."""
    id: str
    title: str
    content: str
    chunk_index: int
    total_chunks: int
    category: str
    content_hash: str
    url: str | None = None
    description: str = ""
    scraped_at: str | None = None

    @property
    def source_id(self) -> str:
        """Id of the parent document (the chunk id without its sequence suffix)."""
        return self.id.rsplit(CHUNK_ID_SEPARATOR, 1)[0]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "chunkIndex": self.chunk_index,
            "totalChunks": self.total_chunks,
            "url": self.url,
            "category": self.category,
            "scrapedAt": self.scraped_at,
            "description": self.description,
            "contentHash": self.content_hash,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> KnowledgeChunk:
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            content=data.get("content", ""),
            chunk_index=int(data.get("chunkIndex", 0)),
            total_chunks=int(data.get("totalChunks", 1)),
            category=data.get("category", "general"),
            content_hash=data.get("contentHash", ""),
            url=data.get("url"),
            description=data.get("description") or "",
            scraped_at=data.get("scrapedAt"),
        )


@dataclass
class SearchResult:
    """A retrieved chunk with its cosine similarity to the query."""
    chunk: KnowledgeChunk
    score: float
