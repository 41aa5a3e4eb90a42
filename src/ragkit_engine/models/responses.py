"""Pydantic response models for the ragkit engine API."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from ragkit_engine.models.requests import CamelModel


class HealthResponse(CamelModel):
    """Health check response."""
    status: str = "healthy"
    version: str
    timestamp: str
    services: dict[str, Any] = Field(default_factory=dict)


class SourceReference(CamelModel):
    """A chunk an answer was grounded on."""
    id: str
    title: str
    category: str
    url: str | None = None
    relevance_score: float


class AnswerMetadata(CamelModel):
    generation_method: str
    documents_retrieved: int
    model: str
    query_type: str


class ChatData(CamelModel):
    answer: str
    thinking: str | None = None
    sources: list[SourceReference] = Field(default_factory=list)
    metadata: AnswerMetadata


class ChatResponse(CamelModel):
    """Response from the chat endpoint."""
    success: bool
    data: ChatData | None = None
    error: str | None = None


class SearchHit(CamelModel):
    id: str
    title: str
    content: str
    category: str
    score: float


class SearchData(CamelModel):
    query: str
    results: list[SearchHit] = Field(default_factory=list)
    total_results: int = 0


class SearchResponse(CamelModel):
    """Response from semantic search."""
    success: bool
    data: SearchData | None = None
    error: str | None = None


class EmbedData(CamelModel):
    embeddings: list[float] | list[list[float]]
    dimension: int
    model: str


class EmbedResponse(CamelModel):
    """Response from the embed endpoint."""
    success: bool
    data: EmbedData | None = None
    error: str | None = None


class DocumentsData(CamelModel):
    documents: list[dict[str, Any]] = Field(default_factory=list)
    stats: dict[str, Any] = Field(default_factory=dict)


class DocumentsResponse(CamelModel):
    """Listing of the indexed chunks."""
    success: bool
    data: DocumentsData | None = None
    error: str | None = None


class DeleteResponse(CamelModel):
    success: bool
    message: str | None = None


class IndexUrlData(CamelModel):
    url: str
    chunks: int = 0
    errors: list[str] = Field(default_factory=list)


class IndexUrlResponse(CamelModel):
    """Response from single-URL ingestion."""
    success: bool
    data: IndexUrlData | None = None
    error: str | None = None


class BatchData(CamelModel):
    successful: int = 0
    failed: int = 0
    total_chunks: int = 0
    errors: list[dict[str, Any]] = Field(default_factory=list)


class BatchIndexResponse(CamelModel):
    """Response from a batch ingestion."""
    success: bool
    data: BatchData | None = None
    error: str | None = None


class IndexStatusData(CamelModel):
    progress: dict[str, Any] = Field(default_factory=dict)
    stats: dict[str, Any] = Field(default_factory=dict)


class IndexStatusResponse(CamelModel):
    """Progress of the current or last ingestion batch."""
    success: bool
    data: IndexStatusData
