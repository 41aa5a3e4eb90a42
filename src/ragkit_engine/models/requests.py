"""Pydantic request models for the ragkit engine API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts camelCase keys on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatRequest(CamelModel):
    """Request to answer a question."""
    message: str = Field(..., min_length=1, description="User question or message")
    top_k: int | None = Field(default=None, ge=1, le=50, description="Chunks to retrieve")
    include_thinking: bool = Field(default=False, description="Return the model's reasoning block")


class SearchRequest(CamelModel):
    """Request for semantic search without generation."""
    query: str = Field(..., min_length=1, description="Natural language search query")
    top_k: int | None = Field(default=None, ge=1, le=50, description="Maximum results to return")


class EmbedRequest(CamelModel):
    """Request to embed one text or a list of texts."""
    text: str | list[str] = Field(..., description="Text or texts to embed")

    @field_validator("text")
    @classmethod
    def _not_empty(cls, value: str | list[str]) -> str | list[str]:
        if not value:
            raise ValueError("text must not be empty")
        return value


class IndexUrlRequest(CamelModel):
    """Request to ingest a single URL."""
    url: str = Field(..., min_length=1, description="URL to scrape and index")


class BulkIndexRequest(CamelModel):
    """Request to ingest several URLs as one batch."""
    urls: list[str] = Field(..., min_length=1, description="URLs to scrape and index")


class SitemapIndexRequest(CamelModel):
    """Request to ingest every URL of a sitemap."""
    sitemap_url: str = Field(..., min_length=1, description="URL of a sitemap.xml")


class DocumentInput(CamelModel):
    """A raw document supplied directly by the caller."""
    title: str = Field(..., min_length=1)
    content: str
    url: str | None = None
    description: str = ""
    source_key: str | None = Field(default=None, description="Stable identity key when there is no URL")
    category: str | None = Field(default=None, description="Overrides the rule-based category")


class IndexDocumentsRequest(CamelModel):
    """Request to ingest raw documents as one batch."""
    documents: list[DocumentInput] = Field(..., min_length=1)
