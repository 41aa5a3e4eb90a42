"""Engine component wiring.

Every component is created once per application and handed to the
routes through ``get_services``; nothing is looked up globally.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from ragkit_engine.agent.llm import ChatBackend, create_chat_backend
from ragkit_engine.agent.rag import RagPipeline
from ragkit_engine.config import EngineSettings
from ragkit_engine.knowledge.embeddings import EmbeddingGateway, SentenceTransformerEmbedder
from ragkit_engine.knowledge.indexing import ContentSource, IndexingService
from ragkit_engine.knowledge.scraper import WebScraper
from ragkit_engine.knowledge.store import VectorStore


@dataclass
class EngineServices:
    settings: EngineSettings
    embedder: EmbeddingGateway
    store: VectorStore
    backend: ChatBackend
    indexing: IndexingService
    pipeline: RagPipeline


def build_services(
    settings: EngineSettings,
    embedder: EmbeddingGateway | None = None,
    backend: ChatBackend | None = None,
    source: ContentSource | None = None,
) -> EngineServices:
    """Construct the component graph from settings.

    Collaborators passed in explicitly replace the ones the settings
    would select.
    """
    if embedder is None:
        embedder = SentenceTransformerEmbedder(settings.embedding_model)
    if backend is None:
        backend = create_chat_backend(settings)
    if source is None:
        source = WebScraper(
            user_agent=settings.scraper_user_agent,
            rate_limit=settings.scraper_rate_limit,
            max_retries=settings.scraper_max_retries,
            timeout=settings.scraper_timeout,
        )

    store = VectorStore(
        embedder,
        store_path=settings.store_path,
        embed_timeout=settings.embedding_timeout,
    )
    indexing = IndexingService(
        store,
        source=source,
        chunk_size=settings.chunk_size,
        chunk_overlap=settings.chunk_overlap,
        min_content_length=settings.min_content_length,
    )
    pipeline = RagPipeline(
        store,
        backend,
        default_top_k=settings.default_top_k,
        relevance_threshold=settings.relevance_threshold,
        chat_timeout=settings.chat_timeout,
    )
    return EngineServices(
        settings=settings,
        embedder=embedder,
        store=store,
        backend=backend,
        indexing=indexing,
        pipeline=pipeline,
    )


def get_services(request: Request) -> EngineServices:
    """FastAPI dependency returning the application's services."""
    return request.app.state.services
