"""Question answering, semantic search and embedding endpoints."""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends

from ragkit_engine.models.requests import ChatRequest, EmbedRequest, SearchRequest
from ragkit_engine.models.responses import (
    ChatData,
    ChatResponse,
    EmbedData,
    EmbedResponse,
    SearchData,
    SearchHit,
    SearchResponse,
)
from ragkit_engine.services import EngineServices, get_services

logger = logging.getLogger(__name__)

router = APIRouter()


def _error_message(e: Exception) -> str:
    # TimeoutError carries no message
    return str(e) or type(e).__name__


@router.post("/chat", response_model=ChatResponse)
async def chat(req: ChatRequest, services: EngineServices = Depends(get_services)) -> ChatResponse:
    """Answer a question through the RAG pipeline."""
    logger.info("Chat query: %s", req.message)
    try:
        result = await services.pipeline.query(
            req.message,
            top_k=req.top_k,
            include_thinking=req.include_thinking,
        )
    except Exception as e:
        logger.exception("Chat query failed")
        return ChatResponse(success=False, error=_error_message(e))

    return ChatResponse(success=True, data=ChatData.model_validate(result.to_dict()))


@router.post("/search", response_model=SearchResponse)
async def search(req: SearchRequest, services: EngineServices = Depends(get_services)) -> SearchResponse:
    """Semantic search over the indexed chunks, no generation."""
    top_k = req.top_k or services.settings.search_top_k
    try:
        results = await services.pipeline.search(req.query, top_k)
    except Exception as e:
        logger.exception("Search failed")
        return SearchResponse(success=False, error=_error_message(e))

    hits = [
        SearchHit(
            id=r.chunk.id,
            title=r.chunk.title,
            content=r.chunk.content,
            category=r.chunk.category,
            score=r.score,
        )
        for r in results
    ]
    return SearchResponse(
        success=True,
        data=SearchData(query=req.query, results=hits, total_results=len(hits)),
    )


@router.post("/embed", response_model=EmbedResponse)
async def embed(req: EmbedRequest, services: EngineServices = Depends(get_services)) -> EmbedResponse:
    """Embed a text, or a list of texts, with the configured model."""
    embedder = services.embedder
    timeout = services.settings.embedding_timeout
    try:
        if isinstance(req.text, str):
            vector = await asyncio.wait_for(embedder.embed(req.text), timeout=timeout)
            data = EmbedData(embeddings=vector, dimension=len(vector), model=embedder.model_name)
        else:
            vectors = await asyncio.wait_for(embedder.embed_batch(req.text), timeout=timeout)
            dimension = len(vectors[0]) if vectors else 0
            data = EmbedData(embeddings=vectors, dimension=dimension, model=embedder.model_name)
    except Exception as e:
        logger.exception("Embedding failed")
        return EmbedResponse(success=False, error=_error_message(e))

    return EmbedResponse(success=True, data=data)
