"""Service description and health check endpoints."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends

from ragkit_engine import __version__
from ragkit_engine.models.responses import HealthResponse
from ragkit_engine.services import EngineServices, get_services

router = APIRouter()
root_router = APIRouter()

ENDPOINTS = {
    "health": "GET /api/health",
    "chat": "POST /api/chat",
    "search": "POST /api/search",
    "embed": "POST /api/embed",
    "documents": "GET /api/documents",
    "deleteDocument": "DELETE /api/documents/{id}",
    "indexUrl": "POST /api/index/url",
    "indexBulk": "POST /api/index/bulk",
    "indexSitemap": "POST /api/index/sitemap",
    "indexDocuments": "POST /api/index/documents",
    "indexStatus": "GET /api/index/status",
}


@root_router.get("/")
async def describe() -> dict[str, Any]:
    """Describe the service and list its endpoints."""
    return {
        "name": "ragkit-engine",
        "version": __version__,
        "description": "Retrieval-augmented generation backend",
        "endpoints": ENDPOINTS,
    }


@router.get("/health", response_model=HealthResponse)
async def health_check(services: EngineServices = Depends(get_services)) -> HealthResponse:
    """Report chat backend availability and vector store state."""
    available = await services.pipeline.backend_available()
    return HealthResponse(
        status="healthy",
        version=__version__,
        timestamp=datetime.now(timezone.utc).isoformat(),
        services={
            "vectorStore": services.indexing.get_stats(),
            "chat": {"available": available, **services.backend.model_info()},
            "embedding": {"model": services.embedder.model_name},
        },
    )
