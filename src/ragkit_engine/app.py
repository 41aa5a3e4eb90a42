"""FastAPI application factory for ragkit-engine."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from ragkit_engine import __version__
from ragkit_engine.config import EngineSettings, load_settings, validate_settings
from ragkit_engine.knowledge.seed import load_seed_documents
from ragkit_engine.routes import chat, documents, health, indexing
from ragkit_engine.services import EngineServices, build_services

logger = logging.getLogger(__name__)

API_PREFIX = "/api"


async def seed_knowledge_base(services: EngineServices) -> None:
    """Index the bundled sample documents. Already stored chunks are skipped."""
    seed = load_seed_documents()
    result = await services.indexing.index_documents(seed)
    logger.info(
        "Seed knowledge base: %d/%d documents, %d chunks",
        result.successful, len(seed), result.total_chunks,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    services: EngineServices = app.state.services

    await services.store.initialize()
    if services.settings.seed_knowledge_base:
        await seed_knowledge_base(services)

    info = services.backend.model_info()
    if await services.pipeline.backend_available():
        logger.info("Chat backend ready: %s at %s", info["model"], info["baseUrl"])
    else:
        logger.warning(
            "Chat backend %s at %s is unavailable, answers will fall back to excerpts",
            info["model"], info["baseUrl"],
        )
    yield


def create_app(
    settings: EngineSettings | None = None,
    services: EngineServices | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Without arguments, settings come from ``load_settings()`` (defaults,
    ``RAGKIT_SETTINGS_FILE``, ``RAGKIT_*`` environment variables).
    """
    if services is not None:
        settings = services.settings
    elif settings is None:
        settings = load_settings()

    problems = validate_settings(settings)
    if problems:
        raise ValueError("Invalid settings: " + "; ".join(problems))

    if services is None:
        services = build_services(settings)

    app = FastAPI(
        title="ragkit-engine",
        version=__version__,
        description="Retrieval-augmented generation backend: ingestion, vector search and grounded chat",
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register route modules
    app.include_router(health.root_router)
    app.include_router(health.router, prefix=API_PREFIX)
    app.include_router(chat.router, prefix=API_PREFIX)
    app.include_router(documents.router, prefix=API_PREFIX)
    app.include_router(indexing.router, prefix=API_PREFIX)

    return app
