"""Ingestion endpoints: URLs, sitemaps and raw documents."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from ragkit_engine.knowledge.errors import IndexingInProgressError, ScrapeError
from ragkit_engine.knowledge.indexing import BatchResult
from ragkit_engine.knowledge.schema import SourceDocument
from ragkit_engine.models.requests import (
    BulkIndexRequest,
    IndexDocumentsRequest,
    IndexUrlRequest,
    SitemapIndexRequest,
)
from ragkit_engine.models.responses import (
    BatchData,
    BatchIndexResponse,
    IndexStatusData,
    IndexStatusResponse,
    IndexUrlData,
    IndexUrlResponse,
)
from ragkit_engine.services import EngineServices, get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/index")


def _conflict(e: IndexingInProgressError) -> HTTPException:
    return HTTPException(status_code=409, detail=str(e))


def _batch_response(result: BatchResult) -> BatchIndexResponse:
    return BatchIndexResponse(success=True, data=BatchData.model_validate(result.to_dict()))


@router.post("/url", response_model=IndexUrlResponse)
async def index_url(req: IndexUrlRequest, services: EngineServices = Depends(get_services)) -> IndexUrlResponse:
    """Scrape and index a single page."""
    try:
        result = await services.indexing.index_url(req.url)
    except IndexingInProgressError as e:
        raise _conflict(e) from e

    data = IndexUrlData(url=req.url, chunks=result.chunks, errors=result.errors)
    if not result.success:
        return IndexUrlResponse(success=False, data=data, error="; ".join(result.errors))
    return IndexUrlResponse(success=True, data=data)


@router.post("/bulk", response_model=BatchIndexResponse)
async def index_bulk(req: BulkIndexRequest, services: EngineServices = Depends(get_services)) -> BatchIndexResponse:
    """Scrape and index several pages as one batch."""
    try:
        result = await services.indexing.index_urls(req.urls)
    except IndexingInProgressError as e:
        raise _conflict(e) from e
    return _batch_response(result)


@router.post("/sitemap", response_model=BatchIndexResponse)
async def index_sitemap(
    req: SitemapIndexRequest,
    services: EngineServices = Depends(get_services),
) -> BatchIndexResponse:
    """Index every page listed in a sitemap."""
    try:
        result = await services.indexing.index_sitemap(req.sitemap_url)
    except IndexingInProgressError as e:
        raise _conflict(e) from e
    except ScrapeError as e:
        logger.error("Sitemap indexing failed: %s", e)
        return BatchIndexResponse(success=False, error=str(e))
    return _batch_response(result)


@router.post("/documents", response_model=BatchIndexResponse)
async def index_documents(
    req: IndexDocumentsRequest,
    services: EngineServices = Depends(get_services),
) -> BatchIndexResponse:
    """Index caller-supplied documents without scraping."""
    documents = [
        SourceDocument(
            title=d.title,
            content=d.content,
            url=d.url,
            description=d.description,
            source_key=d.source_key,
            category=d.category,
        )
        for d in req.documents
    ]
    try:
        result = await services.indexing.index_documents(documents)
    except IndexingInProgressError as e:
        raise _conflict(e) from e
    return _batch_response(result)


@router.get("/status", response_model=IndexStatusResponse)
async def index_status(services: EngineServices = Depends(get_services)) -> IndexStatusResponse:
    """Progress of the current or last batch, plus store statistics."""
    return IndexStatusResponse(
        success=True,
        data=IndexStatusData(
            progress=services.indexing.get_progress(),
            stats=services.indexing.get_stats(),
        ),
    )
