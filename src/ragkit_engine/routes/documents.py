"""Indexed chunk listing and removal."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from ragkit_engine.models.responses import DeleteResponse, DocumentsData, DocumentsResponse
from ragkit_engine.services import EngineServices, get_services

router = APIRouter(prefix="/documents")


@router.get("", response_model=DocumentsResponse)
async def list_documents(services: EngineServices = Depends(get_services)) -> DocumentsResponse:
    """List every indexed chunk with store statistics."""
    await services.store.initialize()
    return DocumentsResponse(
        success=True,
        data=DocumentsData(
            documents=[c.to_dict() for c in services.store.get_all_documents()],
            stats=services.indexing.get_stats(),
        ),
    )


@router.delete("/{chunk_id}", response_model=DeleteResponse)
async def delete_document(chunk_id: str, services: EngineServices = Depends(get_services)) -> DeleteResponse:
    """Remove one chunk and its embedding."""
    if not await services.store.remove_document(chunk_id):
        raise HTTPException(status_code=404, detail=f"Document {chunk_id} not found")
    return DeleteResponse(success=True, message=f"Document {chunk_id} removed")
