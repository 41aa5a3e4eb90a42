"""Ingestion orchestration: content source → chunker → vector store.

At most one ingestion batch runs at a time. Progress of the running
(or last) batch is kept for status polling, and per-unit failures are
collected into the batch report instead of aborting the batch.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Protocol, Sequence

from ragkit_engine.knowledge.chunker import (
    DEFAULT_CHUNK_OVERLAP,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MIN_CONTENT_LENGTH,
    chunk_document,
    deduplicate_chunks,
)
from ragkit_engine.knowledge.errors import IndexingInProgressError, ScrapeError
from ragkit_engine.knowledge.schema import SourceDocument
from ragkit_engine.knowledge.scraper import WebScraper, parse_sitemap
from ragkit_engine.knowledge.store import VectorStore

logger = logging.getLogger(__name__)

NO_CONTENT_ERROR = "No content extracted"


class ContentSource(Protocol):
    """Fetches raw documents for URL ingestion."""

    async def scrape(self, url: str) -> SourceDocument: ...

    async def fetch_html(self, url: str) -> str: ...


class IndexingStatus(str, Enum):
    """Ingestion batch lifecycle status."""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"


@dataclass
class IndexingProgress:
    """Mutable progress of the current or last batch."""
    status: IndexingStatus = IndexingStatus.IDLE
    total_units: int = 0
    processed_units: int = 0
    total_chunks: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def percentage(self) -> int:
        if self.total_units == 0:
            return 0
        return round(self.processed_units / self.total_units * 100)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "totalUnits": self.total_units,
            "processedUnits": self.processed_units,
            "totalChunks": self.total_chunks,
            "errors": list(self.errors),
            "percentage": self.percentage,
        }


@dataclass
class UnitResult:
    """Outcome of ingesting one source."""
    success: bool
    chunks: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class BatchResult:
    """Aggregate outcome of an ingestion batch."""
    successful: int = 0
    failed: int = 0
    total_chunks: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "successful": self.successful,
            "failed": self.failed,
            "totalChunks": self.total_chunks,
            "errors": self.errors,
        }


IngestionUnit = tuple[str, Callable[[], Awaitable[UnitResult]]]


class IndexingService:
    """Drives ingestion batches into a VectorStore."""

    def __init__(
        self,
        store: VectorStore,
        source: ContentSource | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
        min_content_length: int = DEFAULT_MIN_CONTENT_LENGTH,
    ) -> None:
        self._store = store
        self._source = source if source is not None else WebScraper()
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.min_content_length = min_content_length
        self.progress = IndexingProgress()
        self._batch_lock = asyncio.Lock()
        # Content hashes indexed so far in the running batch.
        self._batch_hashes: set[str] = set()

    @property
    def is_indexing(self) -> bool:
        return self._batch_lock.locked()

    async def _index_document(self, document: SourceDocument) -> UnitResult:
        chunks = chunk_document(
            document,
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
            min_content_length=self.min_content_length,
        )
        if not chunks:
            return UnitResult(success=False, errors=[NO_CONTENT_ERROR])

        unique = deduplicate_chunks(chunks, seen=set(self._batch_hashes))
        if unique:
            await self._store.index_documents(unique)
            self._batch_hashes.update(c.content_hash for c in unique)
        return UnitResult(success=True, chunks=len(unique))

    async def _index_scraped(self, url: str) -> UnitResult:
        document = await self._source.scrape(url)
        return await self._index_document(document)

    async def _run_batch(self, units: Sequence[IngestionUnit]) -> BatchResult:
        # Checked and acquired without an await in between.
        if self._batch_lock.locked():
            raise IndexingInProgressError("Indexing already in progress")

        async with self._batch_lock:
            self.progress = IndexingProgress(
                status=IndexingStatus.RUNNING,
                total_units=len(units),
            )
            self._batch_hashes = set()
            result = BatchResult()
            logger.info("Starting ingestion batch of %d sources", len(units))

            try:
                for source, work in units:
                    try:
                        unit = await work()
                    except Exception as e:
                        logger.error("Failed to index %s: %s", source, e)
                        unit = UnitResult(success=False, errors=[str(e)])

                    if unit.success:
                        result.successful += 1
                        result.total_chunks += unit.chunks
                    else:
                        result.failed += 1
                        result.errors.append({"source": source, "errors": unit.errors})

                    self.progress.processed_units += 1
                    self.progress.total_chunks = result.total_chunks
            finally:
                self.progress.status = IndexingStatus.COMPLETED
                self.progress.errors = list(result.errors)

        logger.info(
            "Ingestion complete: %d/%d successful, %d failed, %d chunks",
            result.successful, len(units), result.failed, result.total_chunks,
        )
        return result

    async def index_documents(self, documents: Sequence[SourceDocument]) -> BatchResult:
        """Ingest raw documents, one unit per document."""
        units: list[IngestionUnit] = [
            (doc.identity_key, lambda doc=doc: self._index_document(doc))
            for doc in documents
        ]
        return await self._run_batch(units)

    async def index_urls(self, urls: Sequence[str]) -> BatchResult:
        """Scrape and ingest each URL as its own unit."""
        units: list[IngestionUnit] = [
            (url, lambda url=url: self._index_scraped(url))
            for url in urls
        ]
        return await self._run_batch(units)

    async def index_url(self, url: str) -> UnitResult:
        """Scrape and ingest a single URL."""
        batch = await self.index_urls([url])
        errors = batch.errors[0]["errors"] if batch.errors else []
        return UnitResult(success=batch.successful == 1, chunks=batch.total_chunks, errors=errors)

    async def index_sitemap(self, sitemap_url: str) -> BatchResult:
        """Ingest every URL listed in a sitemap."""
        logger.info("Fetching sitemap: %s", sitemap_url)
        try:
            xml = await self._source.fetch_html(sitemap_url)
        except Exception as e:
            raise ScrapeError(f"Failed to process sitemap {sitemap_url}: {e}") from e

        urls = parse_sitemap(xml)
        logger.info("Found %d URLs in sitemap", len(urls))
        return await self.index_urls(urls)

    def get_progress(self) -> dict[str, Any]:
        return self.progress.to_dict()

    async def remove_by_url(self, url: str) -> int:
        """Remove every chunk that came from ``url``."""
        targets = [c.id for c in self._store.get_all_documents() if c.url == url]
        removed = 0
        for chunk_id in targets:
            if await self._store.remove_document(chunk_id):
                removed += 1
        logger.info("Removed %d chunks from %s", removed, url)
        return removed

    def get_stats(self) -> dict[str, Any]:
        chunks = self._store.get_all_documents()
        return {
            **self._store.get_stats(),
            "uniqueSources": len({c.url or c.source_id for c in chunks}),
            "byCategory": dict(Counter(c.category for c in chunks)),
            "isIndexing": self.is_indexing,
        }
