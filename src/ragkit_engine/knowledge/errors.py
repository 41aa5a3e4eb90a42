"""Exceptions raised by the knowledge base."""

from __future__ import annotations


class KnowledgeError(RuntimeError):
    """Base class for knowledge base failures."""


class DimensionMismatchError(KnowledgeError, ValueError):
    """Two vectors of different lengths were compared."""


class StoreLoadError(KnowledgeError):
    """A snapshot exists but could not be read or parsed."""


class StorePersistError(KnowledgeError):
    """A snapshot could not be written."""


class IndexingInProgressError(KnowledgeError):
    """An ingestion batch was requested while another one is running."""


class ScrapeError(KnowledgeError):
    """A content source could not be fetched after all retries."""
