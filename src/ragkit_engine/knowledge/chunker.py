"""Sentence-aware sliding-window chunking for the knowledge base.

Splits a source document into overlapping chunks, preferring to end each
chunk on a sentence boundary, and derives stable ids, categories and
content hashes for them.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Iterable, NamedTuple

from ragkit_engine.knowledge.schema import CHUNK_ID_SEPARATOR, KnowledgeChunk, SourceDocument

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 800
DEFAULT_CHUNK_OVERLAP = 200
DEFAULT_MIN_CONTENT_LENGTH = 50

SENTENCE_BOUNDARIES = (". ", "! ", "? ", "\n")
CLASSIFY_CONTENT_PREFIX = 500


class CategoryRule(NamedTuple):
    """Keywords that put a document into a category. Any single hit matches."""
    category: str
    url_keywords: tuple[str, ...] = ()
    title_keywords: tuple[str, ...] = ()
    content_keywords: tuple[str, ...] = ()


# Evaluated in order, first match wins.
CATEGORY_RULES: tuple[CategoryRule, ...] = (
    CategoryRule("documentation", ("/docs", "/documentation"), ("documentation", "guide")),
    CategoryRule("article", ("/blog", "/article", "/post", "/news")),
    CategoryRule("product", ("/product", "/shop"), ("product",), ("price",)),
    CategoryRule("faq", ("/faq",), ("faq", "frequently asked")),
    CategoryRule("support", ("/support", "/help"), ("support", "help")),
)
DEFAULT_CATEGORY = "general"


def classify_content(
    url: str | None,
    title: str,
    content: str,
    rules: Iterable[CategoryRule] = CATEGORY_RULES,
) -> str:
    """Pick a category from URL, title and the start of the content."""
    url_lower = (url or "").lower()
    title_lower = title.lower()
    content_lower = content[:CLASSIFY_CONTENT_PREFIX].lower()

    for rule in rules:
        if (
            any(k in url_lower for k in rule.url_keywords)
            or any(k in title_lower for k in rule.title_keywords)
            or any(k in content_lower for k in rule.content_keywords)
        ):
            return rule.category
    return DEFAULT_CATEGORY


def make_stable_id(key: str) -> str:
    """Generate a deterministic document ID from its identity key."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def compute_content_hash(content: str) -> str:
    """Hash trimmed content for deduplication."""
    return hashlib.sha256(content.strip().encode()).hexdigest()


def window_spans(
    text: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> list[tuple[int, int]]:
    """Compute the (start, end) character spans of each chunk window.

    Non-final windows are shrunk back to the last sentence boundary found
    past the middle of the window. Consecutive spans overlap by exactly
    ``chunk_overlap`` characters.
    """
    if len(text) <= chunk_size:
        return [(0, len(text))]

    spans: list[tuple[int, int]] = []
    start = 0
    while start < len(text):
        end = min(start + chunk_size, len(text))

        if end < len(text):
            window = text[start:end]
            boundary = max(window.rfind(b) for b in SENTENCE_BOUNDARIES)
            # A shrunk window must still advance past the overlap.
            if boundary > chunk_size * 0.5 and boundary + 1 > chunk_overlap:
                end = start + boundary + 1

        spans.append((start, end))
        if end >= len(text):
            break

        next_start = end - chunk_overlap
        if next_start <= start:
            logger.warning(
                "Chunk window stopped advancing at offset %d (overlap %d >= chunk size %d)",
                start, chunk_overlap, chunk_size,
            )
            break
        start = next_start

    return spans


def chunk_text(
    text: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> list[str]:
    """Split text into trimmed, non-empty, overlapping chunks."""
    chunks = []
    for start, end in window_spans(text, chunk_size, chunk_overlap):
        piece = text[start:end].strip()
        if piece:
            chunks.append(piece)
    return chunks


def chunk_document(
    document: SourceDocument,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
    min_content_length: int = DEFAULT_MIN_CONTENT_LENGTH,
) -> list[KnowledgeChunk]:
    """Split a source document into KnowledgeChunk objects.

    Documents shorter than ``min_content_length`` are skipped and yield
    an empty list.
    """
    content = document.content or ""
    if len(content) < min_content_length:
        logger.warning(
            "Content too short for %s (%d chars), skipping",
            document.identity_key, len(content),
        )
        return []

    base_id = make_stable_id(document.identity_key)
    pieces = chunk_text(content, chunk_size, chunk_overlap)
    category = document.category or classify_content(document.url, document.title, content)
    total = len(pieces)

    chunks = []
    for index, piece in enumerate(pieces):
        chunks.append(KnowledgeChunk(
            id=f"{base_id}{CHUNK_ID_SEPARATOR}{index}",
            title=f"{document.title} (Part {index + 1}/{total})",
            content=piece,
            chunk_index=index,
            total_chunks=total,
            category=category,
            content_hash=compute_content_hash(piece),
            url=document.url,
            description=document.description if index == 0 else "",
            scraped_at=document.scraped_at,
        ))

    logger.info("Processed %r into %d chunks", document.title, total)
    return chunks


def deduplicate_chunks(
    chunks: list[KnowledgeChunk],
    seen: set[str] | None = None,
) -> list[KnowledgeChunk]:
    """Drop chunks whose content hash was already seen earlier in the sequence.

    ``seen`` carries hashes from earlier in the same batch and is updated
    in place.
    """
    if seen is None:
        seen = set()
    unique: list[KnowledgeChunk] = []
    for chunk in chunks:
        if chunk.content_hash in seen:
            logger.warning("Skipping duplicate chunk: %s", chunk.title)
            continue
        seen.add(chunk.content_hash)
        unique.append(chunk)

    removed = len(chunks) - len(unique)
    if removed:
        logger.info("Removed %d duplicate chunks", removed)
    return unique
