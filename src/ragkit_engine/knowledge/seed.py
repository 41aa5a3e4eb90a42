"""Bundled sample knowledge base."""

from __future__ import annotations

from pathlib import Path

import yaml

from ragkit_engine.knowledge.schema import SourceDocument

SEED_PATH = Path(__file__).parent / "data" / "knowledge_base.yaml"
SEED_KEY_PREFIX = "kb:"


def load_seed_documents(path: Path = SEED_PATH) -> list[SourceDocument]:
    """Read the seed YAML into SourceDocuments keyed ``kb:<id>``."""
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}

    documents = []
    for entry in data.get("documents", []):
        documents.append(SourceDocument(
            title=entry["title"],
            content=entry["content"],
            source_key=f"{SEED_KEY_PREFIX}{entry['id']}",
            category=entry.get("category"),
            description=entry.get("description", ""),
        ))
    return documents
