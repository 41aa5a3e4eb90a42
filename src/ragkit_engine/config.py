"""ragkit-engine configuration management.

Settings are resolved from three layers, lowest precedence first:
built-in defaults, an optional JSON settings file, and ``RAGKIT_*``
environment variables.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping

logger = logging.getLogger(__name__)

ENV_PREFIX = "RAGKIT_"
SETTINGS_FILE_ENV = "RAGKIT_SETTINGS_FILE"

CHAT_PROVIDERS = ("ollama", "openai")

DEFAULT_SETTINGS: dict[str, Any] = {
    "chunk_size": 800,
    "chunk_overlap": 200,
    "min_content_length": 50,
    "store_path": "data/vector_store.json",
    "embedding_model": "all-MiniLM-L6-v2",
    "embedding_timeout": 60.0,
    "chat_provider": "ollama",
    "chat_base_url": "http://localhost:11434",
    "chat_model": "deepseek-r1:8b",
    "chat_api_key": None,
    "chat_timeout": 120.0,
    "temperature": 0.7,
    "top_p": 0.9,
    "default_top_k": 3,
    "search_top_k": 5,
    "relevance_threshold": 0.3,
    "scraper_user_agent": "Mozilla/5.0 (compatible; ragkit-engine/1.0)",
    "scraper_rate_limit": 2.0,
    "scraper_max_retries": 3,
    "scraper_timeout": 15.0,
    "seed_knowledge_base": True,
    "cors_origins": ["*"],
}


@dataclass
class EngineSettings:
    """Resolved engine settings."""

    chunk_size: int = 800
    chunk_overlap: int = 200
    min_content_length: int = 50
    store_path: str = "data/vector_store.json"
    embedding_model: str = "all-MiniLM-L6-v2"
    embedding_timeout: float = 60.0
    chat_provider: str = "ollama"
    chat_base_url: str = "http://localhost:11434"
    chat_model: str = "deepseek-r1:8b"
    chat_api_key: str | None = None
    chat_timeout: float = 120.0
    temperature: float = 0.7
    top_p: float = 0.9
    default_top_k: int = 3
    search_top_k: int = 5
    relevance_threshold: float = 0.3
    scraper_user_agent: str = "Mozilla/5.0 (compatible; ragkit-engine/1.0)"
    scraper_rate_limit: float = 2.0
    scraper_max_retries: int = 3
    scraper_timeout: float = 15.0
    seed_knowledge_base: bool = True
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def load_json_file(path: Path) -> dict[str, Any]:
    """Load a JSON file, returning empty dict if not found or invalid."""
    if not path.exists():
        return {}
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError):
        logger.warning("Ignoring unreadable settings file %s", path)
        return {}


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge override into base, returning new dict.

    - Dicts are recursively merged
    - Lists are replaced (not appended)
    - Scalars are replaced
    """
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _coerce(raw: str, default: Any) -> Any:
    """Convert an environment string to the type of its default."""
    if isinstance(default, bool):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    if isinstance(default, list):
        return [item.strip() for item in raw.split(",") if item.strip()]
    return raw


def settings_from_env(env: Mapping[str, str]) -> dict[str, Any]:
    """Collect ``RAGKIT_<KEY>`` overrides for every known setting."""
    overrides: dict[str, Any] = {}
    for key, default in DEFAULT_SETTINGS.items():
        raw = env.get(ENV_PREFIX + key.upper())
        if raw is None:
            continue
        try:
            overrides[key] = _coerce(raw, default)
        except ValueError:
            logger.warning("Ignoring invalid value for %s%s: %r", ENV_PREFIX, key.upper(), raw)
    return overrides


def load_settings(
    settings_path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> EngineSettings:
    """Load and merge settings from defaults, a JSON file and the environment.

    Precedence: environment overrides the settings file overrides defaults.
    """
    env = os.environ if env is None else env
    merged = dict(DEFAULT_SETTINGS)

    if settings_path is None and env.get(SETTINGS_FILE_ENV):
        settings_path = Path(env[SETTINGS_FILE_ENV])
    if settings_path is not None:
        file_settings = load_json_file(settings_path)
        if file_settings:
            merged = deep_merge(merged, file_settings)

    merged = deep_merge(merged, settings_from_env(env))

    known = {f.name for f in fields(EngineSettings)}
    return EngineSettings(**{k: v for k, v in merged.items() if k in known})


def validate_settings(settings: EngineSettings) -> list[str]:
    """Validate settings, returning list of error messages (empty if valid)."""
    errors = []

    if not isinstance(settings.chunk_size, int) or settings.chunk_size < 1:
        errors.append("chunk_size must be a positive integer")
    if not isinstance(settings.chunk_overlap, int) or settings.chunk_overlap < 0:
        errors.append("chunk_overlap must be a non-negative integer")
    elif isinstance(settings.chunk_size, int) and settings.chunk_overlap >= settings.chunk_size:
        errors.append("chunk_overlap must be smaller than chunk_size")
    if not isinstance(settings.min_content_length, int) or settings.min_content_length < 0:
        errors.append("min_content_length must be a non-negative integer")

    if not (-1.0 <= settings.relevance_threshold <= 1.0):
        errors.append("relevance_threshold must be between -1.0 and 1.0")
    for name in ("default_top_k", "search_top_k"):
        value = getattr(settings, name)
        if not isinstance(value, int) or value < 1:
            errors.append(f"{name} must be a positive integer")

    for name in ("embedding_timeout", "chat_timeout", "scraper_timeout"):
        if getattr(settings, name) <= 0:
            errors.append(f"{name} must be positive")
    if settings.scraper_max_retries < 1:
        errors.append("scraper_max_retries must be at least 1")

    if settings.chat_provider not in CHAT_PROVIDERS:
        errors.append(f"chat_provider must be one of: {', '.join(CHAT_PROVIDERS)}")

    return errors
