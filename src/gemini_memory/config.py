"""
Configuration for the memory core, read from the environment.
"""

import os
import tempfile
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")


def _api_keys_from_env() -> List[str]:
    raw = os.getenv("GEMINI_API_KEYS") or os.getenv("GEMINI_API_KEY") or ""
    return [k.strip() for k in raw.split(",") if k.strip()]


@dataclass
class MemoryConfig:
    """Settings for the gateway, indexer, retriever and optimizer."""

    api_keys: List[str] = field(default_factory=list)
    model_name: str = "gemini-2.5-flash"
    embedding_model: str = "models/gemini-embedding-001"
    retry_backoff_seconds: float = 2.0
    max_full_messages: int = 10
    compression_threshold: int = 60
    index_batch_size: int = 50
    relevance_floor: float = 0.7
    inline_context_limit: int = 1000
    embedding_cache_size: int = 1000
    store_dir: str = "./data"
    temp_dir: str = field(default_factory=tempfile.gettempdir)
    usage_report_seconds: float = 1800.0

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "MemoryConfig":
        load_dotenv(dotenv_path)
        return cls(
            api_keys=_api_keys_from_env(),
            model_name=os.getenv("GEMINI_MODEL_PRIMARY", cls.model_name),
            embedding_model=os.getenv("GEMINI_EMBEDDING_MODEL", cls.embedding_model),
            retry_backoff_seconds=_float_env("GEMINI_RETRY_BACKOFF_MS", 2000) / 1000,
            max_full_messages=_int_env("MEMORY_MAX_FULL_MESSAGES", cls.max_full_messages),
            compression_threshold=_int_env(
                "MEMORY_COMPRESSION_THRESHOLD", cls.compression_threshold
            ),
            index_batch_size=_int_env("MEMORY_INDEX_BATCH_SIZE", cls.index_batch_size),
            relevance_floor=_float_env("MEMORY_RELEVANCE_FLOOR", cls.relevance_floor),
            inline_context_limit=_int_env(
                "MEMORY_INLINE_CONTEXT_LIMIT", cls.inline_context_limit
            ),
            embedding_cache_size=_int_env(
                "MEMORY_EMBEDDING_CACHE_SIZE", cls.embedding_cache_size
            ),
            store_dir=os.getenv("MEMORY_STORE_DIR", cls.store_dir),
            temp_dir=os.getenv("MEMORY_TEMP_DIR") or tempfile.gettempdir(),
            usage_report_seconds=_float_env(
                "MEMORY_USAGE_REPORT_SECONDS", cls.usage_report_seconds
            ),
        )
