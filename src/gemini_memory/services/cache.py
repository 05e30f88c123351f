"""Caching service for embedding vectors."""

import logging
from collections import OrderedDict
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

KEY_PREFIX_LENGTH = 100


class EmbeddingCache:
    """Bounded FIFO cache of embedding vectors.

    Keys are the first 100 characters of the text plus the task type, so
    two long texts sharing a prefix share a vector. That approximation is
    accepted in exchange for cheap keys.
    """

    def __init__(self, max_size: int = 1000):
        self.max_size = max_size
        self.cache: "OrderedDict[str, List[float]]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def create_key(text: str, task_type: str) -> str:
        return text[:KEY_PREFIX_LENGTH] + task_type

    def get(self, text: str, task_type: str) -> Optional[List[float]]:
        """Get a cached vector; lookups do not refresh insertion order."""
        vector = self.cache.get(self.create_key(text, task_type))
        if vector is None:
            self.misses += 1
            return None
        self.hits += 1
        return vector

    def put(self, text: str, task_type: str, vector: List[float]) -> None:
        self.cache[self.create_key(text, task_type)] = vector
        while len(self.cache) > self.max_size:
            self.cache.popitem(last=False)

    def __len__(self) -> int:
        return len(self.cache)

    def clear(self) -> None:
        """Clear all cache entries."""
        self.cache.clear()
        self.hits = 0
        self.misses = 0

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        total_requests = self.hits + self.misses
        return {
            "size": len(self.cache),
            "max_size": self.max_size,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hits / total_requests if total_requests > 0 else 0,
        }
