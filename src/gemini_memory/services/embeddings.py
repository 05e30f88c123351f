"""Embedding generation backed by the gateway and the embedding cache."""

import logging
from typing import List, Optional

from .cache import EmbeddingCache

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODEL = "models/gemini-embedding-001"
TASK_DOCUMENT = "RETRIEVAL_DOCUMENT"
TASK_QUERY = "RETRIEVAL_QUERY"


class Embedder:
    """Produces embedding vectors, returning None when no signal is available."""

    def __init__(
        self,
        gateway,
        cache: Optional[EmbeddingCache] = None,
        model_name: str = DEFAULT_EMBEDDING_MODEL,
    ):
        self.gateway = gateway
        self.cache = cache if cache is not None else EmbeddingCache()
        self.model_name = model_name

    async def embed(self, text: str, task_type: str = TASK_DOCUMENT) -> Optional[List[float]]:
        if not isinstance(text, str) or not text.strip():
            return None

        cached = self.cache.get(text, task_type)
        if cached is not None:
            return cached

        try:
            vector = await self.gateway.embed_content(self.model_name, text, task_type)
        except Exception as e:
            logger.warning(f"Embedding generation failed: {e}")
            return None

        if not vector:
            return None

        self.cache.put(text, task_type, vector)
        return vector
