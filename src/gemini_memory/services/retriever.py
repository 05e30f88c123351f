"""Similarity search over indexed memory entries."""

import logging
import math
from typing import List, Tuple

from ..models.memory import MemoryEntry
from ..models.turns import ConversationTurn
from .embeddings import TASK_QUERY, Embedder
from .similarity import cosine_similarity
from .store import MemoryStore

logger = logging.getLogger(__name__)

DEFAULT_RELEVANCE_FLOOR = 0.7


class ContextRetriever:
    """Finds stored turn batches relevant to a live query."""

    def __init__(
        self,
        embedder: Embedder,
        store: MemoryStore,
        relevance_floor: float = DEFAULT_RELEVANCE_FLOOR,
    ):
        self.embedder = embedder
        self.store = store
        self.relevance_floor = relevance_floor

    async def score_entries(self, history_id: str, query: str) -> List[Tuple[float, MemoryEntry]]:
        """Score every stored entry against ``query``, best first."""
        query_embedding = await self.embedder.embed(query, TASK_QUERY)
        if not query_embedding:
            return []

        entries = await self.store.get_memory_entries(history_id)
        scored = []
        for entry in entries:
            if not entry.embedding:
                continue
            score = cosine_similarity(query_embedding, entry.embedding)
            if math.isnan(score):
                continue
            scored.append((score, entry))

        scored.sort(key=lambda pair: pair[0], reverse=True)
        return scored

    async def retrieve(self, history_id: str, query: str, top_k: int = 3) -> List[ConversationTurn]:
        """Turns from the ``top_k`` entries scoring above the relevance floor.

        Each entry keeps its internal order; the result is not re-sorted by
        timestamp.
        """
        if not query or not query.strip():
            return []

        try:
            scored = await self.score_entries(history_id, query)
        except Exception as e:
            logger.error(f"Context retrieval failed for {history_id}: {e}")
            return []

        relevant = [entry for score, entry in scored if score > self.relevance_floor][:top_k]
        if relevant:
            logger.debug(f"Retrieved {len(relevant)} relevant memory entries for {history_id}")
        return [turn for entry in relevant for turn in entry.messages]
