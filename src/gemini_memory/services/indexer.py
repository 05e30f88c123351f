"""Background indexing of aged conversation turns into the memory store."""

import asyncio
import logging
from typing import Any, Dict, List, Set

from ..models.memory import PREVIEW_LENGTH, MemoryEntry
from ..models.turns import ConversationTurn, extract_text, flatten_history, now_ms
from .embeddings import TASK_DOCUMENT, Embedder
from .store import MemoryStore

logger = logging.getLogger(__name__)

MIN_INDEXABLE_TEXT = 10


class BackgroundIndexer:
    """Embeds batches of older turns once enough new turns have accumulated.

    The per-history cursor lives in process memory only; after a restart
    already-indexed ranges may be embedded again.
    """

    def __init__(
        self,
        embedder: Embedder,
        store: MemoryStore,
        batch_size: int = 50,
        keep_recent: int = 10,
    ):
        self.embedder = embedder
        self.store = store
        self.batch_size = batch_size
        self.keep_recent = keep_recent
        self.last_indexed_count: Dict[str, int] = {}
        self._tasks: Set[asyncio.Task] = set()

    def _old_messages(self, turns: List[ConversationTurn]) -> List[ConversationTurn]:
        if len(turns) <= self.keep_recent:
            return []
        return turns[: len(turns) - self.keep_recent]

    def _batches(self, turns: List[ConversationTurn], start: int) -> List[List[ConversationTurn]]:
        return [turns[i : i + self.batch_size] for i in range(start, len(turns), self.batch_size)]

    def check_and_schedule(self, history_id: str, turns: List[ConversationTurn]) -> int:
        """Schedule indexing when the history grew by a full batch.

        Returns the number of batches scheduled. Never raises.
        """
        try:
            last_indexed = self.last_indexed_count.get(history_id, 0)
            if len(turns) - last_indexed < self.batch_size:
                return 0

            old_messages = self._old_messages(turns)
            if not old_messages:
                return 0

            batches = self._batches(old_messages, last_indexed)
            for batch in batches:
                task = asyncio.create_task(self._index_in_background(history_id, batch))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)

            self.last_indexed_count[history_id] = len(old_messages)
            if batches:
                logger.info(
                    f"Scheduled {len(batches)} indexing batch(es) for {history_id} "
                    f"(cursor now {len(old_messages)})"
                )
            return len(batches)
        except Exception as e:
            logger.error(f"Auto-indexing check failed for {history_id}: {e}")
            return 0

    async def _index_in_background(self, history_id: str, batch: List[ConversationTurn]) -> None:
        try:
            await self.index_batch(history_id, batch)
        except Exception as e:
            logger.error(f"Background indexing error for {history_id}: {e}")

    async def index_batch(self, history_id: str, batch: List[ConversationTurn]) -> bool:
        """Embed one batch and persist it as a single entry."""
        text = " ".join(t for t in (extract_text(turn) for turn in batch) if t)
        if len(text) < MIN_INDEXABLE_TEXT:
            return False

        embedding = await self.embedder.embed(text, TASK_DOCUMENT)
        if not embedding:
            return False

        await self.store.save_memory_entry(
            history_id,
            MemoryEntry(
                history_id=history_id,
                messages=list(batch),
                embedding=embedding,
                timestamp=now_ms(),
                text=text[:PREVIEW_LENGTH],
            ),
        )
        return True

    async def force_index(self, history_id: str) -> Dict[str, Any]:
        """Re-index every old message of a history, awaiting each batch."""
        try:
            container = await self.store.get_chat_history(history_id)
            if not container:
                return {"success": False, "message": "No history found"}

            old_messages = self._old_messages(flatten_history(container))
            if not old_messages:
                return {"success": False, "message": "No old messages to index"}

            batches = self._batches(old_messages, 0)
            logger.info(
                f"Force-indexing {len(old_messages)} messages in {len(batches)} batches "
                f"for {history_id}"
            )
            for batch in batches:
                await self.index_batch(history_id, batch)

            self.last_indexed_count[history_id] = len(old_messages)
            return {
                "success": True,
                "message": f"Indexed {len(old_messages)} messages in {len(batches)} batches",
                "batch_count": len(batches),
                "message_count": len(old_messages),
            }
        except Exception as e:
            logger.error(f"Force indexing failed for {history_id}: {e}")
            return {"success": False, "message": str(e)}

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every scheduled batch to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
