"""Assembly of the context-limited turn sequence sent with each request."""

import logging
import os
import tempfile
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from ..config import MemoryConfig
from ..models.turns import ConversationTurn, extract_text, flatten_history
from ..services.compressor import FALLBACK_TURNS, MIN_TURNS_TO_COMPRESS, HistoryCompressor
from ..services.formatter import TurnFormatter, render_transcript
from ..services.indexer import BackgroundIndexer
from ..services.retriever import ContextRetriever
from ..services.store import MemoryStore

logger = logging.getLogger(__name__)

RELEVANT_ENTRY_LIMIT = 3
UNCOMPRESSED_OLD_LIMIT = 10


class HistoryOptimizer:
    """Decides which part of a conversation the model sees for a request.

    Output order is ``[older-context block, relevant-memory block, *recent]``.
    Turns keep append order across sub-threads; nothing here re-sorts them
    by timestamp.
    """

    def __init__(
        self,
        gateway: Any,
        store: MemoryStore,
        indexer: BackgroundIndexer,
        retriever: ContextRetriever,
        compressor: Optional[HistoryCompressor] = None,
        formatter: Optional[TurnFormatter] = None,
        config: Optional[MemoryConfig] = None,
    ):
        self.gateway = gateway
        self.store = store
        self.indexer = indexer
        self.retriever = retriever
        self.compressor = compressor or HistoryCompressor(gateway)
        self.formatter = formatter or TurnFormatter()
        self.config = config or MemoryConfig()

    async def assemble(
        self, history_id: str, query: str, model: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Build the model-ready turns for ``history_id``."""
        try:
            container = await self.store.get_chat_history(history_id)
        except Exception as e:
            logger.error(f"History optimization failed for {history_id}: {e}")
            return []

        turns = flatten_history(container)
        if not turns:
            return []

        self.indexer.check_and_schedule(history_id, turns)

        keep = self.config.max_full_messages
        if len(turns) <= keep:
            return self.formatter.format(turns)

        recent = turns[-keep:]
        old = turns[:-keep]

        relevant = await self.retriever.retrieve(history_id, query, RELEVANT_ENTRY_LIMIT)
        relevant = self._without(relevant, recent)

        kept = old[-UNCOMPRESSED_OLD_LIMIT:]
        summary: Optional[ConversationTurn] = None
        if len(old) > self.config.compression_threshold and len(old) >= MIN_TURNS_TO_COMPRESS:
            summary = await self.compressor.summarize(old, model or self.config.model_name)
            if summary is None:
                kept = old[-FALLBACK_TURNS:]

        blocks: List[Dict[str, Any]] = []

        if summary is not None:
            older_text = extract_text(summary)
            older_label = f"Summarized {len(old)} older messages"
        else:
            older_text = render_transcript(kept, with_names=True)
            older_label = f"Previous conversation ({len(kept)} of {len(old)} older messages)"
        older_block = await self._context_block(history_id, older_label, older_text)
        if older_block:
            blocks.append(older_block)

        if relevant:
            relevant = sorted(relevant, key=lambda t: t.timestamp or 0)
            relevant_block = await self._context_block(
                history_id,
                f"{len(relevant)} relevant messages from memory",
                render_transcript(relevant, with_names=True),
            )
            if relevant_block:
                blocks.append(relevant_block)

        return blocks + self.formatter.format(recent)

    @staticmethod
    def _without(
        turns: List[ConversationTurn], exclude: List[ConversationTurn]
    ) -> List[ConversationTurn]:
        seen = {(t.timestamp, extract_text(t)) for t in exclude}
        return [t for t in turns if (t.timestamp, extract_text(t)) not in seen]

    async def _context_block(
        self, history_id: str, label: str, transcript: str
    ) -> Optional[Dict[str, Any]]:
        """Wrap a transcript as one user turn, inline or as an uploaded file."""
        if not transcript.strip():
            return None

        if len(transcript) >= self.config.inline_context_limit:
            uploaded = await self._upload_transcript(history_id, label, transcript)
            if uploaded:
                return {
                    "role": "user",
                    "parts": [
                        {"text": f"[Context] {label}. The attached file contains the transcript."},
                        {"file_data": {"mime_type": uploaded.mime_type, "file_uri": uploaded.uri}},
                    ],
                }

        return {"role": "user", "parts": [{"text": f"[Context] {label}:\n{transcript}"}]}

    async def _upload_transcript(self, history_id: str, label: str, transcript: str):
        path = None
        try:
            os.makedirs(self.config.temp_dir, exist_ok=True)
            fd, path = tempfile.mkstemp(
                prefix=f"context_{history_id}_", suffix=".txt", dir=self.config.temp_dir
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(transcript)
            return await self.gateway.upload_file(path, mime_type="text/plain", display_name=label)
        except Exception as e:
            logger.warning(f"Context upload failed for {history_id}, using inline text: {e}")
            return None
        finally:
            if path and os.path.exists(path):
                os.remove(path)

    async def force_index_now(self, history_id: str) -> Dict[str, Any]:
        return await self.indexer.force_index(history_id)

    def get_queue_status(self) -> Dict[str, Any]:
        """Diagnostics for the embedding cache and indexing cursors."""
        cursors = self.indexer.last_indexed_count
        return {
            "cache_size": len(self.indexer.embedder.cache),
            "tracked_histories": len(cursors),
            "pending_tasks": self.indexer.pending_tasks,
            "entries": [
                {"history_id": history_id, "last_indexed_count": count}
                for history_id, count in cursors.items()
            ],
        }

    async def prune_memories(self, max_age_days: int) -> int:
        """Delete memory entries older than ``max_age_days``."""
        cutoff = datetime.now() - timedelta(days=max_age_days)
        try:
            removed = await self.store.delete_old_memory_entries(int(cutoff.timestamp() * 1000))
        except Exception as e:
            logger.error(f"Memory pruning failed: {e}")
            return 0
        logger.info(f"Pruned {removed} memory entries older than {max_age_days} days")
        return removed
