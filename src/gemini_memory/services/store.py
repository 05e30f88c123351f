"""Persistence adapters for chat histories and indexed memory entries."""

import asyncio
import json
import logging
import os
from abc import ABC, abstractmethod
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..models.memory import MemoryEntry
from ..models.turns import ConversationTurn, HistoryContainer

logger = logging.getLogger(__name__)


class MemoryStoreError(Exception):
    """Raised when a store write fails."""


class MemoryStore(ABC):
    """Durable storage the memory core reads from and writes to."""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def lock_for(self, history_id: str) -> asyncio.Lock:
        """Per-history lock serializing writers to the raw history."""
        return self._locks[history_id]

    @abstractmethod
    async def get_chat_history(self, history_id: str) -> Optional[HistoryContainer]:
        """Return the sub-thread mapping for ``history_id`` or None."""
        ...

    @abstractmethod
    async def _write_turns(
        self, history_id: str, sub_thread_id: str, turns: List[ConversationTurn]
    ) -> None:
        ...

    @abstractmethod
    async def save_memory_entry(self, history_id: str, entry: MemoryEntry) -> None:
        ...

    @abstractmethod
    async def get_memory_entries(
        self, history_id: str, limit: Optional[int] = None
    ) -> List[MemoryEntry]:
        """Return entries newest first."""
        ...

    @abstractmethod
    async def delete_old_memory_entries(self, cutoff_ms: int) -> int:
        """Delete entries created before ``cutoff_ms``; returns the count removed."""
        ...

    async def append_turns(
        self, history_id: str, sub_thread_id: str, turns: List[ConversationTurn]
    ) -> None:
        async with self.lock_for(history_id):
            await self._write_turns(history_id, sub_thread_id, turns)


class InMemoryStore(MemoryStore):
    """Dict-backed store."""

    def __init__(self):
        super().__init__()
        self.histories: Dict[str, HistoryContainer] = {}
        self.entries: Dict[str, List[MemoryEntry]] = defaultdict(list)

    async def get_chat_history(self, history_id: str) -> Optional[HistoryContainer]:
        container = self.histories.get(history_id)
        if container is None:
            return None
        return {sub_id: list(turns) for sub_id, turns in container.items()}

    async def _write_turns(self, history_id, sub_thread_id, turns):
        container = self.histories.setdefault(history_id, {})
        container.setdefault(sub_thread_id, []).extend(turns)

    async def save_memory_entry(self, history_id: str, entry: MemoryEntry) -> None:
        self.entries[history_id].append(entry)

    async def get_memory_entries(self, history_id, limit=None):
        entries = sorted(self.entries.get(history_id, []), key=lambda e: e.timestamp, reverse=True)
        return entries[:limit] if limit else entries

    async def delete_old_memory_entries(self, cutoff_ms: int) -> int:
        removed = 0
        for history_id, entries in self.entries.items():
            kept = [e for e in entries if e.timestamp >= cutoff_ms]
            removed += len(entries) - len(kept)
            self.entries[history_id] = kept
        return removed


class JsonFileStore(MemoryStore):
    """One JSON document per history under ``root``.

    Layout: ``chat_histories/<id>.json`` and ``memory/<id>.json``.

    Reads tolerate unreadable files and return an empty result. Writes read
    the current document first and refuse to replace one they could not
    parse, raising ``MemoryStoreError`` instead.
    """

    def __init__(self, root: str):
        super().__init__()
        self.root = Path(root)
        self.histories_dir = self.root / "chat_histories"
        self.memory_dir = self.root / "memory"
        # Created on first use so it belongs to the loop that awaits it
        self._memory_lock: Optional[asyncio.Lock] = None

    def _get_memory_lock(self) -> asyncio.Lock:
        if self._memory_lock is None:
            self._memory_lock = asyncio.Lock()
        return self._memory_lock

    def _history_path(self, history_id: str) -> Path:
        return self.histories_dir / f"{_safe_name(history_id)}.json"

    def _memory_path(self, history_id: str) -> Path:
        return self.memory_dir / f"{_safe_name(history_id)}.json"

    @staticmethod
    def _read_json(path: Path) -> Any:
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    @staticmethod
    def _write_json(path: Path, data: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, path)

    async def _load(self, path: Path, default: Any) -> Any:
        try:
            data = await asyncio.to_thread(self._read_json, path)
        except (OSError, ValueError) as e:
            logger.error(f"Error reading {path}: {e}")
            return default
        return default if data is None else data

    async def _load_for_update(self, path: Path, expected_type: type) -> Any:
        """Read a document that is about to be rewritten.

        A missing file yields an empty ``expected_type``. Anything unreadable
        or of the wrong shape raises, so the caller never overwrites it.
        """
        try:
            data = await asyncio.to_thread(self._read_json, path)
        except (OSError, ValueError) as e:
            logger.error(f"Error reading {path}, refusing to overwrite: {e}")
            raise MemoryStoreError(f"Could not read {path}: {e}") from e
        if data is None:
            return expected_type()
        if not isinstance(data, expected_type):
            logger.error(
                f"Unexpected {type(data).__name__} in {path}, expected {expected_type.__name__}"
            )
            raise MemoryStoreError(
                f"{path} holds a {type(data).__name__}, expected {expected_type.__name__}"
            )
        return data

    async def _save(self, path: Path, data: Any) -> None:
        try:
            await asyncio.to_thread(self._write_json, path, data)
        except (OSError, TypeError) as e:
            logger.error(f"Error writing {path}: {e}")
            raise MemoryStoreError(f"Could not write {path}: {e}") from e

    async def get_chat_history(self, history_id: str) -> Optional[HistoryContainer]:
        raw = await self._load(self._history_path(history_id), None)
        if not isinstance(raw, dict):
            return None
        return {
            sub_id: [ConversationTurn.from_dict(t) for t in turns or []]
            for sub_id, turns in raw.items()
        }

    async def _write_turns(self, history_id, sub_thread_id, turns):
        path = self._history_path(history_id)
        raw = await self._load_for_update(path, dict)
        raw.setdefault(sub_thread_id, []).extend(t.to_dict() for t in turns)
        await self._save(path, raw)

    async def save_memory_entry(self, history_id: str, entry: MemoryEntry) -> None:
        path = self._memory_path(history_id)
        async with self._get_memory_lock():
            raw = await self._load_for_update(path, list)
            raw.append(entry.to_dict())
            await self._save(path, raw)

    async def get_memory_entries(self, history_id, limit=None):
        raw = await self._load(self._memory_path(history_id), [])
        entries = [MemoryEntry.from_dict(e) for e in raw]
        entries.sort(key=lambda e: e.timestamp, reverse=True)
        return entries[:limit] if limit else entries

    async def delete_old_memory_entries(self, cutoff_ms: int) -> int:
        if not self.memory_dir.exists():
            return 0
        removed = 0
        async with self._get_memory_lock():
            for path in sorted(self.memory_dir.glob("*.json")):
                try:
                    raw = await self._load_for_update(path, list)
                except MemoryStoreError:
                    continue
                kept = [e for e in raw if int(e.get("timestamp") or 0) >= cutoff_ms]
                if len(kept) != len(raw):
                    removed += len(raw) - len(kept)
                    await self._save(path, kept)
        return removed


def _safe_name(history_id: str) -> str:
    return "".join(c if c.isalnum() or c in "-_" else "_" for c in str(history_id))
