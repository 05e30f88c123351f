"""Test fixtures for the memory core tests."""

from types import SimpleNamespace
from typing import List, Optional
from unittest.mock import AsyncMock, Mock

from gemini_memory.models.memory import UploadedFile
from gemini_memory.models.turns import ASSISTANT, USER, ConversationTurn

BASE_TS = 1_700_000_000_000


def create_mock_gateway(
    summary: str = "Test summary",
    embedding: Optional[List[float]] = None,
):
    """Create a mock gateway for testing."""
    gateway = Mock()
    gateway.generate_content = AsyncMock(return_value=SimpleNamespace(text=summary))
    gateway.embed_content = AsyncMock(return_value=embedding or [1.0, 0.0, 0.0])
    gateway.upload_file = AsyncMock(
        return_value=UploadedFile(uri="https://files.example/abc", mime_type="text/plain")
    )
    gateway.get_stats = Mock(return_value={"key_count": 1, "total_requests": 0, "keys": []})
    return gateway


def make_turns(count: int, start: int = 0, step_ms: int = 1000, prefix: str = "message"):
    """Alternating user/assistant text turns with increasing timestamps."""
    return [
        ConversationTurn.text(
            USER if i % 2 == 0 else ASSISTANT,
            f"{prefix} {i}",
            timestamp=BASE_TS + i * step_ms,
        )
        for i in range(start, start + count)
    ]
