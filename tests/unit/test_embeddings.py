"""Unit tests for the embedder."""

from unittest.mock import AsyncMock

import pytest

from gemini_memory.services.cache import EmbeddingCache
from gemini_memory.services.embeddings import TASK_DOCUMENT, TASK_QUERY, Embedder


class TestEmbedder:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", None, 42])
    async def test_invalid_text_returns_none(self, gateway, text):
        assert await Embedder(gateway).embed(text) is None
        gateway.embed_content.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_calls_gateway_and_caches(self, gateway):
        embedder = Embedder(gateway, EmbeddingCache(), model_name="models/test-embed")

        first = await embedder.embed("some text", TASK_QUERY)
        second = await embedder.embed("some text", TASK_QUERY)

        assert first == second == [1.0, 0.0, 0.0]
        gateway.embed_content.assert_awaited_once_with("models/test-embed", "some text", TASK_QUERY)

    @pytest.mark.asyncio
    async def test_task_types_cached_separately(self, gateway):
        embedder = Embedder(gateway)
        await embedder.embed("text", TASK_QUERY)
        await embedder.embed("text", TASK_DOCUMENT)

        assert gateway.embed_content.await_count == 2
        assert len(embedder.cache) == 2

    @pytest.mark.asyncio
    async def test_gateway_failure_returns_none(self, gateway):
        gateway.embed_content = AsyncMock(side_effect=RuntimeError("All API keys failed"))
        embedder = Embedder(gateway)

        assert await embedder.embed("text") is None
        assert len(embedder.cache) == 0
