"""Unit tests for the history compressor."""

from unittest.mock import AsyncMock

import pytest

from gemini_memory.models.turns import USER, extract_text
from gemini_memory.services.compressor import HistoryCompressor
from tests.fixtures import create_mock_gateway, make_turns


class TestHistoryCompressor:
    @pytest.mark.asyncio
    async def test_small_input_returned_unchanged(self):
        gateway = create_mock_gateway()
        turns = make_turns(5)

        result = await HistoryCompressor(gateway).compress(turns, "gemini-test")

        assert result is turns
        gateway.generate_content.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_summarizes_into_single_user_turn(self):
        gateway = create_mock_gateway(summary="They discussed cats.")
        compressor = HistoryCompressor(gateway)

        result = await compressor.compress(make_turns(8), "gemini-test")

        assert len(result) == 1
        assert result[0].role == USER
        assert extract_text(result[0]) == "[Previous conversation summary: They discussed cats.]"
        assert compressor.compressions == 1

        args, kwargs = gateway.generate_content.call_args
        assert args[0] == "gemini-test"
        assert "User: message 0\n\nAssistant: message 1" in args[1]
        assert kwargs["generation_config"] == {"temperature": 0.3, "top_p": 0.95}
        assert "Summarize" in kwargs["system_instruction"]

    @pytest.mark.asyncio
    async def test_failure_keeps_last_three(self):
        gateway = create_mock_gateway()
        gateway.generate_content = AsyncMock(side_effect=RuntimeError("All API keys failed"))
        compressor = HistoryCompressor(gateway)
        turns = make_turns(10)

        result = await compressor.compress(turns, "gemini-test")

        assert result == turns[-3:]
        assert compressor.failures == 1

    @pytest.mark.asyncio
    async def test_empty_summary_falls_back_to_transcript(self):
        gateway = create_mock_gateway(summary="")

        result = await HistoryCompressor(gateway).compress(make_turns(6), "gemini-test")

        assert extract_text(result[0]).startswith("[Previous conversation summary: User: message 0")

    @pytest.mark.asyncio
    async def test_summarize_reports_failure_as_none(self):
        gateway = create_mock_gateway()
        gateway.generate_content = AsyncMock(side_effect=RuntimeError("All API keys failed"))
        compressor = HistoryCompressor(gateway)

        assert await compressor.summarize(make_turns(8), "gemini-test") is None
        assert compressor.failures == 1
        assert compressor.compressions == 0

    @pytest.mark.asyncio
    async def test_summary_turn_is_new(self):
        gateway = create_mock_gateway(summary="Short.")
        turns = make_turns(8)

        summary = await HistoryCompressor(gateway).summarize(turns, "gemini-test")

        assert all(summary is not t for t in turns)
        assert extract_text(summary) == "[Previous conversation summary: Short.]"
