"""Unit tests for the turn formatter."""

import pytest

from gemini_memory.models.turns import (
    ASSISTANT,
    USER,
    ConversationTurn,
    FilePart,
    InlinePart,
    TextPart,
)
from gemini_memory.services.formatter import (
    TurnFormatter,
    content_text,
    format_duration,
    render_transcript,
)

MINUTE = 60 * 1000
HOUR = 60 * MINUTE
DAY = 24 * HOUR


class TestFormatDuration:
    @pytest.mark.parametrize(
        "ms,expected",
        [
            (2 * DAY + 5 * HOUR, "2 days"),
            (DAY, "1 day"),
            (3 * HOUR + 59 * MINUTE, "3 hours"),
            (45 * MINUTE, "45 minutes"),
            (MINUTE, "1 minute"),
            (30 * 1000, "30 seconds"),
            (1000, "1 second"),
        ],
    )
    def test_coarsest_unit(self, ms, expected):
        assert format_duration(ms) == expected


class TestTurnFormatter:
    def test_role_mapping(self):
        turns = [
            ConversationTurn.text(USER, "hi", timestamp=1000),
            ConversationTurn.text(ASSISTANT, "hello", timestamp=2000),
        ]
        formatted = TurnFormatter().format(turns)

        assert [c["role"] for c in formatted] == ["user", "model"]
        assert formatted[1]["parts"] == [{"text": "hello"}]

    def test_elapsed_time_note_after_long_gap(self):
        turns = [
            ConversationTurn.text(USER, "before", timestamp=1000),
            ConversationTurn.text(USER, "after", timestamp=1000 + 2 * DAY + HOUR),
        ]
        formatted = TurnFormatter().format(turns)

        assert formatted[0]["parts"] == [{"text": "before"}]
        assert formatted[1]["parts"][0] == {
            "text": "[TIME ELAPSED: 2 days since the previous turn]\n"
        }
        assert formatted[1]["parts"][1] == {"text": "after"}

    def test_no_note_at_threshold(self):
        turns = [
            ConversationTurn.text(USER, "a", timestamp=1000),
            ConversationTurn.text(USER, "b", timestamp=1000 + 30 * MINUTE),
        ]
        formatted = TurnFormatter().format(turns)
        assert formatted[1]["parts"] == [{"text": "b"}]

    def test_attribution_on_first_text_part_only(self):
        turn = ConversationTurn(
            role=USER,
            content=[TextPart("first"), TextPart("second")],
            timestamp=1000,
            username="alice",
            display_name="Alice",
        )
        formatted = TurnFormatter().format([turn])

        assert formatted[0]["parts"] == [
            {"text": "[Alice (@alice)]: first"},
            {"text": "second"},
        ]

    def test_no_attribution_for_assistant(self):
        turn = ConversationTurn.text(
            ASSISTANT, "reply", timestamp=1000, username="bot", display_name="Bot"
        )
        assert TurnFormatter().format([turn])[0]["parts"] == [{"text": "reply"}]

    def test_attachments_become_placeholders(self):
        turn = ConversationTurn(
            role=USER,
            content=[FilePart("https://files/old", "image/png"), InlinePart("image/jpeg")],
            timestamp=1000,
        )
        parts = TurnFormatter().format([turn])[0]["parts"]

        assert parts[0]["text"] == (
            "[Attachment: Previous file (image/png) - Content no longer available]"
        )
        assert "inline attachment (image/jpeg)" in parts[1]["text"]
        assert all("file_data" not in p for p in parts)

    def test_empty_turns_dropped(self):
        turns = [
            ConversationTurn(role=USER, content=[TextPart("")], timestamp=1000),
            ConversationTurn.text(ASSISTANT, "kept", timestamp=2000),
        ]
        formatted = TurnFormatter().format(turns)

        assert len(formatted) == 1
        assert formatted[0]["parts"] == [{"text": "kept"}]

    def test_text_round_trip(self):
        turn = ConversationTurn(
            role=USER,
            content=[TextPart("hello"), TextPart("world")],
            timestamp=5000,
            username="bob",
            display_name="Bob",
        )
        previous = ConversationTurn.text(USER, "earlier", timestamp=5000 - DAY)
        formatted = TurnFormatter().format([previous, turn])

        assert content_text(formatted[1], source=turn) == "hello world"
        assert content_text(formatted[1]).startswith("[Bob (@bob)]: ")

    def test_tag_like_text_survives_round_trip(self):
        turn = ConversationTurn.text(USER, "[Bob (@bob)]: quoted line", timestamp=5000)
        formatted = TurnFormatter().format([turn])

        assert content_text(formatted[0], source=turn) == "[Bob (@bob)]: quoted line"

    def test_only_the_added_tag_is_removed(self):
        turn = ConversationTurn.text(
            USER, "[Bob (@bob)]: quoted", timestamp=5000, username="amy", display_name="Amy"
        )
        formatted = TurnFormatter().format([turn])

        assert content_text(formatted[0], source=turn) == "[Bob (@bob)]: quoted"


class TestRenderTranscript:
    def test_roles_and_names(self):
        turns = [
            ConversationTurn.text(USER, "question", username="bob", display_name="Bob"),
            ConversationTurn.text(ASSISTANT, "answer"),
            ConversationTurn(role=USER, content=[FilePart("u", "image/png")]),
        ]

        assert render_transcript(turns) == "User: question\nModel: answer"
        assert render_transcript(turns, with_names=True) == "User (Bob): question\nModel: answer"
