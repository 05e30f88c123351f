"""Conversion of stored turns into Gemini content dicts."""

import re
from typing import Any, Dict, Iterable, List, Optional

from ..models.turns import (
    ASSISTANT,
    USER,
    ConversationTurn,
    FilePart,
    InlinePart,
    TextPart,
    extract_text,
)

MODEL_ROLE = "model"
DEFAULT_GAP_THRESHOLD_MS = 30 * 60 * 1000

_ELAPSED = re.compile(r"^\[TIME ELAPSED: [^\]]*\]\n$")


def format_duration(milliseconds: int) -> str:
    """Render a duration in its coarsest whole unit, e.g. ``2 days``."""
    seconds = int(milliseconds // 1000)
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24

    for value, unit in ((days, "day"), (hours, "hour"), (minutes, "minute")):
        if value > 0:
            return f"{value} {unit}{'s' if value > 1 else ''}"
    return f"{seconds} second{'s' if seconds != 1 else ''}"


def attribution_tag(turn: ConversationTurn) -> Optional[str]:
    if turn.role == USER and turn.username and turn.display_name:
        return f"[{turn.display_name} (@{turn.username})]: "
    return None


def content_text(content: Dict[str, Any], source: Optional[ConversationTurn] = None) -> str:
    """Recover the message text of a formatted content dict.

    Elapsed-time notes are skipped. When ``source`` is the turn the content was
    formatted from, the speaker tag it added is removed; text that merely looks
    like a tag is left alone.
    """
    tag = attribution_tag(source) if source is not None else None
    texts: List[str] = []
    for part in content.get("parts", []):
        text = part.get("text") if isinstance(part, dict) else None
        if not text or _ELAPSED.match(text):
            continue
        if tag and not texts and text.startswith(tag):
            text = text[len(tag):]
        texts.append(text)
    return " ".join(texts).strip()


def render_transcript(turns: Iterable[ConversationTurn], with_names: bool = False) -> str:
    """Flatten turns into ``Role: text`` lines, skipping turns without text."""
    lines = []
    for turn in turns:
        text = extract_text(turn)
        if not text:
            continue
        role = "Model" if turn.role == ASSISTANT else "User"
        name = (turn.display_name or turn.username) if with_names else None
        header = f"{role} ({name})" if name else role
        lines.append(f"{header}: {text}")
    return "\n".join(lines)


class TurnFormatter:
    """Maps stored turns onto the provider's content format."""

    def __init__(self, gap_threshold_ms: int = DEFAULT_GAP_THRESHOLD_MS):
        self.gap_threshold_ms = gap_threshold_ms

    def format(self, turns: Iterable[ConversationTurn]) -> List[Dict[str, Any]]:
        formatted: List[Dict[str, Any]] = []
        previous_timestamp: Optional[int] = None

        for turn in turns:
            parts: List[Dict[str, Any]] = []

            if previous_timestamp and turn.timestamp:
                gap = turn.timestamp - previous_timestamp
                if gap > self.gap_threshold_ms:
                    parts.append(
                        {"text": f"[TIME ELAPSED: {format_duration(gap)} since the previous turn]\n"}
                    )
            previous_timestamp = turn.timestamp

            tag = attribution_tag(turn)
            for part in turn.content:
                if isinstance(part, TextPart):
                    if not part.text:
                        continue
                    text = part.text
                    if tag:
                        text = tag + text
                        tag = None
                    parts.append({"text": text})
                elif isinstance(part, FilePart):
                    parts.append(
                        {
                            "text": f"[Attachment: Previous file ({part.mime_type}) - "
                            "Content no longer available]"
                        }
                    )
                elif isinstance(part, InlinePart):
                    parts.append(
                        {"text": f"[Attachment: Previous inline attachment ({part.mime_type})]"}
                    )

            if parts:
                role = MODEL_ROLE if turn.role == ASSISTANT else turn.role
                formatted.append({"role": role, "parts": parts})

        return formatted
