"""Conversation turn data models."""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

USER = "user"
ASSISTANT = "assistant"


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass
class TextPart:
    """Plain text content."""

    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text}


@dataclass
class FilePart:
    """Reference to a previously uploaded file."""

    uri: str
    mime_type: str = "application/octet-stream"

    def to_dict(self) -> Dict[str, Any]:
        return {"fileUri": self.uri, "mimeType": self.mime_type}


@dataclass
class InlinePart:
    """Inline attachment; the payload itself is never kept."""

    mime_type: str = "application/octet-stream"

    def to_dict(self) -> Dict[str, Any]:
        return {"inlineData": {"mimeType": self.mime_type}}


Part = Union[TextPart, FilePart, InlinePart]


def part_from_dict(data: Dict[str, Any]) -> Optional[Part]:
    """Parse one stored content part, returning None for unknown shapes."""
    if not isinstance(data, dict):
        return None
    if "text" in data and data["text"] is not None:
        return TextPart(text=str(data["text"]))
    if data.get("fileUri"):
        return FilePart(uri=data["fileUri"], mime_type=data.get("mimeType") or "unknown")
    file_data = data.get("fileData")
    if isinstance(file_data, dict) and file_data.get("fileUri"):
        return FilePart(uri=file_data["fileUri"], mime_type=file_data.get("mimeType") or "unknown")
    inline = data.get("inlineData")
    if isinstance(inline, dict):
        return InlinePart(mime_type=inline.get("mimeType") or "unknown")
    return None


@dataclass
class ConversationTurn:
    """Represents a single turn in a conversation."""

    role: str  # "user" or "assistant"
    content: List[Part] = field(default_factory=list)
    timestamp: int = field(default_factory=now_ms)
    username: Optional[str] = None
    display_name: Optional[str] = None

    @classmethod
    def text(cls, role: str, text: str, timestamp: Optional[int] = None, **kwargs: Any):
        """Build a turn holding a single text part."""
        return cls(
            role=role,
            content=[TextPart(text)],
            timestamp=timestamp if timestamp is not None else now_ms(),
            **kwargs,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationTurn":
        parts = [part_from_dict(p) for p in data.get("content") or []]
        return cls(
            role=data.get("role", USER),
            content=[p for p in parts if p is not None],
            timestamp=int(data.get("timestamp") or 0),
            username=data.get("username"),
            display_name=data.get("displayName"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "role": self.role,
            "content": [p.to_dict() for p in self.content],
            "timestamp": self.timestamp,
        }
        if self.username:
            data["username"] = self.username
        if self.display_name:
            data["displayName"] = self.display_name
        return data


HistoryContainer = Dict[str, List[ConversationTurn]]


def flatten_history(container: Optional[HistoryContainer]) -> List[ConversationTurn]:
    """Concatenate all sub-threads in mapping order."""
    turns: List[ConversationTurn] = []
    for sub_thread in (container or {}).values():
        turns.extend(sub_thread)
    return turns


def extract_text(turn: ConversationTurn) -> str:
    """Join the text parts of a turn with single spaces."""
    if not turn or not turn.content:
        return ""
    texts = [p.text for p in turn.content if isinstance(p, TextPart) and p.text]
    return " ".join(texts).strip()
