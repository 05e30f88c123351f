"""Memory-related data models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .turns import ConversationTurn, now_ms

PREVIEW_LENGTH = 500


@dataclass
class MemoryEntry:
    """A batch of indexed turns and the embedding that represents it."""

    history_id: str
    messages: List[ConversationTurn]
    embedding: List[float]
    timestamp: int = field(default_factory=now_ms)
    text: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MemoryEntry":
        return cls(
            history_id=str(data.get("historyId", "")),
            messages=[ConversationTurn.from_dict(m) for m in data.get("messages") or []],
            embedding=list(data.get("embedding") or []),
            timestamp=int(data.get("timestamp") or 0),
            text=data.get("text", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "historyId": self.history_id,
            "messages": [m.to_dict() for m in self.messages],
            "embedding": list(self.embedding),
            "timestamp": self.timestamp,
            "text": self.text[:PREVIEW_LENGTH],
        }


@dataclass
class UploadedFile:
    """Result of a file upload to the provider."""

    uri: str
    mime_type: str


@dataclass
class CredentialState:
    """Usage counters for one API key."""

    api_key: str
    request_count: int = 0
    success_count: int = 0
    error_count: int = 0
    last_used_at: Optional[datetime] = None
    last_error: Optional[str] = None

    @property
    def masked_key(self) -> str:
        if len(self.api_key) <= 8:
            return "****"
        return f"{self.api_key[:4]}...{self.api_key[-4:]}"

    def snapshot(self) -> Dict[str, Any]:
        return {
            "key": self.masked_key,
            "requests": self.request_count,
            "successes": self.success_count,
            "errors": self.error_count,
            "last_used_at": self.last_used_at.isoformat() if self.last_used_at else None,
            "last_error": self.last_error,
        }
