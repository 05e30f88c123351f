"""Data models and the model access gateway."""

from .gateway import AllCredentialsFailedError, GatewayChatSession, ModelGateway
from .memory import CredentialState, MemoryEntry, UploadedFile
from .turns import (
    ASSISTANT,
    USER,
    ConversationTurn,
    FilePart,
    HistoryContainer,
    InlinePart,
    TextPart,
    extract_text,
    flatten_history,
)

__all__ = [
    "ASSISTANT",
    "USER",
    "AllCredentialsFailedError",
    "ConversationTurn",
    "CredentialState",
    "FilePart",
    "GatewayChatSession",
    "HistoryContainer",
    "InlinePart",
    "MemoryEntry",
    "ModelGateway",
    "TextPart",
    "UploadedFile",
    "extract_text",
    "flatten_history",
]
