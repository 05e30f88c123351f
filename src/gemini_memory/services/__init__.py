"""Service components of the memory core."""

from .cache import EmbeddingCache
from .compressor import HistoryCompressor
from .embeddings import Embedder
from .formatter import TurnFormatter
from .indexer import BackgroundIndexer
from .retriever import ContextRetriever
from .similarity import cosine_similarity
from .store import InMemoryStore, JsonFileStore, MemoryStore, MemoryStoreError

__all__ = [
    "BackgroundIndexer",
    "ContextRetriever",
    "Embedder",
    "EmbeddingCache",
    "HistoryCompressor",
    "InMemoryStore",
    "JsonFileStore",
    "MemoryStore",
    "MemoryStoreError",
    "TurnFormatter",
    "cosine_similarity",
]
