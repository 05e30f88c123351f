"""Core components of the memory system."""

from .optimizer import HistoryOptimizer

__all__ = ["HistoryOptimizer"]
