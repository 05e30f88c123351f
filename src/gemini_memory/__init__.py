"""Gemini Memory - conversational memory and context optimization for Gemini chat bots"""

__version__ = "1.0.0"

from .core.optimizer import HistoryOptimizer
from .main import MemorySystem

__all__ = ["HistoryOptimizer", "MemorySystem"]
