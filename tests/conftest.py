"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path

import pytest

# Add the project root and src directory to Python path so tests can import properly
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(project_root / "src"))

from gemini_memory.services.store import InMemoryStore  # noqa: E402
from tests.fixtures import create_mock_gateway  # noqa: E402


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def gateway():
    return create_mock_gateway()
