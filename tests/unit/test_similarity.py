"""Unit tests for cosine similarity."""

import math

import pytest

from gemini_memory.services.similarity import cosine_similarity


class TestCosineSimilarity:
    """Test suite for cosine_similarity."""

    @pytest.mark.parametrize(
        "vector", [[1.0, 2.0, 3.0], [0.5, -0.25, 8.0, 1e-3], [-4.0, 7.0]]
    )
    def test_self_similarity_is_one(self, vector):
        assert cosine_similarity(vector, vector) == pytest.approx(1.0)

    def test_symmetric(self):
        a = [0.3, -1.2, 4.5]
        b = [2.0, 0.1, -0.7]
        assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))

    def test_orthogonal_and_opposite(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
        assert cosine_similarity([1.0, 2.0], [-1.0, -2.0]) == pytest.approx(-1.0)

    def test_missing_input_returns_zero(self):
        assert cosine_similarity(None, [1.0]) == 0
        assert cosine_similarity([1.0], None) == 0
        assert cosine_similarity(None, None) == 0

    def test_mismatched_lengths_return_zero(self):
        assert cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0]) == 0

    def test_zero_vector_is_nan(self):
        """Zero vectors are not special-cased; callers must guard against them."""
        assert math.isnan(cosine_similarity([0.0, 0.0], [1.0, 2.0]))
