"""Vector similarity scoring."""

import math
from typing import Optional, Sequence


def cosine_similarity(a: Optional[Sequence[float]], b: Optional[Sequence[float]]) -> float:
    """Cosine similarity of two vectors.

    Returns 0 for missing or unequal-length inputs. Zero vectors are not
    special-cased and produce NaN; callers check their inputs first.
    """
    if not a or not b or len(a) != len(b):
        return 0.0

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    denominator = math.sqrt(norm_a) * math.sqrt(norm_b)
    if denominator == 0:
        return math.nan
    return dot / denominator
