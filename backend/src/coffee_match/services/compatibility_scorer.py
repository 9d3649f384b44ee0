"""Tag-based compatibility scorer.

Pure-function module, NO database access.

The score is the Jaccard similarity of two users' tag-name sets, scaled to
0-100. Tags are compared by exact name, so "Chess" and "chess" differ.
"""

from __future__ import annotations

from typing import Iterable

MAX_SCORE = 100.0


def compute_match_score(tags_a: Iterable[str], tags_b: Iterable[str]) -> float:
    """Return 100 * |A ∩ B| / |A ∪ B|, or 0 when both sets are empty.

    Symmetric and deterministic. Duplicate names collapse.
    """
    set_a = set(tags_a)
    set_b = set(tags_b)

    union = set_a | set_b
    if not union:
        return 0.0

    return len(set_a & set_b) / len(union) * MAX_SCORE
