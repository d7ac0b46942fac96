"""Levenshtein similarity utilities for Displacement Atlas.

Pure string comparison used to resolve free-text country names that no alias
table lists verbatim. No I/O or external calls.
"""

from __future__ import annotations

from typing import Iterable, Optional, Tuple

from Levenshtein import ratio as _lev_ratio


def similarity(s1: str, s2: str) -> float:
    """Compute the normalized Levenshtein similarity ratio between two strings.

    Comparison is case-insensitive and ignores surrounding whitespace.

    Args:
        s1: First string.
        s2: Second string.

    Returns:
        Similarity ratio in [0.0, 1.0] where 1.0 means identical strings.
    """
    if not s1 and not s2:
        return 1.0
    return float(_lev_ratio(s1.lower().strip(), s2.lower().strip()))


def best_match(query: str, candidates: Iterable[str]) -> Tuple[Optional[str], float]:
    """Find the best-matching candidate and its score.

    Ties keep the first candidate in iteration order.

    Args:
        query: The string to match against.
        candidates: Candidate strings.

    Returns:
        ``(candidate, score)``, or ``(None, 0.0)`` when there are no candidates.
    """
    best: Optional[str] = None
    best_score = 0.0
    for candidate in candidates:
        score = similarity(query, candidate)
        if best is None or score > best_score:
            best, best_score = candidate, score
    return best, best_score
