"""
Edit-distance based fuzzy matching for typo-tolerant keyword detection.
"""
from typing import Iterable, Optional, Tuple

from rapidfuzz.distance import Levenshtein


def similarity(a: str, b: str) -> float:
    """
    Normalized edit-distance similarity between two strings.

    Returns 1 - distance / max(len(a), len(b)); identical strings score 1.0.
    """
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - (Levenshtein.distance(a, b) / longest)


def find_best_match(word: str, candidates: Iterable[str], threshold: float = 0.75) -> Optional[Tuple[str, float]]:
    """
    Find the candidate most similar to `word`.

    Args:
        word: The token to match
        candidates: Keywords to compare against
        threshold: Minimum similarity for a candidate to be accepted

    Returns:
        (keyword, score) of the best accepted candidate, or None
    """
    best = None
    best_score = -1.0
    for candidate in candidates:
        score = similarity(word, candidate)
        if score >= threshold and score > best_score:
            best = candidate
            best_score = score
    if best is None:
        return None
    return best, best_score
