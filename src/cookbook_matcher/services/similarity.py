"""Edit-distance similarity between normalized strings."""

from rapidfuzz.distance import Levenshtein


def levenshtein_distance(first: str, second: str) -> int:
    """Return the unit-cost insert/delete/substitute distance."""
    return Levenshtein.distance(first, second)


def similarity(first: str, second: str) -> float:
    """Return a 0-100 score; two empty strings are identical."""
    max_length = max(len(first), len(second))
    if max_length == 0:
        return 100.0
    distance = levenshtein_distance(first, second)
    return 100.0 * (max_length - distance) / max_length
