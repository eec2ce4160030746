"""
Fuzzy matching for "Did you mean?" suggestions on unknown ids.
"""

from difflib import SequenceMatcher
from typing import Iterable, Optional


def similarity_ratio(a: str, b: str) -> float:
    """Case-insensitive SequenceMatcher ratio between two strings (0-1)."""
    if not a and not b:
        return 1.0
    return SequenceMatcher(None, a.lower(), b.lower()).ratio()


def find_similar(query: str, candidates: Iterable[str], threshold: float = 0.6) -> Optional[str]:
    """
    Find the most similar candidate to query.

    Args:
        query: The user's input
        candidates: Valid options
        threshold: Minimum similarity ratio (0-1) to suggest

    Returns:
        Best match if above threshold, None otherwise
    """
    best_match = None
    best_ratio = 0.0

    for candidate in candidates:
        ratio = similarity_ratio(query, candidate)
        if ratio > best_ratio:
            best_ratio = ratio
            best_match = candidate

    if best_match is not None and best_ratio >= threshold:
        return best_match

    return None


def suggest_idea(query: str, ideas: dict) -> Optional[str]:
    """Find a similar idea id in the index's ``ideas`` map."""
    return find_similar(query, sorted(ideas))


def suggest_story(query: str, stories: dict) -> Optional[str]:
    """Find a similar story id in the ledger's ``stories`` map."""
    return find_similar(query, sorted(stories))
