"""Domain layer: fuzzy name matching for ambiguous lookups."""
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Tuple

from rapidfuzz.distance import Levenshtein

EXACT = "exact"
STARTS_WITH = "startsWith"
SUBSTRING = "substring"
FUZZY = "fuzzy"
WORD_STARTS_WITH = "wordStartsWith"
WORD_SUBSTRING = "wordSubstring"
WORD_FUZZY = "wordFuzzy"

DEFAULT_MIN_SCORE = 0.6


@dataclass(frozen=True)
class MatchCandidate:
    record: Any
    score: float
    match_type: str


def levenshtein_distance(a: str, b: str) -> int:
    """Case-insensitive edit distance (insert, delete, substitute)."""
    return Levenshtein.distance(a, b, processor=str.lower)


def similarity(a: str, b: str) -> float:
    """1 - distance / longer length; two empty strings are identical."""
    return Levenshtein.normalized_similarity(a, b, processor=str.lower)


def fuzzy_match(query: str, name: str) -> Optional[Tuple[float, str]]:
    """Classify how a query relates to a name.

    Rules are checked in a fixed order and the first one that fires wins:
    exact (1.0), starts-with (0.9), substring (0.7), whole-name similarity,
    then the same checks per word of a multi-word name (0.8, 0.65,
    similarity * 0.9). Returns (score, match_type) or None.
    """
    if not query or not name:
        return None
    q = query.lower().strip()
    n = name.lower().strip()
    if not q or not n:
        return None

    if q == n:
        return 1.0, EXACT
    if len(q) >= 2 and n.startswith(q):
        return 0.9, STARTS_WITH
    if len(q) >= 2 and q in n:
        return 0.7, SUBSTRING
    sim = similarity(q, n)
    if sim >= 0.6:
        return sim, FUZZY

    for word in n.split():
        if len(q) >= 2 and word.startswith(q):
            return 0.8, WORD_STARTS_WITH
        if len(q) >= 2 and q in word:
            return 0.65, WORD_SUBSTRING
        word_sim = similarity(q, word)
        if word_sim >= 0.6:
            return word_sim * 0.9, WORD_FUZZY
    return None


def find_fuzzy_matches(query: str, records: Iterable[Any], min_score: float = DEFAULT_MIN_SCORE) -> List[MatchCandidate]:
    """Rank records whose ``name`` matches the query at or above min_score.

    Sorted by descending score, ties broken by case-insensitive name.
    """
    if not query or not query.strip():
        return []
    matches = []
    for record in records or []:
        result = fuzzy_match(query, getattr(record, "name", "") or "")
        if result and result[0] >= min_score:
            matches.append(MatchCandidate(record=record, score=result[0], match_type=result[1]))
    matches.sort(key=lambda m: (-m.score, m.record.name.casefold()))
    return matches
