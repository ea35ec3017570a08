"""
Unit tests for fuzzy name matching.
"""
import pytest

from app.domain.fuzzy_match import (
    EXACT,
    FUZZY,
    STARTS_WITH,
    SUBSTRING,
    WORD_FUZZY,
    find_fuzzy_matches,
    fuzzy_match,
    levenshtein_distance,
    similarity,
)
from tests.conftest import record


class TestDistance:

    def test_levenshtein_is_case_insensitive(self):
        assert levenshtein_distance("Papa", "papa") == 0
        assert levenshtein_distance("kitten", "sitting") == 3

    def test_similarity_bounds(self):
        assert similarity("", "") == 1.0
        assert similarity("abc", "xyz") == 0.0

    def test_similarity_is_normalized_by_longer_name(self):
        assert similarity("Varun", "VARN") == pytest.approx(0.8)
        assert similarity("Tanni", "tanvi") == pytest.approx(0.8)


class TestFuzzyMatch:

    @pytest.mark.parametrize("name", ["Papa", "Aunt Rosy", "x", "ÉLODIE"])
    def test_identical_strings_are_exact(self, name):
        assert fuzzy_match(name.lower(), name) == (1.0, EXACT)

    def test_rule_order(self):
        assert fuzzy_match("var", "Varun") == (0.9, STARTS_WITH)
        assert fuzzy_match("run", "Varun") == (0.7, SUBSTRING)

    def test_whole_name_similarity(self):
        score, match_type = fuzzy_match("Vaurn", "Varun")
        assert match_type == FUZZY
        assert score == pytest.approx(0.6)

    def test_word_level_rules(self):
        # A query inside the full name is a substring match before any per-word rule
        assert fuzzy_match("ros", "Aunt Rosy") == (0.7, SUBSTRING)
        assert fuzzy_match("rosie", "Aunt Rosy")[1] == WORD_FUZZY

    def test_single_character_query_only_matches_exactly(self):
        assert fuzzy_match("v", "Varun") is None

    def test_empty_inputs(self):
        assert fuzzy_match("", "Papa") is None
        assert fuzzy_match("Papa", "") is None


class TestFindFuzzyMatches:

    def test_sorted_by_score_then_name(self):
        records = [record("Varun", 1, "Jan"), record("Arun", 2, "Feb"), record("arun", 3, "Mar"), record("Papa", 4, "Apr")]
        matches = find_fuzzy_matches("arun", records)
        names = [m.record.name for m in matches]
        assert names[:2] in (["Arun", "arun"], ["arun", "Arun"])
        assert names[2] == "Varun"
        assert "Papa" not in names
        scores = [m.score for m in matches]
        assert scores == sorted(scores, reverse=True)

    def test_ties_broken_by_case_insensitive_name(self):
        records = [record("Zed Ravi", 1, "Jan"), record("amy ravi", 2, "Feb")]
        matches = find_fuzzy_matches("ravi", records)
        assert [m.record.name for m in matches] == ["amy ravi", "Zed Ravi"]

    def test_min_score_filters(self):
        records = [record("Varun", 1, "Jan")]
        assert find_fuzzy_matches("run", records, min_score=0.8) == []

    def test_empty_query_or_records(self):
        assert find_fuzzy_matches("", [record("Papa", 1, "Jan")]) == []
        assert find_fuzzy_matches("Papa", []) == []
