"""
Tests for shingle tokenization and query parsing.
"""

import pytest

from threadstore.exceptions import SearchQueryError
from threadstore.search.shingles import SHINGLE_SIZE, parse_query, shingles


class TestShingles:
    """Tests for shingles()."""

    def test_overlapping_windows(self):
        """Test that windows overlap by size - 1."""
        assert shingles("hello") == ["hel", "ell", "llo"]

    def test_text_of_exactly_one_shingle(self):
        assert shingles("abc") == ["abc"]

    def test_short_text_has_no_shingles(self):
        """Test text shorter than the window."""
        assert shingles("hi") == []
        assert shingles("") == []

    def test_custom_size(self):
        assert shingles("abcd", size=2) == ["ab", "bc", "cd"]

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            shingles("abc", size=0)

    def test_default_is_trigram(self):
        assert SHINGLE_SIZE == 3


class TestParseQuery:
    """Tests for parse_query()."""

    def test_splits_indexed_and_short_terms(self):
        """Test partition by shingle size."""
        terms = parse_query("hello to world")

        assert terms.indexed == ["hello", "world"]
        assert terms.short == ["to"]

    def test_match_expression_quotes_terms(self):
        """Test that punctuation is kept inside quoted phrases."""
        terms = parse_query("foo-bar baz")

        assert terms.match_expression == '"foo-bar" AND "baz"'

    def test_match_expression_escapes_quotes(self):
        """Test that embedded double quotes are doubled."""
        terms = parse_query('say"hi')

        assert terms.match_expression == '"say""hi"'

    def test_empty_query_rejected(self):
        """Test that an empty query is reported."""
        with pytest.raises(SearchQueryError):
            parse_query("")

    def test_single_term_has_no_phrase(self):
        assert parse_query("hello").phrase is None

    def test_query_with_whitespace_kept_whole(self):
        """Test that inner whitespace makes the whole query a substring filter."""
        terms = parse_query("o w")

        assert terms.phrase == "o w"
        assert terms.short == ["o", "w"]
        assert terms.indexed == []

    @pytest.mark.parametrize("query", ["   ", "\t\n", " "])
    def test_whitespace_only_query_is_substring_scan(self, query):
        """Test that whitespace-only queries become a raw substring match."""
        terms = parse_query(query)

        assert terms.phrase == query
        assert terms.indexed == []
        assert terms.short == []
