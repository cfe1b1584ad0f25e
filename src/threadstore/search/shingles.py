"""
Shingle tokenization helpers.

The search index splits content into overlapping 3-character windows (SQLite's
``trigram`` tokenizer), so any substring of at least three characters can be
matched without language-aware stemming. These helpers mirror that policy on
the query side.
"""

from dataclasses import dataclass, field
from typing import Optional

from threadstore.exceptions import SearchQueryError

SHINGLE_SIZE = 3


def shingles(text: str, size: int = SHINGLE_SIZE) -> list[str]:
    """
    Split text into overlapping fixed-length character windows.

    Text shorter than ``size`` yields no shingles.

    Example:
        >>> shingles("hello")
        ['hel', 'ell', 'llo']
    """
    if size <= 0:
        raise ValueError("shingle size must be positive")
    return [text[i : i + size] for i in range(len(text) - size + 1)]


@dataclass
class SearchTerms:
    """
    A free-text query split for index lookup.

    The whole query is matched as a literal substring of content. Its
    whitespace-separated terms of at least SHINGLE_SIZE characters narrow
    candidates through the index; shorter terms and, when the query holds
    whitespace, the full query are applied as substring filters.
    """

    indexed: list[str] = field(default_factory=list)
    short: list[str] = field(default_factory=list)
    phrase: Optional[str] = None  # Raw query when it contains whitespace

    @property
    def match_expression(self) -> str:
        """
        FTS5 MATCH expression requiring every indexed term.

        Each term is quoted as a phrase so punctuation in free text is never
        read as query syntax.
        """
        return " AND ".join(_quote(term) for term in self.indexed)


def _quote(term: str) -> str:
    return '"' + term.replace('"', '""') + '"'


def parse_query(query: str) -> SearchTerms:
    """
    Split a free-text query on whitespace.

    Terms of at least SHINGLE_SIZE characters go through the index; shorter
    ones cannot produce a shingle and are matched as plain substrings. A
    query containing whitespace is also kept whole, so "o w" only matches
    content where those characters are adjacent, and a whitespace-only query
    is a pure substring scan.

    Raises:
        SearchQueryError: If the query is empty
    """
    if not query:
        raise SearchQueryError("search query must not be empty")

    terms = query.split()
    parsed = SearchTerms()
    if terms != [query]:
        parsed.phrase = query
    for term in terms:
        if len(term) >= SHINGLE_SIZE:
            parsed.indexed.append(term)
        else:
            parsed.short.append(term)
    return parsed
