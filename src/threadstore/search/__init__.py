"""Trigram full-text search over message content."""

from threadstore.search.shingles import SHINGLE_SIZE, SearchTerms, parse_query, shingles
from threadstore.search.synchronizer import SearchIndexSynchronizer

__all__ = [
    "SHINGLE_SIZE",
    "SearchIndexSynchronizer",
    "SearchTerms",
    "parse_query",
    "shingles",
]
