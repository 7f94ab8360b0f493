"""Semantic search over the code index."""

from .searcher import NO_MATCHES_MESSAGE, SearchHit, SemanticSearcher, format_matches, make_searcher

__all__ = [
    "NO_MATCHES_MESSAGE",
    "SearchHit",
    "SemanticSearcher",
    "format_matches",
    "make_searcher",
]
