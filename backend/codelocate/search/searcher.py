"""Semantic search functionality."""

from __future__ import annotations

import dataclasses
import logging
from typing import Dict, List, Optional

from ..core import Embedder
from ..exceptions import EmbeddingServiceError
from ..storage import IndexMatch, VectorIndex

logger = logging.getLogger(__name__)

NO_MATCHES_MESSAGE = "No similar matches found."


@dataclasses.dataclass
class SearchHit:
    file: str
    token: str
    snippet: str
    score: str

    def as_dict(self) -> Dict[str, str]:
        return dataclasses.asdict(self)


def _to_hit(match: IndexMatch) -> SearchHit:
    meta = match.metadata or {}
    return SearchHit(
        file=meta.get("filename") or "Unknown file",
        token=meta.get("token") or "[Unknown]",
        snippet=meta.get("code") or "[No code]",
        score=f"{match.score:.3f}",
    )


class SemanticSearcher:
    """Answers "where is this implemented" queries by vector similarity alone."""

    def __init__(self, embedder: Embedder, index: VectorIndex, top_k: int = 3) -> None:
        self.embedder = embedder
        self.index = index
        self.top_k = top_k

    def search(self, query: str, top_k: Optional[int] = None) -> List[SearchHit]:
        """Return at most ``top_k`` hits, best first; an empty list when nothing matches.

        Raises:
            EmbeddingServiceError: The query could not be embedded.
            IndexServiceError: The vector index could not be queried.
        """
        limit = self.top_k if top_k is None else top_k
        if not query or not query.strip() or limit <= 0:
            return []

        try:
            vector = self.embedder.embed_one(query)
        except EmbeddingServiceError:
            raise
        except Exception as e:
            raise EmbeddingServiceError(f"Could not embed query: {e}") from e

        matches = self.index.query(vector, limit, include_metadata=True)
        matches = sorted(matches, key=lambda m: m.score, reverse=True)[:limit]
        logger.debug(f"Query {query!r} matched {len(matches)} units")
        return [_to_hit(m) for m in matches]


def make_searcher(cfg: Dict, embedder: Embedder, index: VectorIndex) -> SemanticSearcher:
    top_k = int(cfg.get("search", {}).get("top_k", 3))
    return SemanticSearcher(embedder, index, top_k=top_k)


def format_matches(hits: List[SearchHit], max_chars: int = 1200) -> str:
    """Render hits as the message shown to a user of the find-function tool."""
    if not hits:
        return NO_MATCHES_MESSAGE
    parts = []
    for hit in hits:
        snippet = hit.snippet
        if len(snippet) > max_chars:
            snippet = snippet[:max_chars] + "\n...(truncated)...\n"
        parts.append(f"{hit.file} ({hit.token})\n```\n{snippet.rstrip()}\n```\nSimilarity: {hit.score}")
    return "Function matches found:\n\n" + "\n\n".join(parts)
