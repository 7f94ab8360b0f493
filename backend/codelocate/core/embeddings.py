"""Embedding models for semantic search."""

from __future__ import annotations

import functools
import logging
import threading
from typing import Dict, List

import tiktoken

from ..exceptions import EmbeddingServiceError

logger = logging.getLogger(__name__)


@functools.lru_cache(maxsize=1)
def _encoder():
    # cl100k_base is compatible with most modern models
    return tiktoken.get_encoding("cl100k_base")


def truncate_to_tokens(text: str, max_tokens: int) -> str:
    """Cut ``text`` to at most ``max_tokens`` tokens.

    Every token covers at least one UTF-8 byte, so text whose byte length is
    within the limit is returned without encoding it.
    """
    if max_tokens <= 0 or len(text.encode("utf-8")) <= max_tokens:
        return text
    tokens = _encoder().encode(text)
    if len(tokens) <= max_tokens:
        return text
    return _encoder().decode(tokens[:max_tokens])


class Embedder:
    """Abstract base class for embedding models.

    Implementations return unit-norm vectors of a fixed length, so cosine
    similarity is a dot product. ``reentrant`` tells the indexer whether
    ``embed`` may be called from several worker threads at once.
    """

    reentrant: bool = False

    def embed(self, texts: List[str]) -> List[List[float]]:
        """Embed multiple texts into vectors."""
        raise NotImplementedError

    def embed_one(self, text: str) -> List[float]:
        """Embed a single text into a vector."""
        return self.embed([text])[0]


class SentenceTransformersEmbedder(Embedder):
    """Embedder using SentenceTransformers library.

    The model is loaded on first use, once per instance; create one instance
    per process and share it.
    """

    reentrant = False

    def __init__(self, model_name: str, max_input_tokens: int = 512) -> None:
        self.model_name = model_name
        self.max_input_tokens = max_input_tokens
        self._model = None
        self._lock = threading.Lock()
        self._encode_lock = threading.Lock()

    @property
    def model(self):
        if self._model is None:
            with self._lock:
                if self._model is None:
                    self._model = self._load()
        return self._model

    def _load(self):
        logger.info(f"Loading embedding model {self.model_name}")
        try:
            from sentence_transformers import SentenceTransformer  # type: ignore
            return SentenceTransformer(self.model_name)
        except Exception as e:
            raise EmbeddingServiceError(
                f"Could not load sentence-transformers model {self.model_name!r}: {e}"
            ) from e

    def embed(self, texts: List[str]) -> List[List[float]]:
        """Embed texts using SentenceTransformers model."""
        if not texts:
            return []
        model = self.model
        inputs = [truncate_to_tokens(t, self.max_input_tokens) for t in texts]
        try:
            with self._encode_lock:
                arr = model.encode(inputs, normalize_embeddings=True, show_progress_bar=False)
        except Exception as e:
            raise EmbeddingServiceError(f"Embedding failed for {len(texts)} texts: {e}") from e
        return [row.tolist() for row in arr]


def make_embedder(cfg: Dict) -> Embedder:
    """Create embedder from config.

    Raises:
        EmbeddingServiceError: If the configured backend is unknown.
    """
    emb_cfg = cfg.get("embedding", {})
    backend = str(emb_cfg.get("backend", "sentence_transformers")).strip().lower()
    if backend != "sentence_transformers":
        raise EmbeddingServiceError(f"Invalid embedding.backend: {backend!r}")

    model_name = emb_cfg.get("sentence_transformers_model", "sentence-transformers/all-MiniLM-L6-v2")
    return SentenceTransformersEmbedder(model_name, max_input_tokens=int(emb_cfg.get("max_input_tokens", 512)))
