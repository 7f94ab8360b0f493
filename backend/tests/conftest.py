from __future__ import annotations

import hashlib
import math
import re
from pathlib import Path
from typing import List

import pytest
from qdrant_client import QdrantClient

from codelocate.config import load_config
from codelocate.core import Embedder
from codelocate.storage import QdrantVectorIndex

DIM = 4096
_WORD = re.compile(r"[A-Z]?[a-z]+|[A-Z]+(?![a-z])|[0-9]+")


class BagOfWordsEmbedder(Embedder):
    """Deterministic unit-norm embedder: hashed counts of camelCase-split words."""

    reentrant = True

    def __init__(self) -> None:
        self.calls: List[List[str]] = []

    def embed(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        return [self._vector(t) for t in texts]

    @staticmethod
    def _vector(text: str) -> List[float]:
        vec = [0.0] * DIM
        for word in _WORD.findall(text):
            bucket = int(hashlib.md5(word.lower().encode("utf-8")).hexdigest(), 16) % DIM
            vec[bucket] += 1.0
        norm = math.sqrt(sum(v * v for v in vec))
        if norm == 0:
            vec[0] = 1.0
            return vec
        return [v / norm for v in vec]


class RecordingIndex(QdrantVectorIndex):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.upsert_calls: List[list] = []

    def upsert(self, items):
        self.upsert_calls.append(list(items))
        super().upsert(items)


def write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def unit_ids(index: QdrantVectorIndex) -> set:
    return {key.partition("::")[2] for key in index.keys()}


@pytest.fixture
def embedder() -> BagOfWordsEmbedder:
    return BagOfWordsEmbedder()


@pytest.fixture
def index() -> RecordingIndex:
    return RecordingIndex(QdrantClient(location=":memory:"), "test_units", batch_size=128)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def cfg(project: Path):
    return load_config(project, overrides={"vector_store": {"qdrant": {"location": ":memory:"}}})
