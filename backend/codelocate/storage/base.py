"""Abstract vector index interface."""

from __future__ import annotations

import dataclasses
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Set


@dataclasses.dataclass
class IndexItem:
    """One vector to write, keyed by ``id``."""

    id: str
    vector: List[float]
    metadata: Dict[str, str]


@dataclasses.dataclass
class IndexMatch:
    """One nearest-neighbour result."""

    id: str
    score: float
    metadata: Dict[str, str]


class VectorIndex(ABC):
    """Abstract base class for vector index backends."""

    @abstractmethod
    def upsert(self, items: List[IndexItem]) -> None:
        """Insert or replace items by id (last write wins)."""
        pass

    @abstractmethod
    def query(self, vector: List[float], top_k: int, include_metadata: bool = True) -> List[IndexMatch]:
        """Return up to ``top_k`` matches sorted by descending similarity."""
        pass

    @abstractmethod
    def delete(self, ids: Iterable[str]) -> None:
        """Delete items by id; unknown ids are ignored."""
        pass

    @abstractmethod
    def keys(self, file_path: Optional[str] = None, project: Optional[str] = None) -> Set[str]:
        """Ids of stored items, optionally restricted by file or project metadata."""
        pass

    @abstractmethod
    def count(self) -> int:
        pass

    @abstractmethod
    def clear(self) -> None:
        """Drop every item."""
        pass

    def exists(self) -> bool:
        """Check if the index holds any data."""
        return self.count() > 0
