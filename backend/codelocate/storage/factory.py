"""Factory for creating vector index instances (Qdrant only)."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, Optional

from qdrant_client import QdrantClient

from .base import VectorIndex
from .qdrant import QdrantVectorIndex


def collection_name_for_project(repo_path: Path) -> str:
    name = Path(repo_path).name or "default"
    name = re.sub(r"[^a-zA-Z0-9_-]", "_", name)
    if not name[0].isalpha() and name[0] != "_":
        name = "_" + name
    return name


def make_qdrant_client(cfg: Dict) -> QdrantClient:
    qdrant_cfg = cfg.get("vector_store", {}).get("qdrant", {})
    if qdrant_cfg.get("location"):
        return QdrantClient(location=qdrant_cfg["location"])
    if qdrant_cfg.get("url"):
        return QdrantClient(url=qdrant_cfg["url"])
    return QdrantClient(host=qdrant_cfg.get("host", "localhost"), port=int(qdrant_cfg.get("port", 6333)))


def make_vector_index(
    cfg: Dict,
    repo_path: Optional[Path] = None,
    collection_name: Optional[str] = None,
    client: Optional[QdrantClient] = None,
) -> VectorIndex:
    """Create the vector index for a project.

    The collection name comes from ``collection_name``, then
    ``vector_store.qdrant.collection``, then the project directory name.
    """
    collection_name = collection_name or cfg.get("vector_store", {}).get("qdrant", {}).get("collection")
    if not collection_name:
        if repo_path is None:
            raise ValueError("Either collection_name or repo_path is required")
        collection_name = collection_name_for_project(repo_path)

    batch_size = int(cfg.get("vector_store", {}).get("batch_size", 128))
    return QdrantVectorIndex(
        client=client or make_qdrant_client(cfg),
        collection_name=collection_name,
        batch_size=batch_size,
    )
