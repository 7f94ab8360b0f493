"""Vector index backends (Qdrant only)."""

from .base import IndexItem, IndexMatch, VectorIndex
from .factory import collection_name_for_project, make_qdrant_client, make_vector_index
from .qdrant import QdrantVectorIndex

__all__ = [
    "IndexItem",
    "IndexMatch",
    "VectorIndex",
    "QdrantVectorIndex",
    "collection_name_for_project",
    "make_qdrant_client",
    "make_vector_index",
]
