"""Qdrant vector database backend."""

from __future__ import annotations

import logging
import uuid
from typing import Dict, Iterable, Iterator, List, Optional, Set

from qdrant_client import QdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    MatchValue,
    PayloadSchemaType,
    PointIdsList,
    PointStruct,
    VectorParams,
)

from ..exceptions import IndexServiceError
from .base import IndexItem, IndexMatch, VectorIndex

logger = logging.getLogger(__name__)

# Qdrant only accepts UUIDs or integers as point ids; string keys are mapped
# with uuid5 and kept in the payload under KEY_FIELD.
KEY_FIELD = "key"
_KEY_NAMESPACE = uuid.UUID("6f1c3a52-8d0e-4b8f-9a47-2c5e0b7d41aa")
_INDEXED_FIELDS = ("file_path", "project")


def point_id(key: str) -> str:
    return str(uuid.uuid5(_KEY_NAMESPACE, key))


class QdrantVectorIndex(VectorIndex):

    def __init__(self, client: QdrantClient, collection_name: str, batch_size: int = 128):
        self.client = client
        self.collection_name = collection_name
        self.batch_size = max(1, batch_size)

    def _collection_exists(self) -> bool:
        try:
            return self.client.collection_exists(collection_name=self.collection_name)
        except Exception as e:
            raise IndexServiceError(f"Cannot reach collection '{self.collection_name}': {e}") from e

    def _get_collection_vector_dim(self) -> Optional[int]:
        if not self._collection_exists():
            return None
        info = self.client.get_collection(collection_name=self.collection_name)
        return info.config.params.vectors.size

    def _ensure_collection(self, vector_dim: int) -> None:
        existing_dim = self._get_collection_vector_dim()
        if existing_dim is not None:
            if existing_dim != vector_dim:
                raise IndexServiceError(
                    f"Collection '{self.collection_name}' exists with dimension {existing_dim}, "
                    f"but items have dimension {vector_dim}. Please delete the collection and re-index."
                )
            return

        try:
            self.client.create_collection(
                collection_name=self.collection_name,
                vectors_config=VectorParams(size=vector_dim, distance=Distance.COSINE),
            )
            for field_name in _INDEXED_FIELDS:
                self.client.create_payload_index(
                    collection_name=self.collection_name,
                    field_name=field_name,
                    field_schema=PayloadSchemaType.KEYWORD,
                )
        except Exception as e:
            raise IndexServiceError(f"Failed to create collection '{self.collection_name}': {e}") from e
        logger.info(f"Created collection '{self.collection_name}' (dim={vector_dim})")

    def _batches(self, items: List[IndexItem]) -> Iterator[List[IndexItem]]:
        """Pack items into batches without splitting one file's items across batches."""
        groups: Dict[str, List[IndexItem]] = {}
        for item in items:
            groups.setdefault(item.metadata.get("file_path", ""), []).append(item)

        batch: List[IndexItem] = []
        for group in groups.values():
            if batch and len(batch) + len(group) > self.batch_size:
                yield batch
                batch = []
            batch.extend(group)
        if batch:
            yield batch

    def upsert(self, items: List[IndexItem]) -> None:
        if not items:
            logger.warning("No items to upsert")
            return

        vector_dim = len(items[0].vector)
        if vector_dim <= 0:
            raise IndexServiceError("Items must contain embeddings (non-empty 'vector').")
        for item in items:
            if len(item.vector) != vector_dim:
                raise IndexServiceError(
                    f"Item {item.id} has different dimension: {len(item.vector)} vs expected {vector_dim}"
                )

        self._ensure_collection(vector_dim=vector_dim)

        batches = list(self._batches(items))
        logger.info(f"Upserting {len(items)} points in {len(batches)} batches")
        for batch_num, batch in enumerate(batches, start=1):
            points = [
                PointStruct(
                    id=point_id(item.id),
                    vector=item.vector,
                    payload={**item.metadata, KEY_FIELD: item.id},
                )
                for item in batch
            ]
            try:
                self.client.upsert(collection_name=self.collection_name, points=points, wait=True)
            except Exception as e:
                raise IndexServiceError(
                    f"Failed to upsert batch {batch_num}/{len(batches)} ({len(points)} points): {e}"
                ) from e
            logger.debug(f"Uploaded batch {batch_num}/{len(batches)}")

    def query(self, vector: List[float], top_k: int, include_metadata: bool = True) -> List[IndexMatch]:
        """Search using Qdrant's vector search."""
        if top_k <= 0 or not self._collection_exists():
            return []

        try:
            results = self.client.query_points(
                collection_name=self.collection_name,
                query=vector,
                limit=top_k,
                with_payload=True if include_metadata else [KEY_FIELD],
                with_vectors=False,
            )
        except Exception as e:
            raise IndexServiceError(f"Error searching in collection '{self.collection_name}': {e}") from e

        matches: List[IndexMatch] = []
        for result in results.points:
            payload = dict(result.payload or {})
            key = payload.pop(KEY_FIELD, str(result.id))
            matches.append(
                IndexMatch(
                    id=key,
                    score=float(result.score),
                    metadata={k: str(v) for k, v in payload.items()} if include_metadata else {},
                )
            )
        return matches

    def delete(self, ids: Iterable[str]) -> None:
        point_ids = [point_id(key) for key in ids]
        if not point_ids or not self._collection_exists():
            return
        try:
            self.client.delete(
                collection_name=self.collection_name,
                points_selector=PointIdsList(points=point_ids),
                wait=True,
            )
        except Exception as e:
            raise IndexServiceError(f"Failed to delete {len(point_ids)} points: {e}") from e
        logger.info(f"Deleted {len(point_ids)} points from '{self.collection_name}'")

    def keys(self, file_path: Optional[str] = None, project: Optional[str] = None) -> Set[str]:
        if not self._collection_exists():
            return set()

        conditions = []
        if file_path is not None:
            conditions.append(FieldCondition(key="file_path", match=MatchValue(value=file_path)))
        if project is not None:
            conditions.append(FieldCondition(key="project", match=MatchValue(value=project)))
        scroll_filter = Filter(must=conditions) if conditions else None

        found: Set[str] = set()
        offset = None
        try:
            while True:
                points, next_offset = self.client.scroll(
                    collection_name=self.collection_name,
                    scroll_filter=scroll_filter,
                    limit=256,
                    offset=offset,
                    with_payload=[KEY_FIELD],
                    with_vectors=False,
                )
                for p in points:
                    payload = p.payload or {}
                    found.add(payload.get(KEY_FIELD, str(p.id)))
                if next_offset is None:
                    break
                offset = next_offset
        except Exception as e:
            raise IndexServiceError(f"Failed to list points in '{self.collection_name}': {e}") from e
        return found

    def count(self) -> int:
        """Count points in the collection."""
        if not self._collection_exists():
            return 0
        try:
            return self.client.count(collection_name=self.collection_name, exact=True).count
        except Exception as e:
            raise IndexServiceError(f"Failed to count points in '{self.collection_name}': {e}") from e

    def clear(self) -> None:
        """Delete the whole collection; it is recreated on the next upsert."""
        if not self._collection_exists():
            return
        try:
            self.client.delete_collection(collection_name=self.collection_name)
        except Exception as e:
            raise IndexServiceError(f"Error clearing collection '{self.collection_name}': {e}") from e
