"""Qdrant vector database backend."""

from __future__ import annotations

import datetime as _dt
import logging
import uuid
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from qdrant_client import QdrantClient
from qdrant_client.models import (
    CreateAlias,
    CreateAliasOperation,
    DeleteAlias,
    DeleteAliasOperation,
    Distance,
    PointStruct,
    VectorParams,
)

from ..core.errors import IndexUnavailable
from ..core.models import IndexEntry
from ..core.vectors import as_matrix
from .base import IndexStore, LoadedIndex

logger = logging.getLogger(__name__)

MANIFEST_KEYS = ("cfg_fingerprint", "model", "created_at", "empty_sources")


def _point_id(chunk_id: str) -> str:
    return str(uuid.uuid5(uuid.NAMESPACE_URL, chunk_id))


class QdrantIndexStore(IndexStore):
    """Index stored in Qdrant collections behind an alias.

    Each persist fills a fresh collection and then repoints the alias in one
    alias update, so searches see either the old or the new generation.
    """

    def __init__(
        self,
        collection_name: str = "ragdesk_chunks",
        lock_path: Optional[Path] = None,
        host: str = "localhost",
        port: int = 6333,
        path: Optional[str] = None,
        location: Optional[str] = None,
        client: Optional[QdrantClient] = None,
        batch_size: int = 100,
    ):
        self.alias = collection_name
        self.batch_size = batch_size
        self.lock_path = Path(lock_path) if lock_path else Path(".ragdesk") / f"{collection_name}.lock"
        if client is None:
            if location:
                client = QdrantClient(location=location)
            elif path:
                client = QdrantClient(path=path)
            else:
                client = QdrantClient(host=host, port=port)
        self.client = client

    def current_generation(self) -> Optional[str]:
        for alias in self.client.get_aliases().aliases:
            if alias.alias_name == self.alias:
                return alias.collection_name
        return None

    def _require_generation(self) -> str:
        generation = self.current_generation()
        if generation is None:
            raise IndexUnavailable(f"Collection alias '{self.alias}' not found. Run ingestion first.")
        return generation

    def persist(self, entries: List[IndexEntry], manifest: Dict) -> str:
        matrix = as_matrix([e.vector for e in entries])
        vector_dim = int(matrix.shape[1]) if entries else 1

        stamp = _dt.datetime.now(_dt.timezone.utc)
        generation = f"{self.alias}__{stamp:%Y%m%dT%H%M%S%f}"
        self.client.create_collection(
            collection_name=generation,
            vectors_config=VectorParams(size=vector_dim, distance=Distance.COSINE),
        )

        shared = {key: manifest.get(key, "") for key in MANIFEST_KEYS}
        shared["created_at"] = shared["created_at"] or stamp.isoformat()
        shared["empty_sources"] = dict(manifest.get("empty_sources") or {})
        points = [
            PointStruct(
                id=_point_id(entry.id),
                vector=list(entry.vector),
                payload={
                    "chunk_id": entry.id,
                    "position": position,
                    "text": entry.text,
                    "metadata": entry.metadata,
                    **shared,
                },
            )
            for position, entry in enumerate(entries)
        ]

        try:
            self._upload(generation, points)
            self._swap_alias(generation)
        except Exception:
            logger.error(f"Persist into '{generation}' failed, dropping the partial collection")
            self.client.delete_collection(collection_name=generation)
            raise

        logger.info(f"Successfully saved {len(points)} records to collection '{generation}'")
        return generation

    def _upload(self, collection: str, points: List[PointStruct]) -> None:
        total_batches = (len(points) + self.batch_size - 1) // self.batch_size
        logger.info(f"Uploading {len(points)} points in {total_batches} batches")

        for i in range(0, len(points), self.batch_size):
            batch = points[i:i + self.batch_size]
            batch_num = i // self.batch_size + 1
            try:
                self.client.upsert(collection_name=collection, points=batch)
                logger.debug(f"Uploaded batch {batch_num}/{total_batches}")
            except Exception as e:
                raise RuntimeError(
                    f"Failed to upsert batch {batch_num}/{total_batches} "
                    f"(points {i}-{i+len(batch)}): {e}"
                ) from e

    def _swap_alias(self, generation: str) -> None:
        previous = self.current_generation()
        operations = []
        if previous is not None:
            operations.append(DeleteAliasOperation(delete_alias=DeleteAlias(alias_name=self.alias)))
        operations.append(
            CreateAliasOperation(create_alias=CreateAlias(collection_name=generation, alias_name=self.alias))
        )
        self.client.update_collection_aliases(change_aliases_operations=operations)
        if previous is not None and previous != generation:
            self.client.delete_collection(collection_name=previous)
            logger.info(f"Dropped previous generation '{previous}'")

    def _scroll(self, collection: str, with_vectors: bool, limit: int = 100) -> Iterator[Any]:
        offset = None
        while True:
            points, next_offset = self.client.scroll(
                collection_name=collection,
                limit=limit,
                offset=offset,
                with_payload=True,
                with_vectors=with_vectors,
            )
            yield from points
            if next_offset is None or not points:
                break
            offset = next_offset

    def load(self) -> LoadedIndex:
        generation = self._require_generation()
        points = sorted(self._scroll(generation, with_vectors=True), key=lambda p: p.payload["position"])
        entries = [
            IndexEntry(
                id=p.payload["chunk_id"],
                vector=list(p.vector),
                text=p.payload["text"],
                metadata=p.payload["metadata"],
            )
            for p in points
        ]
        manifest = self._manifest_from(points[0].payload if points else {}, generation, len(points))
        return LoadedIndex.from_entries(generation, entries, manifest)

    def load_metadata(self) -> List[Dict[str, Any]]:
        generation = self.current_generation()
        if generation is None:
            return []
        points = sorted(self._scroll(generation, with_vectors=False), key=lambda p: p.payload["position"])
        return [p.payload["metadata"] for p in points]

    @staticmethod
    def _manifest_from(payload: Dict[str, Any], generation: str, count: int) -> Dict[str, Any]:
        manifest = {key: payload[key] for key in MANIFEST_KEYS if payload.get(key)}
        manifest["generation"] = generation
        manifest["count"] = count
        return manifest

    def get_manifest(self) -> Optional[Dict[str, Any]]:
        generation = self.current_generation()
        if generation is None:
            return None
        points, _ = self.client.scroll(
            collection_name=generation,
            limit=1,
            with_payload=True,
            with_vectors=False,
        )
        count = self.client.count(collection_name=generation).count
        return self._manifest_from(points[0].payload if points else {}, generation, count)

    def clear(self) -> None:
        generation = self.current_generation()
        if generation is None:
            return
        self.client.update_collection_aliases(
            change_aliases_operations=[DeleteAliasOperation(delete_alias=DeleteAlias(alias_name=self.alias))]
        )
        self.client.delete_collection(collection_name=generation)
        logger.info(f"Cleared collection '{generation}'")
