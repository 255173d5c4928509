"""Factory for creating index store instances."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Dict

from .base import IndexStore
from .local import LocalIndexStore


def _clean_collection_name(name: str) -> str:
    name = re.sub(r'[^a-zA-Z0-9_-]', '_', name)
    if name and not name[0].isalpha() and name[0] != '_':
        name = '_' + name
    return name


def make_index_store(cfg: Dict) -> IndexStore:
    store_cfg = cfg.get("index_store", {})
    backend = str(store_cfg.get("backend", "local")).strip().lower()
    data_dir = Path(cfg.get("data_dir", "./data"))

    if backend == "local":
        return LocalIndexStore(
            data_dir / "index",
            keep_generations=int(store_cfg.get("keep_generations", 2)),
        )

    if backend == "qdrant":
        from .qdrant import QdrantIndexStore

        qdrant_cfg = store_cfg.get("qdrant", {})
        collection_name = _clean_collection_name(qdrant_cfg.get("collection") or "ragdesk_chunks")
        return QdrantIndexStore(
            collection_name=collection_name,
            lock_path=data_dir / f"{collection_name}.lock",
            host=qdrant_cfg.get("host", "localhost"),
            port=int(qdrant_cfg.get("port", 6333)),
            path=qdrant_cfg.get("path"),
            location=qdrant_cfg.get("location"),
        )

    raise ValueError(f"Invalid index_store.backend: {backend!r}")
