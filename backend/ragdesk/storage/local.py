"""File-based index backend.

Layout under the store root::

    CURRENT                      name of the live generation
    generations/<name>/vectors.json   {"ids": [...], "vectors": [[...], ...]}
    generations/<name>/docs.json      {id: {"text": ..., "metadata": {...}}}
    generations/<name>/meta.json      [metadata, ...]
    generations/<name>/manifest.json  build info (fingerprint, model, dimension)

A generation is written completely into a temp directory, renamed into place,
and only then published by swapping ``CURRENT``.
"""

from __future__ import annotations

import datetime as _dt
import logging
import shutil
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..core.errors import DimensionMismatch, IndexCorrupted, IndexUnavailable
from ..core.models import IndexEntry
from ..core.vectors import as_matrix
from ..utils import atomic_write_text, ensure_dir, read_json, write_json
from .base import IndexStore, LoadedIndex

logger = logging.getLogger(__name__)

VECTORS_FILE = "vectors.json"
DOCS_FILE = "docs.json"
META_FILE = "meta.json"
MANIFEST_FILE = "manifest.json"


def _new_generation_name() -> str:
    now = _dt.datetime.now(_dt.timezone.utc)
    return f"{now:%Y%m%dT%H%M%S%f}-{uuid.uuid4().hex[:8]}"


class LocalIndexStore(IndexStore):

    def __init__(self, root: Path, keep_generations: int = 2):
        self.root = Path(root)
        self.generations_dir = self.root / "generations"
        self.pointer_path = self.root / "CURRENT"
        self.lock_path = self.root / ".lock"
        self.keep_generations = max(1, int(keep_generations))

    def current_generation(self) -> Optional[str]:
        try:
            name = self.pointer_path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        return name or None

    def _generation_dir(self, generation: str) -> Path:
        return self.generations_dir / generation

    def _current_dir(self) -> Path:
        generation = self.current_generation()
        if generation is None:
            raise IndexUnavailable()
        gen_dir = self._generation_dir(generation)
        if not gen_dir.is_dir():
            raise IndexCorrupted(
                f"CURRENT points to missing generation {generation!r}", stage="load"
            )
        return gen_dir

    def persist(self, entries: List[IndexEntry], manifest: Dict) -> str:
        vectors = [e.vector for e in entries]
        matrix = as_matrix(vectors)
        dimension = int(matrix.shape[1]) if entries else None

        generation = _new_generation_name()
        ensure_dir(self.generations_dir)
        tmp_dir = self.generations_dir / f".{generation}.tmp"
        ensure_dir(tmp_dir)

        ids = [e.id for e in entries]
        full_manifest = dict(manifest)
        full_manifest.update({
            "generation": generation,
            "created_at": _dt.datetime.now(_dt.timezone.utc).isoformat(),
            "count": len(entries),
            "dimension": dimension,
        })

        try:
            write_json(tmp_dir / VECTORS_FILE, {"ids": ids, "vectors": vectors})
            write_json(
                tmp_dir / DOCS_FILE,
                {e.id: {"text": e.text, "metadata": e.metadata} for e in entries},
            )
            write_json(tmp_dir / META_FILE, [e.metadata for e in entries], indent=2)
            write_json(tmp_dir / MANIFEST_FILE, full_manifest, indent=2)
            tmp_dir.rename(self._generation_dir(generation))
        except Exception:
            shutil.rmtree(tmp_dir, ignore_errors=True)
            raise

        atomic_write_text(self.pointer_path, generation + "\n")
        logger.info(f"Persisted generation {generation} with {len(entries)} chunks to {self.root}")
        self._prune(keep=generation)
        return generation

    def _prune(self, keep: str) -> None:
        generations = sorted(
            p.name for p in self.generations_dir.iterdir()
            if p.is_dir() and not p.name.startswith(".")
        )
        older = [g for g in generations if g != keep]
        retain = set(older[-(self.keep_generations - 1):]) if self.keep_generations > 1 else set()
        for name in older:
            if name in retain:
                continue
            logger.debug(f"Pruning old generation {name}")
            shutil.rmtree(self._generation_dir(name), ignore_errors=True)

    def load(self) -> LoadedIndex:
        gen_dir = self._current_dir()
        vector_data = read_json(gen_dir / VECTORS_FILE)
        docs = read_json(gen_dir / DOCS_FILE)
        manifest = self._read_manifest(gen_dir)

        ids = vector_data.get("ids", [])
        vectors = vector_data.get("vectors", [])
        if len(ids) != len(vectors):
            raise IndexCorrupted(
                f"{len(ids)} ids but {len(vectors)} vectors in generation {gen_dir.name}",
                stage="load",
            )

        entries = []
        for chunk_id, vector in zip(ids, vectors):
            doc = docs.get(chunk_id)
            if doc is None:
                raise IndexCorrupted(f"Chunk {chunk_id} has a vector but no document", stage="load")
            entries.append(IndexEntry(id=chunk_id, vector=vector, text=doc["text"], metadata=doc["metadata"]))

        index = LoadedIndex.from_entries(gen_dir.name, entries, manifest)
        expected = manifest.get("dimension")
        if expected is not None and index.dimension is not None and index.dimension != expected:
            raise DimensionMismatch(
                f"Manifest declares dimension {expected} but vectors have {index.dimension}",
                stage="load",
            )
        return index

    def load_metadata(self) -> List[Dict[str, Any]]:
        try:
            gen_dir = self._current_dir()
        except IndexUnavailable:
            return []
        return read_json(gen_dir / META_FILE)

    def _read_manifest(self, gen_dir: Path) -> Dict[str, Any]:
        path = gen_dir / MANIFEST_FILE
        if not path.exists():
            return {}
        return read_json(path)

    def get_manifest(self) -> Optional[Dict[str, Any]]:
        try:
            gen_dir = self._current_dir()
        except IndexUnavailable:
            return None
        return self._read_manifest(gen_dir)

    def clear(self) -> None:
        try:
            self.pointer_path.unlink()
        except FileNotFoundError:
            pass
        shutil.rmtree(self.generations_dir, ignore_errors=True)
        logger.info(f"Cleared index at {self.root}")
