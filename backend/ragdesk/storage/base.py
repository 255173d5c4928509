"""Abstract index storage interface."""

from __future__ import annotations

import dataclasses
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np

from ..core.errors import IndexCorrupted
from ..core.models import IndexEntry
from ..core.vectors import as_matrix
from .lock import IndexLock


@dataclasses.dataclass
class LoadedIndex:
    """An in-memory index ready for similarity search."""

    generation: str
    ids: List[str]
    matrix: np.ndarray
    entries: Dict[str, IndexEntry]
    manifest: Dict[str, Any] = dataclasses.field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.ids)

    @property
    def dimension(self) -> Optional[int]:
        if not self.ids:
            return None
        return int(self.matrix.shape[1])

    def ordered_entries(self) -> List[IndexEntry]:
        return [self.entries[i] for i in self.ids]

    @classmethod
    def from_entries(
        cls,
        generation: str,
        entries: List[IndexEntry],
        manifest: Optional[Dict[str, Any]] = None,
    ) -> "LoadedIndex":
        ids = [e.id for e in entries]
        if len(set(ids)) != len(ids):
            raise IndexCorrupted(f"Generation {generation} contains duplicate chunk ids")
        matrix = as_matrix([e.vector for e in entries])
        return cls(
            generation=generation,
            ids=ids,
            matrix=matrix,
            entries={e.id: e for e in entries},
            manifest=dict(manifest or {}),
        )


class IndexStore(ABC):
    """Abstract base class for index storage backends.

    Every ``persist`` writes the complete entry set. Readers never observe a
    partially written index.
    """

    lock_path: Path

    @abstractmethod
    def persist(self, entries: List[IndexEntry], manifest: Dict) -> str:
        """Replace the index with entries. Returns the new generation name."""
        pass

    @abstractmethod
    def load(self) -> LoadedIndex:
        """Load the current generation. Raises IndexUnavailable if none exists."""
        pass

    @abstractmethod
    def load_metadata(self) -> List[Dict[str, Any]]:
        """Flat per-chunk metadata snapshot of the current generation ([] if none)."""
        pass

    @abstractmethod
    def get_manifest(self) -> Optional[Dict[str, Any]]:
        """Manifest of the current generation, or None."""
        pass

    @abstractmethod
    def current_generation(self) -> Optional[str]:
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove every generation."""
        pass

    def exists(self) -> bool:
        """Check if a persisted index exists (it may hold zero chunks)."""
        return self.current_generation() is not None

    def lock(self) -> IndexLock:
        return IndexLock(self.lock_path)
