"""Data models for ragdesk."""

from __future__ import annotations

import dataclasses
import hashlib
from typing import Any, Dict, List, Optional, Set


def make_chunk_id(source: str, checksum: str, chunk_index: int) -> str:
    """Stable chunk id: same source content and position give the same id."""
    return hashlib.sha256(f"{source}:{checksum}:{chunk_index}".encode("utf-8")).hexdigest()


@dataclasses.dataclass(frozen=True)
class ChunkCandidate:
    """A chunk as produced by the chunker, before it is tied to a source."""

    text: str
    token_count: int


@dataclasses.dataclass
class Chunk:
    """A contiguous span of a source document's text."""

    id: str
    source: str
    text: str
    token_count: int
    chunk_index: int
    total_chunks: int
    checksum: str
    ingested_at: str
    tags: List[str] = dataclasses.field(default_factory=list)
    section: Optional[str] = None

    @property
    def page_span(self) -> str:
        return f"Chunk {self.chunk_index + 1}/{self.total_chunks}"

    def to_metadata(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "page_span": self.page_span,
            "section": self.section or "",
            "tags": list(self.tags),
            "chunk_index": self.chunk_index,
            "total_chunks": self.total_chunks,
            "tokens": self.token_count,
            "checksum": self.checksum,
            "ingested_at": self.ingested_at,
        }

    @classmethod
    def from_entry(cls, entry: "IndexEntry") -> "Chunk":
        meta = entry.metadata
        return cls(
            id=entry.id,
            source=meta.get("source", ""),
            text=entry.text,
            token_count=int(meta.get("tokens", 0)),
            chunk_index=int(meta.get("chunk_index", 0)),
            total_chunks=int(meta.get("total_chunks", 1)),
            checksum=meta.get("checksum", ""),
            ingested_at=meta.get("ingested_at", ""),
            tags=list(meta.get("tags", [])),
            section=meta.get("section") or None,
        )


@dataclasses.dataclass
class IndexEntry:
    """The persisted unit: one chunk with its vector."""

    id: str
    vector: List[float]
    text: str
    metadata: Dict[str, Any]

    @property
    def source(self) -> str:
        return self.metadata.get("source", "")

    @property
    def sort_key(self):
        return (self.source, int(self.metadata.get("chunk_index", 0)))


@dataclasses.dataclass
class SourceFileRecord:
    """What the index knows about one source file, rebuilt from chunk metadata."""

    filename: str
    checksum: str
    last_ingested_at: str
    chunk_ids: List[str] = dataclasses.field(default_factory=list)
    checksums: Set[str] = dataclasses.field(default_factory=set)

    def matches(self, fingerprint: Optional[str]) -> bool:
        return fingerprint is not None and fingerprint in self.checksums
