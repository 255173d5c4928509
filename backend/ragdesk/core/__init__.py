"""Core functionality for ragdesk."""

from .models import Chunk, ChunkCandidate, IndexEntry, SourceFileRecord, make_chunk_id
from .chunking import chunk_text, count_tokens, Chunker, DefaultChunker
from .embeddings import Embedder, SentenceTransformersEmbedder, make_embedder
from .errors import (
    RagError,
    ExtractionFailure,
    IndexUnavailable,
    IndexCorrupted,
    DimensionMismatch,
    ModelUnavailable,
    IndexBusy,
    IngestionCancelled,
)

__all__ = [
    "Chunk",
    "ChunkCandidate",
    "IndexEntry",
    "SourceFileRecord",
    "make_chunk_id",
    "chunk_text",
    "count_tokens",
    "Chunker",
    "DefaultChunker",
    "Embedder",
    "SentenceTransformersEmbedder",
    "make_embedder",
    "RagError",
    "ExtractionFailure",
    "IndexUnavailable",
    "IndexCorrupted",
    "DimensionMismatch",
    "ModelUnavailable",
    "IndexBusy",
    "IngestionCancelled",
]
