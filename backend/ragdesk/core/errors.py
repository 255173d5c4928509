"""Error types raised by the retrieval core."""

from __future__ import annotations

from typing import Optional


class RagError(Exception):
    """Base class for ragdesk errors.

    Carries the file and pipeline stage involved (when known) so callers can
    decide between retrying and aborting.
    """

    def __init__(self, message: str, filename: Optional[str] = None, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.filename = filename
        self.stage = stage

    def __str__(self) -> str:
        parts = []
        if self.stage:
            parts.append(f"[{self.stage}]")
        if self.filename:
            parts.append(f"{self.filename}:")
        parts.append(self.message)
        return " ".join(parts)


class ExtractionFailure(RagError):
    """A single source file could not be read or parsed."""

    def __init__(self, message: str, filename: Optional[str] = None, stage: str = "extract"):
        super().__init__(message, filename=filename, stage=stage)


class IndexUnavailable(RagError):
    """No persisted index exists yet."""

    def __init__(
        self,
        message: str = "No index found. Run ingestion first.",
        filename: Optional[str] = None,
        stage: str = "load",
    ):
        super().__init__(message, filename=filename, stage=stage)


class IndexCorrupted(RagError):
    """Persisted index data is inconsistent."""


class DimensionMismatch(IndexCorrupted):
    """Vectors of different lengths met in one index or one search."""


class ModelUnavailable(RagError):
    """The embedding model could not be initialized."""


class IndexBusy(RagError):
    """Another ingestion run holds the index lock."""


class IngestionCancelled(RagError):
    """An ingestion run was cancelled before it wrote anything."""
