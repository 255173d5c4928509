"""Document ingestion for ragdesk."""

from .analysis import analyze_index
from .changes import ChangeSet, Fingerprinter, SourceFile, diff, iter_files, records_from_metadata, scan_sources
from .extract import DefaultTextExtractor, TextExtractor
from .pipeline import IngestionPipeline, IngestionReport
from .tags import infer_tags

__all__ = [
    "analyze_index",
    "ChangeSet",
    "Fingerprinter",
    "SourceFile",
    "diff",
    "iter_files",
    "records_from_metadata",
    "scan_sources",
    "DefaultTextExtractor",
    "TextExtractor",
    "IngestionPipeline",
    "IngestionReport",
    "infer_tags",
]
