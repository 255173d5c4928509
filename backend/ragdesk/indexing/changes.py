"""Change detection between the index and the documents directory.

Text formats are fingerprinted by hashing their decoded content. Opaque
formats such as PDF are fingerprinted from ``(name, size, mtime)`` unless
``strict_binary_checksum`` is set. That approximation misses edits which keep
both size and modification time; enable strict mode when that matters.
"""

from __future__ import annotations

import dataclasses
import fnmatch
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..config import DEFAULT_EXCLUDE_PATTERNS, DEFAULT_INCLUDE_PATTERNS
from ..config.manager import _expand_patterns
from ..core.models import SourceFileRecord
from ..utils import text_sha256
from .extract import BINARY_SUFFIXES, DefaultTextExtractor, TextExtractor

logger = logging.getLogger(__name__)


def _match_any(path: str, globs: List[str]) -> bool:
    return any(fnmatch.fnmatch(path, g) for g in globs)


def iter_files(docs_dir: Path, cfg: Dict) -> Iterable[Path]:
    include_globs = cfg.get("include_globs", _expand_patterns(DEFAULT_INCLUDE_PATTERNS))
    exclude_globs = cfg.get("exclude_globs", _expand_patterns(DEFAULT_EXCLUDE_PATTERNS))
    max_kb = int(cfg.get("max_file_size_kb", 20480))

    for p in sorted(docs_dir.rglob("*")):
        if not p.is_file():
            continue
        rel = p.relative_to(docs_dir).as_posix()
        if _match_any(rel, exclude_globs):
            continue
        if not _match_any(rel, include_globs):
            continue
        try:
            if (p.stat().st_size / 1024.0) > max_kb:
                logger.warning(f"Skipping {rel}: larger than {max_kb} KB")
                continue
        except OSError:
            continue
        yield p


@dataclasses.dataclass
class SourceFile:
    """A candidate source file as seen in the documents directory."""

    name: str
    path: Path
    size: int
    mtime_ms: int
    fingerprint: Optional[str]


class Fingerprinter:

    def __init__(self, strict_binary: bool = False, extractor: Optional[TextExtractor] = None):
        self.strict_binary = strict_binary
        self.extractor = extractor or DefaultTextExtractor()

    @staticmethod
    def stat_fingerprint(name: str, size: int, mtime_ms: int) -> str:
        return text_sha256(f"{name}-{size}-{mtime_ms}")

    def fingerprint(self, name: str, path: Path, size: int, mtime_ms: int) -> str:
        if path.suffix.lower() in BINARY_SUFFIXES:
            if not self.strict_binary:
                return self.stat_fingerprint(name, size, mtime_ms)
            return text_sha256(self.extractor.extract(path))
        return text_sha256(path.read_text(encoding="utf-8", errors="replace"))


def scan_sources(docs_dir: Path, cfg: Dict, fingerprinter: Optional[Fingerprinter] = None) -> Dict[str, SourceFile]:
    """List candidate source files with their stat info and fingerprints.

    A file that cannot be fingerprinted is listed with ``fingerprint=None``.
    """
    docs_dir = Path(docs_dir)
    if fingerprinter is None:
        fingerprinter = Fingerprinter(strict_binary=bool(cfg.get("strict_binary_checksum", False)))
    if not docs_dir.is_dir():
        logger.warning(f"Documents directory {docs_dir} does not exist")
        return {}

    listing: Dict[str, SourceFile] = {}
    for path in iter_files(docs_dir, cfg):
        name = path.relative_to(docs_dir).as_posix()
        try:
            st = path.stat()
            size, mtime_ms = st.st_size, int(st.st_mtime * 1000)
        except OSError as e:
            logger.warning(f"Could not stat {name}: {e}")
            continue
        try:
            fingerprint = fingerprinter.fingerprint(name, path, size, mtime_ms)
        except Exception as e:
            logger.warning(f"Could not fingerprint {name}: {e}")
            fingerprint = None
        listing[name] = SourceFile(name=name, path=path, size=size, mtime_ms=mtime_ms, fingerprint=fingerprint)
    return listing


def records_from_metadata(
    metadata: Iterable[Mapping[str, Any]],
    empty_sources: Optional[Mapping[str, str]] = None,
) -> Dict[str, SourceFileRecord]:
    """Group per-chunk metadata into one record per source file.

    ``empty_sources`` maps files that were ingested but yielded no chunks to
    their fingerprint; they get a record without chunk ids.
    """
    records: Dict[str, SourceFileRecord] = {}
    for meta in metadata:
        source = meta.get("source")
        if not source:
            continue
        record = records.get(source)
        if record is None:
            record = records[source] = SourceFileRecord(
                filename=source,
                checksum=meta.get("checksum", ""),
                last_ingested_at=meta.get("ingested_at", ""),
            )
        record.chunk_ids.append(meta.get("id", ""))
        if meta.get("checksum"):
            record.checksums.add(meta["checksum"])
        if meta.get("ingested_at", "") > record.last_ingested_at:
            record.last_ingested_at = meta["ingested_at"]

    for source, fingerprint in (empty_sources or {}).items():
        if source in records or not fingerprint:
            continue
        records[source] = SourceFileRecord(
            filename=source,
            checksum=fingerprint,
            last_ingested_at="",
            checksums={fingerprint},
        )
    return records


@dataclasses.dataclass
class ChangeSet:
    unchanged: List[str] = dataclasses.field(default_factory=list)
    modified: List[str] = dataclasses.field(default_factory=list)
    new: List[str] = dataclasses.field(default_factory=list)
    deleted: List[str] = dataclasses.field(default_factory=list)

    @property
    def needs_ingestion(self) -> List[str]:
        return sorted(self.new + self.modified)

    def classify(self, filename: str) -> Optional[str]:
        for bucket in ("unchanged", "modified", "new", "deleted"):
            if filename in getattr(self, bucket):
                return bucket
        return None

    def summary(self) -> Dict[str, int]:
        return {
            "total": len(self.unchanged) + len(self.modified) + len(self.new),
            "unchanged": len(self.unchanged),
            "modified": len(self.modified),
            "new": len(self.new),
            "deleted": len(self.deleted),
        }

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            "unchanged": list(self.unchanged),
            "modified": list(self.modified),
            "new": list(self.new),
            "deleted": list(self.deleted),
        }


def diff(existing: Mapping[str, SourceFileRecord], current: Mapping[str, Optional[str]]) -> ChangeSet:
    """Classify every filename as unchanged, modified, new or deleted.

    Args:
        existing: Records of what the index holds, keyed by filename
        current: Fingerprint per filename in the directory listing; ``None``
            when the file could not be fingerprinted

    Returns:
        ChangeSet with four disjoint, sorted lists
    """
    changes = ChangeSet()
    for filename in sorted(current):
        record = existing.get(filename)
        if record is None:
            changes.new.append(filename)
        elif record.matches(current[filename]):
            changes.unchanged.append(filename)
        else:
            changes.modified.append(filename)

    changes.deleted = sorted(name for name in existing if name not in current)
    return changes
