"""Document ingestion: changed files -> chunks -> vectors -> index."""

from __future__ import annotations

import dataclasses
import datetime as _dt
import logging
import re
import threading
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from ..config import index_fingerprint
from ..core import Chunk, ChunkCandidate, DefaultChunker, Embedder, IndexEntry, make_chunk_id
from ..core.errors import ExtractionFailure, IngestionCancelled, RagError
from ..schemas import FailedSource, IngestionSummary
from ..storage import IndexStore, LoadedIndex
from ..utils import text_sha256
from .changes import ChangeSet, Fingerprinter, SourceFile, diff, records_from_metadata, scan_sources
from .extract import DefaultTextExtractor, TextExtractor
from .tags import infer_tags

logger = logging.getLogger(__name__)

_HEADING_RE = re.compile(r"^#{1,6}\s+(.+?)\s*#*\s*$", re.MULTILINE)


@dataclasses.dataclass
class IngestionReport:
    changes: ChangeSet
    up_to_date: bool = False
    generation: Optional[str] = None
    processed: List[str] = dataclasses.field(default_factory=list)
    skipped: List[str] = dataclasses.field(default_factory=list)
    deleted: List[str] = dataclasses.field(default_factory=list)
    failures: List[ExtractionFailure] = dataclasses.field(default_factory=list)
    empty_sources: List[str] = dataclasses.field(default_factory=list)
    new_chunks: int = 0
    total_chunks: int = 0

    @property
    def empty_source_count(self) -> int:
        return len(self.empty_sources)

    @property
    def failed(self) -> List[str]:
        return [f.filename for f in self.failures]

    def to_summary(self) -> IngestionSummary:
        return IngestionSummary(
            up_to_date=self.up_to_date,
            generation=self.generation,
            processed=self.processed,
            skipped=self.skipped,
            deleted=self.deleted,
            failed=[
                FailedSource(filename=f.filename or "", stage=f.stage or "extract", reason=f.message)
                for f in self.failures
            ],
            empty_sources=self.empty_sources,
            new_chunks=self.new_chunks,
            total_chunks=self.total_chunks,
        )


def _check_cancelled(cancel_event: Optional[threading.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise IngestionCancelled("Ingestion cancelled; the index was left unchanged", stage="ingest")


def infer_sections(filename: str, candidates: Sequence[ChunkCandidate]) -> List[Optional[str]]:
    """Markdown heading in effect at the start of each chunk (None elsewhere)."""
    if not filename.lower().endswith(".md"):
        return [None] * len(candidates)

    sections: List[Optional[str]] = []
    current: Optional[str] = None
    for candidate in candidates:
        headings = _HEADING_RE.findall(candidate.text)
        if headings and _HEADING_RE.match(candidate.text):
            sections.append(headings[0])
        else:
            sections.append(current or (headings[0] if headings else None))
        if headings:
            current = headings[-1]
    return sections


class IngestionPipeline:
    """Owns all writes to an index store.

    Every run rebuilds the complete index: entries of untouched sources are
    carried over verbatim from the previous generation, targeted sources are
    re-chunked and re-embedded, deleted sources are dropped.
    """

    def __init__(
        self,
        embedder: Embedder,
        store: IndexStore,
        cfg: Dict,
        extractor: Optional[TextExtractor] = None,
        chunker: Optional[DefaultChunker] = None,
    ):
        self.embedder = embedder
        self.store = store
        self.cfg = cfg
        self.extractor = extractor or DefaultTextExtractor()
        self.fingerprinter = Fingerprinter(
            strict_binary=bool(cfg.get("strict_binary_checksum", False)),
            extractor=self.extractor,
        )
        self.chunker = chunker or DefaultChunker(
            max_tokens=int(cfg.get("chunk_max_tokens", 800)),
            overlap_tokens=int(cfg.get("chunk_overlap_tokens", 120)),
            chars_per_token=int(cfg.get("chars_per_token", 4)),
            encoding=cfg.get("tokenizer_encoding", "cl100k_base"),
        )
        self.index_fingerprint = index_fingerprint(cfg)

    def scan(self, docs_dir: Path) -> Dict[str, SourceFile]:
        return scan_sources(Path(docs_dir), self.cfg, self.fingerprinter)

    def status(self, docs_dir: Path) -> ChangeSet:
        """Compare the documents directory with what the index holds."""
        listing = self.scan(docs_dir)
        manifest = self.store.get_manifest() or {}
        records = records_from_metadata(self.store.load_metadata(), manifest.get("empty_sources"))
        return diff(records, {name: src.fingerprint for name, src in listing.items()})

    def _previous_index(self) -> Tuple[Optional[LoadedIndex], bool]:
        """Load the current generation if its entries can be reused.

        Returns the index (or None) and whether an index built with other
        settings exists, in which case everything must be re-processed.
        """
        manifest = self.store.get_manifest()
        if manifest is None:
            return None, False
        if manifest.get("cfg_fingerprint") != self.index_fingerprint:
            logger.info("Index was built with different chunking or embedding settings; re-processing all documents")
            return None, True
        if manifest.get("model") != self.embedder.model_id:
            logger.info(
                f"Index was built with embedding model {manifest.get('model')!r}, "
                f"now using {self.embedder.model_id!r}; re-processing all documents"
            )
            return None, True
        return self.store.load(), False

    @staticmethod
    def _select_targets(
        changes: ChangeSet,
        listing: Dict[str, SourceFile],
        files: Optional[Sequence[str]],
        force: bool,
    ) -> Tuple[List[str], List[str]]:
        if files:
            targets, skipped = [], []
            for name in files:
                if name not in listing:
                    raise FileNotFoundError(f"File {name} not found in documents directory")
                if force or changes.classify(name) in ("new", "modified"):
                    targets.append(name)
                else:
                    logger.info(f"{name} is unchanged, skipping ingestion")
                    skipped.append(name)
            return sorted(set(targets)), skipped

        if force:
            return sorted(listing), []
        return changes.needs_ingestion, list(changes.unchanged)

    def _build_chunks(
        self,
        name: str,
        content: str,
        checksum: str,
        tags: Optional[Sequence[str]],
        ingested_at: str,
    ) -> List[Chunk]:
        candidates = self.chunker.chunk(content)
        chunk_tags = list(tags) if tags else infer_tags(content, name)
        sections = infer_sections(name, candidates)
        total = len(candidates)
        return [
            Chunk(
                id=make_chunk_id(name, checksum, i),
                source=name,
                text=candidate.text,
                token_count=candidate.token_count,
                chunk_index=i,
                total_chunks=total,
                checksum=checksum,
                ingested_at=ingested_at,
                tags=chunk_tags,
                section=sections[i],
            )
            for i, candidate in enumerate(candidates)
        ]

    def ingest(
        self,
        docs_dir: Path,
        files: Optional[Sequence[str]] = None,
        tags: Optional[Sequence[str]] = None,
        force: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> IngestionReport:
        """Bring the index in line with the documents directory.

        Args:
            docs_dir: Directory holding the source documents
            files: Only consider these filenames (relative to docs_dir)
            tags: Tags for every processed file instead of inferred ones
            force: Re-process targets even when unchanged
            cancel_event: Checked between files; when set, the run stops
                without writing

        Returns:
            IngestionReport describing what happened

        Raises:
            IndexBusy: Another run holds the index lock
            IngestionCancelled: cancel_event was set
            FileNotFoundError: A requested file is not in docs_dir
        """
        docs_dir = Path(docs_dir)
        with self.store.lock():
            listing = self.scan(docs_dir)
            previous, stale = self._previous_index()
            prev_entries = previous.ordered_entries() if previous is not None else []
            prev_empty = dict(previous.manifest.get("empty_sources") or {}) if previous is not None else {}
            changes = diff(
                records_from_metadata((e.metadata for e in prev_entries), prev_empty),
                {name: src.fingerprint for name, src in listing.items()},
            )
            summary = changes.summary()
            logger.info(
                f"Unchanged: {summary['unchanged']}, modified: {summary['modified']}, "
                f"new: {summary['new']}, deleted: {summary['deleted']}"
            )

            targets, skipped = self._select_targets(changes, listing, files, force)
            if stale:
                # Stored vectors cannot be mixed with new ones.
                targets, skipped = sorted(listing), []
            report = IngestionReport(changes=changes, skipped=skipped, deleted=list(changes.deleted))

            if previous is not None and not targets and not changes.deleted:
                logger.info("All documents are up to date")
                report.up_to_date = True
                report.generation = previous.generation
                report.total_chunks = len(previous)
                return report

            logger.info(f"Processing {len(targets)} document(s)")
            ingested_at = _dt.datetime.now(_dt.timezone.utc).isoformat()
            pending: List[Chunk] = []
            empty_sources: Dict[str, str] = {}
            for name in targets:
                _check_cancelled(cancel_event)
                source = listing[name]
                try:
                    content = self.extractor.extract(source.path)
                except ExtractionFailure as e:
                    failure = ExtractionFailure(e.message, filename=name, stage=e.stage or "extract")
                    logger.warning(f"Skipping {name}: {e.message}")
                    report.failures.append(failure)
                    continue
                except Exception as e:
                    logger.warning(f"Skipping {name}: {e}")
                    report.failures.append(ExtractionFailure(str(e), filename=name))
                    continue

                checksum = source.fingerprint or text_sha256(content)
                chunks = self._build_chunks(name, content, checksum, tags, ingested_at)
                if not chunks:
                    logger.warning(f"{name} yielded no chunks")
                    report.empty_sources.append(name)
                    empty_sources[name] = checksum
                else:
                    logger.info(f"{name}: {len(chunks)} chunks, tags={chunks[0].tags}")
                pending.extend(chunks)
                report.processed.append(name)

            _check_cancelled(cancel_event)
            vectors = self.embedder.embed([c.text for c in pending]) if pending else []
            if len(vectors) != len(pending):
                raise RagError(
                    f"Embedder returned {len(vectors)} vectors for {len(pending)} chunks", stage="embed"
                )
            new_entries = [
                IndexEntry(id=c.id, vector=list(v), text=c.text, metadata=c.to_metadata())
                for c, v in zip(pending, vectors)
            ]

            superseded = set(report.processed)
            kept = [e for e in prev_entries if e.source in listing and e.source not in superseded]
            for name, fingerprint in prev_empty.items():
                if name in listing and name not in superseded:
                    empty_sources[name] = fingerprint
            entries = sorted(kept + new_entries, key=lambda e: e.sort_key)

            _check_cancelled(cancel_event)
            report.generation = self.store.persist(
                entries,
                {
                    "cfg_fingerprint": self.index_fingerprint,
                    "model": self.embedder.model_id,
                    "empty_sources": dict(sorted(empty_sources.items())),
                },
            )
            report.new_chunks = len(new_entries)
            report.total_chunks = len(entries)

        logger.info(
            f"Indexed {report.new_chunks} new chunks from {len(report.processed)} documents "
            f"({report.total_chunks} chunks total)"
        )
        if report.failures:
            logger.warning(f"{len(report.failures)} document(s) failed extraction: {report.failed}")
        if report.empty_sources:
            logger.warning(f"{report.empty_source_count} document(s) yielded zero chunks")
        return report
