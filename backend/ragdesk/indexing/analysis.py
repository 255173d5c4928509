"""Corpus statistics for an index generation."""

from __future__ import annotations

from collections import Counter
from typing import Optional

from ..schemas import CorpusAnalysis
from ..storage import LoadedIndex


def analyze_index(index: Optional[LoadedIndex]) -> CorpusAnalysis:
    if index is None or len(index) == 0:
        return CorpusAnalysis(
            generation=index.generation if index is not None else None,
            created_at=index.manifest.get("created_at") if index is not None else None,
        )

    entries = index.ordered_entries()
    tag_counts: Counter = Counter()
    per_source: Counter = Counter()
    total_chars = 0
    total_tokens = 0
    for entry in entries:
        per_source[entry.source] += 1
        tag_counts.update(entry.metadata.get("tags", []))
        total_chars += len(entry.text)
        total_tokens += int(entry.metadata.get("tokens", 0))

    n = len(entries)
    return CorpusAnalysis(
        generation=index.generation,
        created_at=index.manifest.get("created_at"),
        total_chunks=n,
        sources=sorted(per_source),
        average_chunk_size=total_chars // n,
        average_tokens=total_tokens // n,
        tags=dict(sorted(tag_counts.items())),
        source_breakdown=dict(sorted(per_source.items())),
    )
