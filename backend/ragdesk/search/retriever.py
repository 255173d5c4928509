"""Hybrid retrieval over the current index generation."""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..core import Chunk, Embedder
from ..core.errors import DimensionMismatch, IndexCorrupted
from ..schemas import RetrievalResult
from ..storage import IndexStore, LoadedIndex
from .base import Retriever
from .context import build_result
from .scoring import ScoringWeights, query_terms, rank, text_relevance

logger = logging.getLogger(__name__)


class HybridRetriever(Retriever):
    """Ranks chunks by a blend of embedding similarity and term overlap.

    The loaded index is cached and reloaded whenever the store reports a new
    generation, so a retriever can stay alive across ingestion runs.
    """

    def __init__(
        self,
        embedder: Embedder,
        store: IndexStore,
        cfg: Optional[Dict] = None,
        weights: Optional[ScoringWeights] = None,
    ):
        cfg = cfg or {}
        self.embedder = embedder
        self.store = store
        self.weights = weights or ScoringWeights.from_config(cfg)
        search_cfg = cfg.get("search", {})
        self.top_k = int(search_cfg.get("top_k", 8))
        self.min_contexts = int(search_cfg.get("min_contexts", 2))
        self._index: Optional[LoadedIndex] = None
        self._lock = threading.Lock()

    def current_index(self) -> LoadedIndex:
        """The loaded current generation. Raises IndexUnavailable if none exists."""
        generation = self.store.current_generation()
        with self._lock:
            if self._index is None or generation is None or self._index.generation != generation:
                self._index = self.store.load()
                logger.debug(f"Loaded index generation {self._index.generation} ({len(self._index)} chunks)")
            return self._index

    def _check_compatible(self, index: LoadedIndex) -> None:
        if self.embedder.dimension != index.dimension:
            raise DimensionMismatch(
                f"Query embedder has dimension {self.embedder.dimension} but the index holds {index.dimension}",
                stage="search",
            )
        model = index.manifest.get("model")
        if model and model != self.embedder.model_id:
            raise IndexCorrupted(
                f"Index was built with embedding model {model!r} but queries use "
                f"{self.embedder.model_id!r}. Run ingestion again with this model",
                stage="search",
            )

    def search(self, query: str, k: int) -> List[Tuple[Chunk, float]]:
        return self._search_index(self.current_index(), query, k)

    def _search_index(self, index: LoadedIndex, query: str, k: int) -> List[Tuple[Chunk, float]]:
        if k <= 0 or len(index) == 0:
            return []
        self._check_compatible(index)

        qv = np.asarray(self.embedder.embed_one(query), dtype=np.float64)
        if qv.shape[0] != index.dimension:
            raise DimensionMismatch(
                f"Query vector has dimension {qv.shape[0]} but the index holds {index.dimension}",
                stage="search",
            )

        vector_scores = np.clip(index.matrix @ qv, -1.0, 1.0)
        terms = query_terms(query, self.weights.min_term_length)
        entries = index.ordered_entries()
        text_scores = np.array([text_relevance(terms, e.text) for e in entries], dtype=np.float64)

        ranked = rank(vector_scores, text_scores, k, self.weights)
        return [(Chunk.from_entry(entries[i]), distance) for i, distance in ranked]

    def retrieve(self, query: str, k: Optional[int] = None, instruction: Optional[str] = None) -> RetrievalResult:
        """Search and package the hits as numbered context blocks."""
        k = self.top_k if k is None else k
        index = self.current_index()
        hits = self._search_index(index, query, k)
        total = len(index)
        result = build_result(query, hits, total, instruction=instruction, min_contexts=self.min_contexts)
        logger.info(f"Retrieved {len(hits)} of {total} chunks for query (status={result.status})")
        return result
