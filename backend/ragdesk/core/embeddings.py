"""Embedding models for semantic search."""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional

from .errors import ModelUnavailable
from .vectors import l2_normalize

logger = logging.getLogger(__name__)


class Embedder:
    """Abstract base class for embedding models.

    Implementations return one unit-length vector per input text, in input
    order, so cosine similarity reduces to a dot product.
    """

    model_id: str = "unknown"

    def embed(self, texts: List[str]) -> List[List[float]]:
        """Embed multiple texts into vectors."""
        raise NotImplementedError

    def embed_one(self, text: str) -> List[float]:
        """Embed a single text into a vector."""
        return self.embed([text])[0]

    @property
    def dimension(self) -> int:
        raise NotImplementedError


class SentenceTransformersEmbedder(Embedder):
    """Embedder using SentenceTransformers library.

    The model is loaded on first use and kept for the lifetime of this
    object. Build one per process and hand it to the pipeline and retriever.
    """

    def __init__(self, model_name: str, batch_size: int = 32, device: Optional[str] = None) -> None:
        self.model_id = model_name
        self.batch_size = batch_size
        self.device = device
        self._model = None
        self._lock = threading.Lock()

    @property
    def model(self):
        if self._model is None:
            with self._lock:
                if self._model is None:
                    self._model = self._load()
        return self._model

    def _load(self):
        logger.info(f"Loading sentence-transformers model '{self.model_id}'")
        try:
            from sentence_transformers import SentenceTransformer  # type: ignore
            return SentenceTransformer(self.model_id, device=self.device)
        except Exception as e:
            raise ModelUnavailable(
                f"Could not load embedding model {self.model_id!r}: {e}. "
                "Install it with: pip install -U sentence-transformers",
                stage="embed",
            ) from e

    @property
    def dimension(self) -> int:
        return int(self.model.get_sentence_embedding_dimension())

    def embed(self, texts: List[str]) -> List[List[float]]:
        """Embed texts using SentenceTransformers model."""
        if not texts:
            return []
        arr = self.model.encode(
            list(texts),
            batch_size=self.batch_size,
            normalize_embeddings=True,
            show_progress_bar=False,
            convert_to_numpy=True,
        )
        return [row.tolist() for row in l2_normalize(arr)]


def make_embedder(cfg: Dict) -> Embedder:
    """Create embedder from config.

    Args:
        cfg: Configuration dictionary

    Returns:
        Embedder instance; the model itself loads on first use

    Raises:
        ValueError: If the configured backend is unknown
    """
    emb_cfg = cfg.get("embedding", {})
    backend = str(emb_cfg.get("backend", "sentence_transformers")).strip().lower()
    if backend != "sentence_transformers":
        raise ValueError(f"Invalid embedding.backend: {backend!r}")

    model_name = emb_cfg.get("sentence_transformers_model", "all-MiniLM-L6-v2")
    return SentenceTransformersEmbedder(
        model_name,
        batch_size=int(emb_cfg.get("batch_size", 32)),
        device=emb_cfg.get("device"),
    )
