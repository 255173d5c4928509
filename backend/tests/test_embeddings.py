"""Tests for embedders and vector helpers."""

import threading

import numpy as np
import pytest

from ragdesk.core import SentenceTransformersEmbedder, make_embedder
from ragdesk.core.errors import DimensionMismatch, ModelUnavailable
from ragdesk.core.vectors import as_matrix, cosine_similarity, l2_normalize

from .conftest import FakeEmbedder


class FakeModel:
    """Stands in for a loaded SentenceTransformer model."""

    def __init__(self):
        self.encode_calls = []

    def encode(self, texts, batch_size=32, normalize_embeddings=False, show_progress_bar=False, convert_to_numpy=True):
        self.encode_calls.append((list(texts), batch_size))
        return np.array([[3.0, 4.0] if t else [0.0, 0.0] for t in texts])

    def get_sentence_embedding_dimension(self):
        return 2


class TestVectors:
    """Tests for normalization and similarity helpers."""

    def test_l2_normalize_rows(self) -> None:
        """Rows become unit length, zero rows stay zero."""
        out = l2_normalize(np.array([[3.0, 4.0], [0.0, 0.0]]))
        assert out[0].tolist() == pytest.approx([0.6, 0.8])
        assert out[1].tolist() == [0.0, 0.0]

    def test_cosine_bounds(self) -> None:
        """Similarity stays within [-1, 1] and is 1 for identical vectors."""
        assert cosine_similarity([1.0, 2.0], [1.0, 2.0]) == pytest.approx(1.0)
        assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)
        assert -1.0 <= cosine_similarity([0.3, -0.2], [0.9, 0.4]) <= 1.0

    def test_cosine_dimension_mismatch(self) -> None:
        """Vectors of different length cannot be compared."""
        with pytest.raises(DimensionMismatch):
            cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])

    def test_as_matrix_checks_dimension(self) -> None:
        """Mixed lengths are rejected; empty input gives an empty matrix."""
        with pytest.raises(DimensionMismatch):
            as_matrix([[1.0, 0.0], [1.0]])
        with pytest.raises(DimensionMismatch):
            as_matrix([[1.0, 0.0]], expected_dim=3)
        assert as_matrix([]).shape == (0, 0)


class TestSentenceTransformersEmbedder:
    """Tests for the sentence-transformers backed embedder."""

    def test_embed_normalizes(self) -> None:
        """Vectors come back unit length, in input order."""
        emb = SentenceTransformersEmbedder("some/model", batch_size=4)
        emb._model = FakeModel()

        vectors = emb.embed(["a", "b"])

        assert len(vectors) == 2
        assert vectors[0] == pytest.approx([0.6, 0.8])
        assert emb._model.encode_calls == [(["a", "b"], 4)]
        assert emb.dimension == 2

    def test_embed_empty(self) -> None:
        """No texts means no model call."""
        emb = SentenceTransformersEmbedder("some/model")
        emb._model = FakeModel()
        assert emb.embed([]) == []
        assert emb._model.encode_calls == []

    def test_model_loaded_once(self, monkeypatch) -> None:
        """Concurrent first use loads the model a single time."""
        loads = []

        def fake_load(self):
            loads.append(1)
            return FakeModel()

        monkeypatch.setattr(SentenceTransformersEmbedder, "_load", fake_load)
        emb = SentenceTransformersEmbedder("some/model")

        threads = [threading.Thread(target=emb.embed_one, args=("text",)) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(loads) == 1

    def test_model_unavailable(self, monkeypatch) -> None:
        """A model that fails to load raises ModelUnavailable."""
        sentence_transformers = pytest.importorskip("sentence_transformers")

        def boom(*args, **kwargs):
            raise OSError("model files not found")

        monkeypatch.setattr(sentence_transformers, "SentenceTransformer", boom)
        emb = SentenceTransformersEmbedder("missing/model")

        with pytest.raises(ModelUnavailable) as exc_info:
            emb.embed(["hello"])
        assert exc_info.value.stage == "embed"
        assert "missing/model" in str(exc_info.value)

    def test_make_embedder(self, cfg) -> None:
        """The factory builds a lazy embedder for the configured model."""
        emb = make_embedder(cfg)
        assert isinstance(emb, SentenceTransformersEmbedder)
        assert emb.model_id == cfg["embedding"]["sentence_transformers_model"]
        assert emb._model is None

        cfg["embedding"]["backend"] = "nope"
        with pytest.raises(ValueError):
            make_embedder(cfg)


class TestFakeEmbedder:
    """Sanity checks on the test embedder itself."""

    def test_unit_length_and_identity(self, embedder) -> None:
        """Vectors are unit length and identical text gives similarity 1."""
        a, b = embedder.embed(["pricing strategy notes", "pricing strategy notes"])
        assert np.linalg.norm(a) == pytest.approx(1.0, abs=1e-5)
        assert cosine_similarity(a, b) == pytest.approx(1.0)

    def test_dimension(self) -> None:
        assert len(FakeEmbedder(dim=32).embed_one("x")) == 32
