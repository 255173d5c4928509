"""
Shared test fixtures.

Provides: a deterministic hashing embedder (no model download), an in-memory
text extractor, temporary docs/data directories, config and index store
fixtures, and generators for realistic multi-chunk documents.
"""

import hashlib
import re
from pathlib import Path
from typing import Dict, List, Optional, Union

import numpy as np
import pytest

from ragdesk.config import load_config
from ragdesk.core import Embedder, count_tokens
from ragdesk.core.errors import ExtractionFailure
from ragdesk.indexing import IngestionPipeline, TextExtractor
from ragdesk.storage import make_index_store


ENV_VARS = (
    "RAGDESK_DOCS_DIR",
    "RAGDESK_DATA_DIR",
    "RAGDESK_EMBEDDING_MODEL",
    "RAGDESK_INDEX_BACKEND",
    "QDRANT_HOST",
    "QDRANT_PORT",
)


class FakeEmbedder(Embedder):
    """Hashing bag-of-words embedder: texts sharing words get similar vectors."""

    def __init__(self, dim: int = 256, model_id: str = "fake-hashing"):
        self.dim = dim
        self.model_id = f"{model_id}-{dim}"
        self.calls: List[List[str]] = []

    @property
    def dimension(self) -> int:
        return self.dim

    def embed(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        out = []
        for text in texts:
            vec = np.zeros(self.dim)
            for word in re.findall(r"[a-z0-9]+", text.lower()):
                bucket = int(hashlib.md5(word.encode("utf-8")).hexdigest(), 16) % self.dim
                vec[bucket] += 1.0
            norm = np.linalg.norm(vec)
            if norm == 0:
                vec[0], norm = 1.0, 1.0
            out.append((vec / norm).tolist())
        return out


class MappingExtractor(TextExtractor):
    """Returns canned text (or raises) per filename, else reads the file."""

    def __init__(self, mapping: Optional[Dict[str, Union[str, Exception]]] = None):
        self.mapping = dict(mapping or {})
        self.calls: List[str] = []

    def extract(self, path: Path) -> str:
        path = Path(path)
        self.calls.append(path.name)
        value = self.mapping.get(path.name)
        if isinstance(value, Exception):
            raise value
        if value is not None:
            return value
        if path.suffix == ".pdf":
            raise ExtractionFailure("no canned text for pdf", filename=path.name)
        return path.read_text(encoding="utf-8")


# Every pricing sentence mentions both "pricing" and "strategy"; the other
# topics use neither word.
PRICING_SENTENCES = [
    "Our pricing strategy anchors every plan on the value customers see during their first week.",
    "A clear pricing strategy keeps discounts rare and predictable for the whole revenue team.",
    "The pricing strategy review happens each quarter with finance and product leadership together.",
    "Tiered pricing strategy lets small teams start cheaply while larger accounts pay for scale.",
    "We test every pricing strategy change on a narrow segment before rolling it out widely.",
    "Annual plans follow the same pricing strategy but include two free months as an incentive.",
]

RETENTION_SENTENCES = [
    "Retention improves when onboarding calls happen within two days of signup.",
    "Customers who finish the setup checklist renew at a noticeably higher rate.",
    "Churn interviews reveal that missing integrations drive most cancellations.",
    "The success team reaches out whenever weekly usage drops below the usual baseline.",
    "Loyalty rewards give long standing accounts early access to new features.",
    "Renewal reminders go out ninety days before the contract end date.",
]

SALES_SENTENCES = [
    "The sales team qualifies every inbound lead within one business day.",
    "Discovery calls focus on the problems a prospect wants solved this year.",
    "Account executives share a short recap email after each demo meeting.",
    "Pipeline reviews on Monday mornings keep forecasts honest and current.",
    "Champions inside the buying company help navigate procurement and legal review.",
    "Closed deals hand over to onboarding with a written summary of goals.",
]


def make_document(
    sentences: List[str],
    target_tokens: int = 2400,
    title: Optional[str] = None,
    per_paragraph: int = 5,
) -> str:
    """Cycle through sentences, in paragraphs, until the text reaches target_tokens."""
    paragraphs: List[str] = [f"# {title}"] if title else []
    current: List[str] = []
    i = 0
    while True:
        current.append(sentences[i % len(sentences)])
        i += 1
        if len(current) == per_paragraph:
            paragraphs.append(" ".join(current))
            current = []
            if count_tokens("\n\n".join(paragraphs)) >= target_tokens:
                break
    return "\n\n".join(paragraphs) + "\n"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep developer environment variables out of the tests."""
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def docs_dir(tmp_path: Path) -> Path:
    d = tmp_path / "docs"
    d.mkdir()
    return d


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def cfg(docs_dir: Path, data_dir: Path) -> Dict:
    return load_config(docs_dir=docs_dir, data_dir=data_dir)


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def store(cfg):
    return make_index_store(cfg)


@pytest.fixture
def extractor() -> MappingExtractor:
    return MappingExtractor()


@pytest.fixture
def pipeline(embedder, store, cfg, extractor) -> IngestionPipeline:
    return IngestionPipeline(embedder, store, cfg, extractor=extractor)


@pytest.fixture
def business_docs(docs_dir: Path) -> Dict[str, str]:
    """The pricing / retention / sales corpus, written to docs_dir."""
    docs = {
        "pricing.md": make_document(PRICING_SENTENCES, title="Pricing"),
        "retention.md": make_document(RETENTION_SENTENCES, title="Retention"),
        "sales.md": make_document(SALES_SENTENCES, title="Sales"),
    }
    for name, text in docs.items():
        (docs_dir / name).write_text(text, encoding="utf-8")
    return docs
