"""Configuration management for ragdesk."""

from __future__ import annotations

import copy
import hashlib
import json
import os
from pathlib import Path
from typing import Dict, List, Optional


DEFAULT_INCLUDE_PATTERNS: List[str] = [
    "*.pdf",
    "*.txt",
    "*.md",
]

DEFAULT_EXCLUDE_PATTERNS: List[str] = [
    ".git/**",
    "node_modules/**",
    "__pycache__/**",
    ".ragdesk/**",
    ".*",
]

DEFAULT_CONFIG: Dict = {
    "docs_dir": "./docs",
    "data_dir": "./data",
    "max_file_size_kb": 20480,
    "chunk_max_tokens": 800,
    "chunk_overlap_tokens": 120,
    "chars_per_token": 4,
    "tokenizer_encoding": "cl100k_base",
    # Hash extracted text for PDFs instead of (name, size, mtime).
    "strict_binary_checksum": False,
    "embedding": {
        "backend": "sentence_transformers",
        "sentence_transformers_model": "sentence-transformers/all-MiniLM-L6-v2",
        "batch_size": 32,
        "device": None,
    },
    "search": {
        "top_k": 8,
        "vector_weight": 0.7,
        "text_weight": 0.3,
        "min_term_length": 3,
        "epsilon": 1e-9,
        "min_contexts": 2,
    },
    "index_store": {
        "backend": "local",
        "keep_generations": 2,
        "qdrant": {
            "host": "localhost",
            "port": 6333,
            "path": None,
            "location": None,
            "collection": "ragdesk_chunks",
        },
    },
}

# Keys whose values shape stored chunks and vectors. Anything else (search
# weights, store location) can change without invalidating an index.
INDEX_FINGERPRINT_KEYS = (
    "chunk_max_tokens",
    "chunk_overlap_tokens",
    "chars_per_token",
    "tokenizer_encoding",
    "strict_binary_checksum",
)


def expand_pattern(pattern: str) -> List[str]:
    """Expand pattern to include both root and nested versions.

    Examples:
        '*.md' -> ['*.md', '**/*.md']
        'node_modules/**' -> ['node_modules/**', '**/node_modules/**']
    """
    pattern = pattern.strip()
    if not pattern or pattern.startswith("#"):
        return []

    if pattern.startswith("**/"):
        return [pattern]

    if pattern.startswith("*."):
        return [pattern, "**/" + pattern]

    if "/**" in pattern:
        return [pattern, "**/" + pattern]

    return [pattern]


def _expand_patterns(patterns: List[str]) -> List[str]:
    """Expand and deduplicate patterns while preserving order."""
    out: List[str] = []
    seen: set[str] = set()
    for p in patterns:
        for ep in expand_pattern(p):
            if ep not in seen:
                seen.add(ep)
                out.append(ep)
    return out


def load_config(docs_dir: Optional[Path] = None, data_dir: Optional[Path] = None) -> Dict:
    """Load configuration.

    Returns a copy of the default configuration with environment overrides
    applied and include/exclude patterns expanded. Explicit arguments win over
    the environment.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    config["docs_dir"] = os.getenv("RAGDESK_DOCS_DIR", config["docs_dir"])
    config["data_dir"] = os.getenv("RAGDESK_DATA_DIR", config["data_dir"])
    if docs_dir is not None:
        config["docs_dir"] = str(docs_dir)
    if data_dir is not None:
        config["data_dir"] = str(data_dir)

    model = os.getenv("RAGDESK_EMBEDDING_MODEL")
    if model:
        config["embedding"]["sentence_transformers_model"] = model

    config["index_store"]["backend"] = os.getenv(
        "RAGDESK_INDEX_BACKEND", config["index_store"]["backend"]
    )
    config["index_store"]["qdrant"]["host"] = os.getenv("QDRANT_HOST", "localhost")
    config["index_store"]["qdrant"]["port"] = int(os.getenv("QDRANT_PORT", "6333"))

    config["include_globs"] = _expand_patterns(DEFAULT_INCLUDE_PATTERNS)
    config["exclude_globs"] = _expand_patterns(DEFAULT_EXCLUDE_PATTERNS)

    return config


def cfg_fingerprint(cfg: Dict) -> str:
    """Generate fingerprint hash for config."""
    payload = json.dumps(cfg, sort_keys=True, ensure_ascii=False).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()


def index_fingerprint(cfg: Dict) -> str:
    """Fingerprint of the settings a persisted index was built with.

    Two configs with the same index fingerprint produce interchangeable chunks
    and vectors, so entries from one index may be reused by the other.
    """
    embedding = cfg.get("embedding", {})
    relevant = {key: cfg.get(key, DEFAULT_CONFIG.get(key)) for key in INDEX_FINGERPRINT_KEYS}
    relevant["embedding"] = {
        "backend": embedding.get("backend", "sentence_transformers"),
        "model": embedding.get("sentence_transformers_model"),
    }
    return cfg_fingerprint(relevant)
