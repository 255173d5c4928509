"""Hybrid (dense + lexical) scoring."""

from __future__ import annotations

import dataclasses
import math
from typing import Dict, List, Sequence, Tuple

import numpy as np


@dataclasses.dataclass(frozen=True)
class ScoringWeights:
    vector_weight: float = 0.7
    text_weight: float = 0.3
    min_term_length: int = 3
    epsilon: float = 1e-9

    @classmethod
    def from_config(cls, cfg: Dict) -> "ScoringWeights":
        search_cfg = cfg.get("search", {})
        return cls(
            vector_weight=float(search_cfg.get("vector_weight", cls.vector_weight)),
            text_weight=float(search_cfg.get("text_weight", cls.text_weight)),
            min_term_length=int(search_cfg.get("min_term_length", cls.min_term_length)),
            epsilon=float(search_cfg.get("epsilon", cls.epsilon)),
        )


def query_terms(query: str, min_length: int = 3) -> List[str]:
    """Lowercase whitespace-separated terms, short ones dropped. Repeats are kept."""
    return [t for t in query.lower().split() if len(t) >= min_length]


def text_relevance(terms: Sequence[str], text: str) -> float:
    """TF-IDF flavoured lexical score of text for the query terms.

    A chunk word counts as a match when it contains the term anywhere, so
    "pricing" also matches "pricing," and "repricing".
    """
    words = text.lower().split()
    n = len(words)
    if n == 0:
        return 0.0

    score = 0.0
    for term in terms:
        m = sum(1 for w in words if term in w)
        if m > 0:
            score += (m / n) * math.log(1 + n / m)
    return score


def min_max_normalize(scores: np.ndarray, epsilon: float = 1e-9) -> np.ndarray:
    scores = np.asarray(scores, dtype=np.float64)
    if scores.size == 0:
        return scores
    lo, hi = scores.min(), scores.max()
    return (scores - lo) / (hi - lo + epsilon)


def rank(
    vector_scores: np.ndarray,
    text_scores: np.ndarray,
    k: int,
    weights: ScoringWeights = ScoringWeights(),
) -> List[Tuple[int, float]]:
    """Blend both score sets and return the top k as ``(position, distance)``.

    Positions refer to the input order; equal scores keep that order. With
    fewer than two candidates the raw vector score is used unblended.
    """
    vector_scores = np.asarray(vector_scores, dtype=np.float64)
    n = int(vector_scores.size)
    if k <= 0 or n == 0:
        return []

    if n < 2:
        combined = vector_scores
    else:
        combined = (
            weights.vector_weight * min_max_normalize(vector_scores, weights.epsilon)
            + weights.text_weight * min_max_normalize(text_scores, weights.epsilon)
        )

    order = np.argsort(-combined, kind="stable")[:k]
    return [(int(i), float(1.0 - combined[i])) for i in order]
