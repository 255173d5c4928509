"""Hybrid retrieval for ragdesk."""

from .base import Retriever
from .context import build_prompt, build_result, make_context_blocks, retrieval_status, status_message
from .retriever import HybridRetriever
from .scoring import ScoringWeights, min_max_normalize, query_terms, rank, text_relevance

__all__ = [
    "Retriever",
    "HybridRetriever",
    "ScoringWeights",
    "build_prompt",
    "build_result",
    "make_context_blocks",
    "retrieval_status",
    "status_message",
    "min_max_normalize",
    "query_terms",
    "rank",
    "text_relevance",
]
