"""Retriever Interface."""

from __future__ import annotations

from typing import List, Tuple

from ..core import Chunk


class Retriever:
    """Abstract base class for chunk retrieval."""

    def search(self, query: str, k: int) -> List[Tuple[Chunk, float]]:
        """Find the chunks most relevant to query.

        Args:
            query: Free text question
            k: Maximum number of results

        Returns:
            List of (Chunk, distance) tuples, best first. Lower distance
            means more relevant.
        """
        raise NotImplementedError
