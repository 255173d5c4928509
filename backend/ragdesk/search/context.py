"""Context blocks and prompt text for the answer generator."""

from __future__ import annotations

from typing import List, Optional, Tuple

from ..core import Chunk
from ..schemas import ContextBlock, RetrievalResult, RetrievalStatus


# ----------------------------
# Context blocks
# ----------------------------

def make_context_blocks(hits: List[Tuple[Chunk, float]]) -> List[ContextBlock]:
    return [
        ContextBlock(
            number=i,
            chunk_id=chunk.id,
            source=chunk.source,
            page_span=chunk.page_span,
            chunk_index=chunk.chunk_index,
            total_chunks=chunk.total_chunks,
            token_count=chunk.token_count,
            tags=list(chunk.tags),
            section=chunk.section,
            distance=round(distance, 6),
            text=chunk.text,
        )
        for i, (chunk, distance) in enumerate(hits, start=1)
    ]


def retrieval_status(hit_count: int, min_contexts: int = 2) -> RetrievalStatus:
    if hit_count == 0:
        return "no_context"
    if hit_count < min_contexts:
        return "insufficient"
    return "ok"


def build_result(
    query: str,
    hits: List[Tuple[Chunk, float]],
    total_chunks: int,
    instruction: Optional[str] = None,
    min_contexts: int = 2,
) -> RetrievalResult:
    return RetrievalResult(
        query=query,
        instruction=instruction,
        contexts=make_context_blocks(hits),
        total_chunks=total_chunks,
        status=retrieval_status(len(hits), min_contexts),
    )


# ----------------------------
# Prompt text
# ----------------------------

def build_prompt(result: RetrievalResult) -> str:
    """Render the instruction, question and numbered contexts as one prompt."""
    lines: List[str] = []
    if result.instruction:
        lines.append(result.instruction.strip())
        lines.append("")
    lines.append(f"User question: {result.query}")
    lines.append("")
    lines.append("Use only the following retrieved context. Cite like [#] matching the bracket numbers.")
    lines.append("")
    lines.append("Context:")
    lines.append(result.render_contexts())
    return "\n".join(lines)


def status_message(result: RetrievalResult) -> str:
    """Guidance for the user when retrieval did not find enough material."""
    if result.status == "no_context":
        return (
            f'No relevant content found for query: "{result.query}". '
            f"The index holds {result.total_chunks} chunks; check that documents were ingested "
            "or try a different query."
        )
    if result.status == "insufficient":
        return (
            f'Insufficient corpus for query: "{result.query}". '
            f"Only {len(result.contexts)} relevant chunk(s) out of {result.total_chunks}; "
            "add more documents on this topic or rephrase the query."
        )
    return f"Found {len(result.contexts)} relevant chunks."
