"""Token-bounded, paragraph and sentence aware text chunking."""

from __future__ import annotations

import functools
import logging
import re
from typing import List

import tiktoken

from .models import ChunkCandidate

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "cl100k_base"

_PARAGRAPH_RE = re.compile(r"\n\s*\n")
# A sentence is a run of non-terminators plus the terminator run that closes it.
_SENTENCE_RE = re.compile(r"[^.!?]+(?:[.!?]+|$)|[.!?]+")

PARAGRAPH_SEPARATOR = "\n\n"


@functools.lru_cache(maxsize=None)
def get_encoder(encoding: str = DEFAULT_ENCODING) -> tiktoken.Encoding:
    return tiktoken.get_encoding(encoding)


def count_tokens(text: str, encoding: str = DEFAULT_ENCODING) -> int:
    """Count tokens in text using tiktoken.

    Args:
        text: Text to count tokens for
        encoding: tiktoken encoding name

    Returns:
        Number of tokens
    """
    if not text:
        return 0
    return len(get_encoder(encoding).encode(text, disallowed_special=()))


def split_paragraphs(text: str) -> List[str]:
    """Split on blank lines, dropping empty paragraphs."""
    return [p for p in _PARAGRAPH_RE.split(text) if p.strip()]


def split_sentences(paragraph: str) -> List[str]:
    """Split a paragraph into sentences, keeping each terminator with its sentence."""
    sentences = []
    for match in _SENTENCE_RE.finditer(paragraph):
        sentence = match.group(0).strip()
        if sentence:
            sentences.append(sentence)
    return sentences


# -----------------------------------------------------------------------------
# Interfaces
# -----------------------------------------------------------------------------

class Chunker:
    """Abstract base class for text chunking."""

    def chunk(self, text: str) -> List[ChunkCandidate]:
        """Chunk text into token-bounded pieces.

        Args:
            text: Full document text

        Returns:
            Ordered chunk candidates
        """
        raise NotImplementedError


class DefaultChunker(Chunker):
    """Accumulates sentences until the token budget is reached.

    Closed chunks seed the next one with their trailing
    ``overlap_tokens * chars_per_token`` characters. Paragraph boundaries add a
    separator but never force a break. A sentence larger than the budget is
    emitted on its own.
    """

    def __init__(
        self,
        max_tokens: int = 800,
        overlap_tokens: int = 120,
        chars_per_token: int = 4,
        encoding: str = DEFAULT_ENCODING,
    ):
        if max_tokens <= 0:
            raise ValueError(f"max_tokens must be positive, got {max_tokens}")
        if overlap_tokens < 0:
            raise ValueError(f"overlap_tokens must not be negative, got {overlap_tokens}")
        self.max_tokens = max_tokens
        self.overlap_tokens = overlap_tokens
        self.chars_per_token = chars_per_token
        self.encoding = encoding

    def _count(self, text: str) -> int:
        return count_tokens(text, self.encoding)

    def _overlap_seed(self, closed_text: str) -> str:
        size = self.overlap_tokens * self.chars_per_token
        if size <= 0:
            return ""
        return closed_text[-size:].strip()

    def chunk(self, text: str) -> List[ChunkCandidate]:
        chunks: List[ChunkCandidate] = []
        buffer = ""
        buffer_tokens = 0

        def close() -> str:
            closed = buffer.strip()
            if closed:
                chunks.append(ChunkCandidate(text=closed, token_count=self._count(closed)))
            return closed

        for paragraph in split_paragraphs(text):
            for sentence in split_sentences(paragraph):
                sentence_tokens = self._count(sentence)

                if sentence_tokens > self.max_tokens:
                    logger.debug(
                        f"Sentence of {sentence_tokens} tokens exceeds budget {self.max_tokens}, "
                        "emitting it as its own chunk"
                    )
                    close()
                    chunks.append(ChunkCandidate(text=sentence, token_count=sentence_tokens))
                    buffer, buffer_tokens = "", 0
                    continue

                joiner = "" if not buffer or buffer.endswith("\n") else " "
                piece_tokens = self._count(joiner + sentence)

                if buffer.strip() and buffer_tokens + piece_tokens > self.max_tokens:
                    closed = close()
                    seed = self._overlap_seed(closed)
                    seed_tokens = self._count(seed)
                    seeded_tokens = self._count(" " + sentence)
                    if seed and seed_tokens + seeded_tokens <= self.max_tokens:
                        buffer = seed + " " + sentence
                        buffer_tokens = seed_tokens + seeded_tokens
                    else:
                        buffer, buffer_tokens = sentence, sentence_tokens
                else:
                    buffer += joiner + sentence
                    buffer_tokens += piece_tokens

            if buffer:
                buffer += PARAGRAPH_SEPARATOR
                buffer_tokens += self._count(PARAGRAPH_SEPARATOR)

        close()
        logger.debug(f"Created {len(chunks)} chunks (max_tokens={self.max_tokens}, overlap={self.overlap_tokens})")
        return chunks


def chunk_text(
    text: str,
    max_tokens: int = 800,
    overlap_tokens: int = 120,
    chars_per_token: int = 4,
    encoding: str = DEFAULT_ENCODING,
) -> List[ChunkCandidate]:
    """Chunk text using sentence accumulation (Functional Wrapper)."""
    chunker = DefaultChunker(
        max_tokens=max_tokens,
        overlap_tokens=overlap_tokens,
        chars_per_token=chars_per_token,
        encoding=encoding,
    )
    return chunker.chunk(text)
