from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


RetrievalStatus = Literal["ok", "insufficient", "no_context"]


class ContextBlock(BaseModel):
    number: int
    chunk_id: str
    source: str
    page_span: str
    chunk_index: int
    total_chunks: int
    token_count: int
    tags: List[str] = Field(default_factory=list)
    section: Optional[str] = None
    distance: float
    text: str

    def header(self) -> str:
        return f"### [{self.number}] {self.source} ({self.page_span}) [{self.token_count} tokens]"

    def render(self) -> str:
        return f"{self.header()}\n{self.text}"


class RetrievalResult(BaseModel):
    query: str
    instruction: Optional[str] = None
    contexts: List[ContextBlock] = Field(default_factory=list)
    total_chunks: int
    status: RetrievalStatus

    @property
    def insufficient(self) -> bool:
        return self.status != "ok"

    def render_contexts(self) -> str:
        return "\n\n".join(block.render() for block in self.contexts)


class StatusSummary(BaseModel):
    total: int
    unchanged: int
    modified: int
    new: int
    deleted: int


class DocumentStatus(BaseModel):
    status: Dict[str, List[str]]
    summary: StatusSummary


class CorpusAnalysis(BaseModel):
    generation: Optional[str] = None
    created_at: Optional[str] = None
    total_chunks: int = 0
    sources: List[str] = Field(default_factory=list)
    average_chunk_size: int = 0
    average_tokens: int = 0
    tags: Dict[str, int] = Field(default_factory=dict)
    source_breakdown: Dict[str, int] = Field(default_factory=dict)


class FailedSource(BaseModel):
    filename: str
    stage: str
    reason: str


class IngestionSummary(BaseModel):
    up_to_date: bool
    generation: Optional[str] = None
    processed: List[str] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)
    deleted: List[str] = Field(default_factory=list)
    failed: List[FailedSource] = Field(default_factory=list)
    empty_sources: List[str] = Field(default_factory=list)
    new_chunks: int = 0
    total_chunks: int = 0
