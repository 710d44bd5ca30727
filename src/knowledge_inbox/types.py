from __future__ import annotations

from dataclasses import dataclass, field
from typing import List


@dataclass
class ChunkVector:
    id: str
    content: str
    embedding: List[float]


@dataclass
class ScoredChunk:
    id: str
    content: str
    similarity: float  # cosine, higher is more similar


@dataclass
class Source:
    preview: str
    similarity: float


@dataclass
class QueryResult:
    answer: str
    sources: List[Source] = field(default_factory=list)


@dataclass
class IngestResult:
    item_id: str
    chunks_created: int


@dataclass
class ItemRecord:
    id: str
    content: str
    source_type: str  # note | url
    source_url: str | None
    created_at: int  # epoch milliseconds


@dataclass
class ChunkRecord:
    id: str
    item_id: str
    content: str
    embedding: List[float]
    chunk_index: int


@dataclass
class ItemSummary:
    id: str
    source_type: str
    source_url: str | None
    preview: str
    created_at: int  # epoch milliseconds


__all__ = [
    "ChunkRecord",
    "ChunkVector",
    "IngestResult",
    "ItemRecord",
    "ItemSummary",
    "QueryResult",
    "ScoredChunk",
    "Source",
]
