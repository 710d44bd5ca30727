from __future__ import annotations

import time
import uuid
from typing import List, Optional

import structlog

from .config import AppConfig
from .errors import ExternalServiceError, IngestionError
from .index import HashingEmbedder
from .ingest import Chunker
from .query import AnswerComposer, LocalExtractiveComposer, build_composer, build_context
from .store import KnowledgeStore
from .types import ChunkVector, IngestResult, QueryResult, ScoredChunk, Source

_logger = structlog.get_logger()

SOURCE_TYPES = ("note", "url")
EMPTY_STORE_ANSWER = "I don't have any content yet. Please add some notes or URLs first."
NO_MATCH_ANSWER = (
    "I couldn't find relevant information in your notes. "
    "Try rephrasing the question or adding more content."
)
MIN_SIMILARITY = 0.03
PREVIEW_CHARS = 150
MAX_QUESTION_CHARS = 500


def _check_top_k(top_k: int) -> None:
    if top_k < 1:
        raise ValueError(f"top_k must be at least 1, got {top_k}")


class RetrievalService:
    """Ingests content into the store and answers questions from it."""

    def __init__(
        self,
        store: KnowledgeStore,
        embedder: HashingEmbedder,
        chunker: Chunker,
        composer: Optional[AnswerComposer] = None,
        top_k: int = 5,
    ) -> None:
        _check_top_k(top_k)
        self._store = store
        self._embedder = embedder
        self._chunker = chunker
        self._composer = composer or LocalExtractiveComposer()
        self._fallback = LocalExtractiveComposer()
        self._top_k = top_k

    @classmethod
    def from_config(cls, cfg: AppConfig, store: KnowledgeStore) -> "RetrievalService":
        return cls(
            store=store,
            embedder=HashingEmbedder(cfg.embedding_dimensions),
            chunker=Chunker(cfg.chunk_size, cfg.chunk_overlap),
            composer=build_composer(cfg),
            top_k=cfg.top_k,
        )

    def ingest(
        self,
        content: str,
        source_type: str,
        source_url: Optional[str] = None,
    ) -> IngestResult:
        if source_type not in SOURCE_TYPES:
            raise ValueError(f"Unknown source type: {source_type!r}")

        item_id = str(uuid.uuid4())
        # The item is kept even when chunking yields nothing; the caller gets
        # its id on the IngestionError to retry or delete.
        self._store.put_item(
            item_id, content, source_type, source_url, int(time.time() * 1000)
        )

        chunks = self._chunker.chunk(content)
        if not chunks:
            _logger.error("ingestion_failed", item_id=item_id, reason="no_chunks")
            raise IngestionError("No chunks generated from content", item_id=item_id)

        _logger.info("generating_embeddings", item_id=item_id, chunks=len(chunks))
        for index, chunk in enumerate(chunks):
            embedding = self._embedder.embed(chunk)
            self._store.put_chunk(str(uuid.uuid4()), item_id, chunk, embedding, index)

        return IngestResult(item_id=item_id, chunks_created=len(chunks))

    def query(self, question: str, top_k: Optional[int] = None) -> QueryResult:
        top_k = self._top_k if top_k is None else top_k
        _check_top_k(top_k)
        _logger.info("processing_query", question=question, top_k=top_k)
        question_vector = self._embedder.embed(question)

        chunk_vectors = self._store.get_all_chunk_vectors()
        if not chunk_vectors:
            return QueryResult(answer=EMPTY_STORE_ANSWER)

        ranked = self._score(question_vector, chunk_vectors, top_k)
        if not ranked:
            return QueryResult(answer=NO_MATCH_ANSWER)

        context = build_context(ranked)
        answer = self._compose(question, context, ranked)
        sources = [
            Source(
                preview=chunk.content[:PREVIEW_CHARS] + "...",
                similarity=round(chunk.similarity, 3),
            )
            for chunk in ranked
        ]
        return QueryResult(answer=answer, sources=sources)

    def _score(
        self,
        question_vector: List[float],
        chunk_vectors: List[ChunkVector],
        top_k: int,
    ) -> List[ScoredChunk]:
        scored = [
            ScoredChunk(
                id=cv.id,
                content=cv.content,
                similarity=self._embedder.similarity(question_vector, cv.embedding),
            )
            for cv in chunk_vectors
        ]
        relevant = [c for c in scored if c.similarity > MIN_SIMILARITY]
        # sorted() is stable, so ties keep fetch order.
        return sorted(relevant, key=lambda c: c.similarity, reverse=True)[:top_k]

    def _compose(self, question: str, context: str, ranked: List[ScoredChunk]) -> str:
        try:
            return self._composer.compose(question, context, ranked)
        except ExternalServiceError as e:
            _logger.warning(
                "answer_composer_failed",
                composer=self._composer.name,
                error=str(e),
            )
            return self._fallback.compose(question, context, ranked)


__all__ = [
    "EMPTY_STORE_ANSWER",
    "MAX_QUESTION_CHARS",
    "MIN_SIMILARITY",
    "NO_MATCH_ANSWER",
    "RetrievalService",
]
