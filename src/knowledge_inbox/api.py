"""FastAPI application exposing ingestion and question answering."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from .errors import FetchError, IngestionError, StoreError
from .ingest import ContentFetcher
from .service import MAX_QUESTION_CHARS, SOURCE_TYPES, RetrievalService
from .store import KnowledgeStore

_logger = structlog.get_logger()


class IngestRequest(BaseModel):
    type: Any = None
    content: Any = None


class QueryRequest(BaseModel):
    question: Any = None


class SourceInfo(BaseModel):
    preview: str
    similarity: float


class QueryResponse(BaseModel):
    success: bool = True
    answer: str
    sources: List[SourceInfo]


def _error(status_code: int, error: str, details: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "details": details})


def create_app(
    service: RetrievalService,
    store: KnowledgeStore,
    fetcher: ContentFetcher,
) -> FastAPI:
    """
    Create the HTTP application around an already wired service.

    Returns:
        Configured FastAPI app instance.
    """
    app = FastAPI(
        title="Knowledge Inbox API",
        description="Save notes and web pages, then ask questions about them.",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        _logger.info(
            "incoming_request",
            method=request.method,
            path=request.url.path,
            client=request.client.host if request.client else None,
        )
        return await call_next(request)

    @app.exception_handler(StoreError)
    async def handle_store_error(request: Request, exc: StoreError) -> JSONResponse:
        _logger.error("store_error", path=request.url.path, error=str(exc))
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", str(exc))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return JSONResponse(
                status_code=exc.status_code,
                content={"error": "Route not found", "path": request.url.path},
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.post("/api/ingest", status_code=status.HTTP_201_CREATED)
    def ingest(body: IngestRequest):
        if not body.type or not body.content:
            return _error(400, "Missing required fields", "Both type and content are required")
        if body.type not in SOURCE_TYPES:
            return _error(400, "Invalid type", 'Type must be either "note" or "url"')
        if not isinstance(body.content, str) or not body.content.strip():
            return _error(400, "Invalid content", "Content must be a non-empty string")

        text = body.content
        source_url = None
        if body.type == "url":
            try:
                text = fetcher.fetch_url(body.content)
            except FetchError as e:
                return _error(400, "URL fetch failed", str(e))
            source_url = body.content

        try:
            result = service.ingest(text, body.type, source_url)
        except IngestionError as e:
            return _error(422, "Ingestion failed", str(e))

        return {
            "success": True,
            "itemId": result.item_id,
            "chunksCreated": result.chunks_created,
        }

    @app.get("/api/items")
    def items():
        summaries = store.list_items()
        return {
            "success": True,
            "items": [
                {
                    "id": s.id,
                    "type": s.source_type,
                    "url": s.source_url,
                    "preview": s.preview,
                    "createdAt": s.created_at,
                }
                for s in summaries
            ],
            "total": len(summaries),
        }

    @app.post("/api/query", response_model=QueryResponse)
    def query(body: QueryRequest):
        question = body.question
        if not isinstance(question, str) or not question.strip():
            return _error(400, "Invalid question", "Question must be a non-empty string")
        if len(question) > MAX_QUESTION_CHARS:
            return _error(
                400,
                "Question too long",
                f"Question must be under {MAX_QUESTION_CHARS} characters",
            )

        result = service.query(question)
        return QueryResponse(
            answer=result.answer,
            sources=[SourceInfo(preview=s.preview, similarity=s.similarity) for s in result.sources],
        )

    @app.get("/health")
    def health():
        return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.get("/")
    def root():
        return {"message": "Backend is running", "status": "OK"}

    return app


__all__ = ["create_app"]
