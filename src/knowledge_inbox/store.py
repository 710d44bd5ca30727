from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from typing import Any, List, Optional

import structlog
from sqlalchemy import (
    JSON,
    BigInteger,
    Engine,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    create_engine,
    delete,
    event,
    func,
    select,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, relationship
from sqlalchemy.pool import StaticPool

from .errors import StoreError
from .types import ChunkRecord, ChunkVector, ItemRecord, ItemSummary

_logger = structlog.get_logger()

PREVIEW_CHARS = 200


class Base(DeclarativeBase):
    pass


class Item(Base):
    __tablename__ = "items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    source_type: Mapped[str] = mapped_column(String(10), nullable=False)
    source_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    chunks: Mapped[List["Chunk"]] = relationship(
        back_populates="item",
        order_by="Chunk.chunk_index",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Chunk(Base):
    __tablename__ = "chunks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    item_id: Mapped[str] = mapped_column(
        ForeignKey("items.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    embedding: Mapped[List[float]] = mapped_column(JSON, nullable=False)
    chunk_index: Mapped[int] = mapped_column(Integer, nullable=False)

    item: Mapped[Item] = relationship(back_populates="chunks")

    __table_args__ = (Index("idx_chunks_item_id", "item_id"),)


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def make_engine(database_url: str) -> Engine:
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, pool_pre_ping=True)

    kwargs: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if ":memory:" in database_url or database_url.rstrip("/") == "sqlite:":
        kwargs["poolclass"] = StaticPool
    engine = create_engine(database_url, **kwargs)
    event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


class KnowledgeStore:
    """SQLAlchemy-backed persistence for items and their embedded chunks."""

    def __init__(self, database_url: str = "sqlite:///knowledge.db") -> None:
        self._engine = make_engine(database_url)
        _logger.info("store_configured", url=database_url.split("@")[-1])

    @contextmanager
    def _session(self, commit: bool = False) -> Generator[Session, None, None]:
        try:
            with Session(self._engine, expire_on_commit=False) as session:
                yield session
                if commit:
                    session.commit()
        except SQLAlchemyError as e:
            _logger.error("store_operation_failed", error=str(e))
            raise StoreError(str(e)) from e

    def init_schema(self) -> None:
        try:
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError as e:
            raise StoreError(str(e)) from e
        _logger.info("store_schema_initialized")

    def put_item(
        self,
        id: str,
        content: str,
        source_type: str,
        source_url: Optional[str],
        created_at: int,
    ) -> None:
        with self._session(commit=True) as session:
            session.add(
                Item(
                    id=id,
                    content=content,
                    source_type=source_type,
                    source_url=source_url,
                    created_at=created_at,
                )
            )
        _logger.debug("item_inserted", id=id, source_type=source_type)

    def put_chunk(
        self,
        id: str,
        item_id: str,
        content: str,
        embedding: List[float],
        chunk_index: int,
    ) -> None:
        with self._session(commit=True) as session:
            session.add(
                Chunk(
                    id=id,
                    item_id=item_id,
                    content=content,
                    embedding=list(embedding),
                    chunk_index=chunk_index,
                )
            )

    def get_all_chunk_vectors(self) -> List[ChunkVector]:
        with self._session() as session:
            rows = session.execute(select(Chunk.id, Chunk.content, Chunk.embedding)).all()
        return [ChunkVector(id=r.id, content=r.content, embedding=r.embedding) for r in rows]

    def get_item(self, item_id: str) -> Optional[ItemRecord]:
        with self._session() as session:
            item = session.get(Item, item_id)
            if item is None:
                return None
            return ItemRecord(
                id=item.id,
                content=item.content,
                source_type=item.source_type,
                source_url=item.source_url,
                created_at=item.created_at,
            )

    def get_chunks_for_item(self, item_id: str) -> List[ChunkRecord]:
        stmt = select(Chunk).where(Chunk.item_id == item_id).order_by(Chunk.chunk_index)
        with self._session() as session:
            return [
                ChunkRecord(
                    id=c.id,
                    item_id=c.item_id,
                    content=c.content,
                    embedding=c.embedding,
                    chunk_index=c.chunk_index,
                )
                for c in session.scalars(stmt)
            ]

    def list_items(self) -> List[ItemSummary]:
        stmt = select(
            Item.id,
            Item.source_type,
            Item.source_url,
            Item.created_at,
            func.substr(Item.content, 1, PREVIEW_CHARS).label("preview"),
        ).order_by(Item.created_at.desc())
        with self._session() as session:
            rows = session.execute(stmt).all()
        return [
            ItemSummary(
                id=r.id,
                source_type=r.source_type,
                source_url=r.source_url,
                preview=r.preview,
                created_at=r.created_at,
            )
            for r in rows
        ]

    def delete_item(self, item_id: str) -> bool:
        with self._session(commit=True) as session:
            result = session.execute(delete(Item).where(Item.id == item_id))
        deleted = result.rowcount > 0
        _logger.info("item_deleted", id=item_id, deleted=deleted)
        return deleted

    def close(self) -> None:
        self._engine.dispose()


__all__ = ["Base", "Chunk", "Item", "KnowledgeStore", "make_engine"]
