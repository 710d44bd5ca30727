from pathlib import Path

import pytest

from knowledge_inbox.index import HashingEmbedder
from knowledge_inbox.ingest import Chunker
from knowledge_inbox.query import LocalExtractiveComposer
from knowledge_inbox.service import RetrievalService
from knowledge_inbox.store import KnowledgeStore


@pytest.fixture
def store(tmp_path: Path):
    s = KnowledgeStore(f"sqlite:///{tmp_path / 'knowledge.db'}")
    s.init_schema()
    yield s
    s.close()


@pytest.fixture
def service(store: KnowledgeStore) -> RetrievalService:
    return RetrievalService(
        store=store,
        embedder=HashingEmbedder(),
        chunker=Chunker(500, 100),
        composer=LocalExtractiveComposer(),
    )
