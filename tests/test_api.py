from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from knowledge_inbox.api import create_app
from knowledge_inbox.config import AppConfig
from knowledge_inbox.errors import FetchError, StoreError
from knowledge_inbox.ingest import ContentFetcher
from knowledge_inbox.service import EMPTY_STORE_ANSWER, RetrievalService
from knowledge_inbox.store import KnowledgeStore


@pytest.fixture
def fetcher() -> MagicMock:
    return MagicMock(spec=ContentFetcher)


@pytest.fixture
def client(service: RetrievalService, store: KnowledgeStore, fetcher: MagicMock) -> TestClient:
    return TestClient(create_app(service, store, fetcher))


class TestIngestEndpoint:
    def test_ingest_note(self, client: TestClient, store: KnowledgeStore) -> None:
        response = client.post("/api/ingest", json={"type": "note", "content": "Paris is the capital of France."})

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["chunksCreated"] == 1
        assert store.get_item(body["itemId"]) is not None

    def test_ingest_url_fetches_first(self, client: TestClient, fetcher: MagicMock, store: KnowledgeStore) -> None:
        fetcher.fetch_url.return_value = "The Sun is a star at the centre of the solar system."

        response = client.post("/api/ingest", json={"type": "url", "content": "https://example.com/sun"})

        assert response.status_code == 201
        fetcher.fetch_url.assert_called_once_with("https://example.com/sun")
        item = store.get_item(response.json()["itemId"])
        assert item is not None
        assert item.source_url == "https://example.com/sun"
        assert item.content.startswith("The Sun")

    def test_url_fetch_failure(self, client: TestClient, fetcher: MagicMock) -> None:
        fetcher.fetch_url.side_effect = FetchError("Request timeout")

        response = client.post("/api/ingest", json={"type": "url", "content": "https://slow.example.com"})

        assert response.status_code == 400
        assert response.json() == {"error": "URL fetch failed", "details": "Request timeout"}

    def test_fetched_page_without_text(self, client: TestClient, fetcher: MagicMock) -> None:
        fetcher.fetch_url.return_value = ""

        response = client.post("/api/ingest", json={"type": "url", "content": "https://empty.example.com"})

        assert response.status_code == 422
        assert response.json()["error"] == "Ingestion failed"

    @pytest.mark.parametrize(
        ("payload", "error"),
        [
            ({"type": "note"}, "Missing required fields"),
            ({"content": "text"}, "Missing required fields"),
            ({"type": "pdf", "content": "text"}, "Invalid type"),
            ({"type": "note", "content": "   "}, "Invalid content"),
            ({"type": "note", "content": 123}, "Invalid content"),
            ({"type": "note", "content": ["a", "list"]}, "Invalid content"),
        ],
    )
    def test_validation(self, client: TestClient, payload: dict, error: str) -> None:
        response = client.post("/api/ingest", json=payload)

        assert response.status_code == 400
        assert response.json()["error"] == error


class TestItemsEndpoint:
    def test_lists_items(self, client: TestClient) -> None:
        client.post("/api/ingest", json={"type": "note", "content": "First note about gardening."})

        response = client.get("/api/items")

        body = response.json()
        assert body["success"] is True
        assert body["total"] == 1
        item = body["items"][0]
        assert item["type"] == "note"
        assert item["url"] is None
        assert item["preview"] == "First note about gardening."
        assert isinstance(item["createdAt"], int)


class TestQueryEndpoint:
    def test_empty_store(self, client: TestClient) -> None:
        response = client.post("/api/query", json={"question": "Anything?"})

        assert response.status_code == 200
        assert response.json() == {"success": True, "answer": EMPTY_STORE_ANSWER, "sources": []}

    def test_answers_from_notes(self, client: TestClient) -> None:
        client.post("/api/ingest", json={"type": "note", "content": "Paris is the capital of France."})
        client.post("/api/ingest", json={"type": "note", "content": "Tokyo is the capital of Japan."})

        response = client.post("/api/query", json={"question": "What is the capital of France?"})

        body = response.json()
        assert "Paris" in body["answer"]
        assert body["sources"][0]["preview"].startswith("Paris")
        assert 0 < body["sources"][0]["similarity"] <= 1

    @pytest.mark.parametrize(
        ("question", "error"),
        [
            (None, "Invalid question"),
            ("  ", "Invalid question"),
            (123, "Invalid question"),
            ({"text": "why?"}, "Invalid question"),
            ("x" * 501, "Question too long"),
        ],
    )
    def test_validation(self, client: TestClient, question: object, error: str) -> None:
        response = client.post("/api/query", json={"question": question})

        assert response.status_code == 400
        assert response.json()["error"] == error

    def test_uses_configured_top_k(
        self, store: KnowledgeStore, fetcher: MagicMock, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        service = RetrievalService.from_config(AppConfig(top_k=1), store)
        client = TestClient(create_app(service, store, fetcher))
        client.post("/api/ingest", json={"type": "note", "content": "Paris is the capital of France."})
        client.post("/api/ingest", json={"type": "note", "content": "Tokyo is the capital of Japan."})

        response = client.post("/api/query", json={"question": "What is the capital of France?"})

        sources = response.json()["sources"]
        assert len(sources) == 1
        assert sources[0]["preview"].startswith("Paris")

    def test_store_failure_is_500(self, fetcher: MagicMock) -> None:
        store = MagicMock(spec=KnowledgeStore)
        service = MagicMock(spec=RetrievalService)
        service.query.side_effect = StoreError("database is locked")
        client = TestClient(create_app(service, store, fetcher))

        response = client.post("/api/query", json={"question": "Anything?"})

        assert response.status_code == 500
        assert response.json()["details"] == "database is locked"


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert "timestamp" in body

    def test_root(self, client: TestClient) -> None:
        assert client.get("/").json() == {"message": "Backend is running", "status": "OK"}


class TestRouting:
    def test_unknown_route(self, client: TestClient) -> None:
        response = client.get("/api/nope")

        assert response.status_code == 404
        assert response.json() == {"error": "Route not found", "path": "/api/nope"}

    def test_wrong_method_keeps_status(self, client: TestClient) -> None:
        response = client.get("/api/query")

        assert response.status_code == 405
