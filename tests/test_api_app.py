"""Tests for the FastAPI application helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from io import BytesIO
from typing import Sequence

from fastapi.testclient import TestClient

from docqa.api.app import AppDependencies, create_app
from docqa.config import Settings
from docqa.errors import CompletionFailed, EmbeddingFailed
from docqa.models import Answer, Citation, Document

UPLOADED_AT = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


class StubPipeline:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.ingested: list[tuple[str, list[str]]] = []

    def ingest(self, document_name: str, page_texts: Sequence[str]) -> Document:
        if self.error is not None:
            raise self.error
        self.ingested.append((document_name, list(page_texts)))
        return Document(id="doc-1", filename=document_name, total_pages=len(page_texts), total_chunks=3, uploaded_at=UPLOADED_AT)

    def ingest_file(self, path, *, filename: str | None = None) -> Document:
        return self.ingest(filename or path.name, [path.read_text()])


class StubStore:
    def list_documents(self) -> Sequence[Document]:
        return []

    def get_document(self, document_id: str) -> Document | None:
        return None

    def delete_document(self, document_id: str) -> bool:
        return False

    def count(self) -> int:
        return 0


class StubQueryService:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[tuple[str, str | None, int | None]] = []

    def answer(self, question: str, *, document_id: str | None = None, k: int | None = None) -> Answer:
        self.calls.append((question, document_id, k))
        if self.error is not None:
            raise self.error
        return Answer(
            text="stub answer [Page 2]",
            citations=[Citation(page=2, text="stub excerpt...")],
            query_id="query-1",
            latency_ms=1.0,
            retrieval_ms=0.5,
            generation_ms=0.4,
        )


def create_test_client(
    pipeline: StubPipeline | None = None,
    query_service: StubQueryService | None = None,
    settings: Settings | None = None,
) -> TestClient:
    deps = AppDependencies(
        pipeline=pipeline or StubPipeline(),
        store=StubStore(),
        query_service=query_service or StubQueryService(),
    )
    settings = settings or Settings(environment="test")
    app = create_app(settings=settings, dependencies=deps)
    return TestClient(app)


def test_upload_returns_document_record() -> None:
    pipeline = StubPipeline()
    client = create_test_client(pipeline=pipeline)

    response = client.post("/documents", files={"file": ("notes.txt", BytesIO(b"hello"), "text/plain")})

    assert response.status_code == 201, response.text
    payload = response.json()
    assert payload["id"] == "doc-1"
    assert payload["filename"] == "notes.txt"
    assert payload["total_pages"] == 1
    assert payload["total_chunks"] == 3
    assert pipeline.ingested == [("notes.txt", ["hello"])]
    assert "X-Correlation-ID" in response.headers


def test_upload_rejects_unsupported_and_empty_files() -> None:
    client = create_test_client()
    response = client.post("/documents", files={"file": ("tool.exe", BytesIO(b"MZ"), "application/octet-stream")})
    assert response.status_code == 415
    response = client.post("/documents", files={"file": ("empty.pdf", BytesIO(b""), "application/pdf")})
    assert response.status_code == 400


def test_upload_over_size_limit_is_rejected_without_ingesting() -> None:
    pipeline = StubPipeline()
    client = create_test_client(pipeline=pipeline, settings=Settings(environment="test", max_upload_size_mb=1))
    oversized = BytesIO(b"a" * (1024 * 1024 + 1))

    response = client.post("/documents", files={"file": ("big.txt", oversized, "text/plain")})

    assert response.status_code == 413
    assert "big.txt" in response.json()["detail"]
    assert pipeline.ingested == []


def test_ask_returns_answer_and_page_citations() -> None:
    service = StubQueryService()
    client = create_test_client(query_service=service)

    response = client.post("/ask", json={"question": "What?", "document_id": "doc-1", "top_k": 3})

    assert response.status_code == 200, response.text
    payload = response.json()
    assert payload["answer"] == "stub answer [Page 2]"
    assert payload["citations"] == [{"page": 2, "text": "stub excerpt..."}]
    assert service.calls == [("What?", "doc-1", 3)]


def test_typed_failures_map_to_error_responses() -> None:
    client = create_test_client(query_service=StubQueryService(error=CompletionFailed("model down")))
    response = client.post("/ask", json={"question": "What?"}, headers={"X-Request-ID": "req-7"})
    assert response.status_code == 502
    assert response.json() == {"detail": "model down", "code": "completion_failed", "correlation_id": "req-7"}

    client = create_test_client(pipeline=StubPipeline(error=EmbeddingFailed("quota")))
    response = client.post("/documents/pages", json={"filename": "a.pdf", "pages": ["text"]})
    assert response.status_code == 502
    assert response.json()["code"] == "embedding_failed"


def test_missing_documents_are_not_found() -> None:
    client = create_test_client()
    assert client.get("/documents/nope").status_code == 404
    assert client.delete("/documents/nope").status_code == 404
    assert client.get("/documents").json() == {"documents": []}


def test_health_endpoints() -> None:
    client = create_test_client()
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json()["environment"] == "test"
    assert client.get("/healthz/ready").json() == {"status": "ready"}
    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "docqa_retrieval_duration_seconds" in metrics.text
