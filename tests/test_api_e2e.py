from __future__ import annotations

from io import BytesIO
from uuid import uuid4

import chromadb
from fastapi.testclient import TestClient

from docqa.api.app import build_dependencies, create_app
from docqa.config import Settings
from docqa.embeddings.store import ChromaVectorStore
from docqa.services.query import FALLBACK_ANSWER


def make_app() -> TestClient:
    settings = Settings(
        environment="test",
        embedding_provider="hash",
        embedding_dim=32,
        completion_provider="template",
        chroma_host=None,
    )
    store = ChromaVectorStore(collection_name=f"e2e-{uuid4().hex[:12]}", client=chromadb.EphemeralClient())
    app = create_app(settings=settings, dependencies=build_dependencies(settings, store=store))
    return TestClient(app)


def _page(count: int, prefix: str) -> str:
    return " ".join(f"{prefix}{i}" for i in range(count))


def test_two_page_document_flow():
    client = make_app()

    r = client.post(
        "/documents/pages",
        json={"filename": "handbook.pdf", "pages": [_page(50, "intro"), _page(2000, "policy")]},
    )
    assert r.status_code == 201, r.text
    document = r.json()
    assert document["total_pages"] == 2
    assert document["total_chunks"] > 2

    listed = client.get("/documents").json()["documents"]
    assert [doc["id"] for doc in listed] == [document["id"]]
    assert client.get(f"/documents/{document['id']}").json() == document

    r = client.post("/ask", json={"question": "What does the policy say?", "document_id": document["id"], "top_k": 5})
    assert r.status_code == 200, r.text
    data = r.json()
    assert "[Page" in data["answer"]
    citations = data["citations"]
    assert len(citations) == 5
    assert all(1 <= c["page"] <= 2 for c in citations)
    assert all(len(c["text"]) <= 153 for c in citations)
    page_two = [c for c in citations if c["page"] == 2]
    assert page_two and all(c["text"].endswith("...") for c in page_two)


def test_question_without_matching_content_returns_fallback():
    client = make_app()
    r = client.post("/ask", json={"question": "Is anything indexed?"})
    assert r.status_code == 200, r.text
    assert r.json()["answer"] == FALLBACK_ANSWER
    assert r.json()["citations"] == []

    client.post("/documents/pages", json={"filename": "a.pdf", "pages": ["alpha beta gamma"]})
    r = client.post("/ask", json={"question": "alpha?", "document_id": "doc_missing"})
    assert r.json()["answer"] == FALLBACK_ANSWER
    assert r.json()["citations"] == []


def test_upload_text_file_then_delete():
    client = make_app()
    content = b"Warranty terms.\fReturns are accepted within 30 days."
    r = client.post("/documents", files={"file": ("terms.txt", BytesIO(content), "text/plain")})
    assert r.status_code == 201, r.text
    doc_id = r.json()["id"]
    assert r.json()["total_pages"] == 2
    assert r.json()["total_chunks"] == 2

    r = client.post("/ask", json={"question": "Returns?", "document_id": doc_id})
    pages = sorted(c["page"] for c in r.json()["citations"])
    assert pages == [1, 2]

    assert client.delete(f"/documents/{doc_id}").status_code == 204
    assert client.get(f"/documents/{doc_id}").status_code == 404
    r = client.post("/ask", json={"question": "Returns?", "document_id": doc_id})
    assert r.json()["answer"] == FALLBACK_ANSWER


def test_invalid_input_is_rejected_before_any_work():
    client = make_app()
    r = client.post("/ask", json={"question": "   "})
    assert r.status_code == 400
    assert r.json()["code"] == "input_invalid"

    r = client.post("/documents/pages", json={"filename": "blank.pdf", "pages": ["", "  "]})
    assert r.status_code == 422
    assert r.json()["code"] == "extraction_empty"
    assert client.get("/documents").json() == {"documents": []}


def test_zero_top_k_is_answered_with_fallback():
    client = make_app()
    client.post("/documents/pages", json={"filename": "a.pdf", "pages": ["alpha beta gamma"]})
    r = client.post("/ask", json={"question": "alpha?", "top_k": 0})
    assert r.status_code == 200
    assert r.json()["citations"] == []
