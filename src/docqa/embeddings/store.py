"""Vector store implementations."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Mapping, MutableMapping, Protocol, Sequence

import chromadb
from chromadb.api import ClientAPI
from chromadb.api.types import Documents, Embeddings as ChromaEmbeddings, IDs, Metadatas

from docqa.models import Chunk, Document, RetrievedChunk


class VectorStore(Protocol):
    """Protocol for chunk persistence and similarity search backends."""

    def insert(self, document: Document, chunks: Sequence[Chunk]) -> Sequence[str]:
        """Persist a document together with all of its embedded chunks."""

    def search(self, vector: Sequence[float], *, k: int = 5, document_id: str | None = None) -> Sequence[RetrievedChunk]:
        """Return up to ``k`` chunks ranked by descending cosine similarity."""

    def delete_document(self, document_id: str) -> bool:
        """Delete a document and its chunks; return whether anything was removed."""

    def get_document(self, document_id: str) -> Document | None:
        """Return the document record, if it is visible."""

    def list_documents(self) -> Sequence[Document]:
        """Return all visible documents."""

    def count(self) -> int:
        """Return total number of stored chunks."""


class ChromaVectorStore:
    """Chroma-backed chunk store using cosine distance.

    The document record is carried on every chunk's metadata, so deleting the
    chunks deletes the document. Chunks are written with ``committed`` false
    in batches no larger than the client allows, then flipped to committed
    with the head chunk last; reads only see committed chunks and the
    document record is read from the head chunk.
    """

    def __init__(
        self,
        collection_name: str = "docqa-chunks",
        *,
        client: ClientAPI | None = None,
        persist_directory: str | Path | None = None,
        batch_size: int | None = None,
    ) -> None:
        if client is not None:
            self._client = client
        elif persist_directory is not None:
            self._client = chromadb.PersistentClient(path=str(persist_directory))
        else:
            self._client = chromadb.EphemeralClient()
        self._collection = self._client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"},
        )
        max_batch = self._client.get_max_batch_size()
        self._batch_size = min(batch_size, max_batch) if batch_size else max_batch

    def insert(self, document: Document, chunks: Sequence[Chunk]) -> Sequence[str]:
        if not chunks:
            raise ValueError(f"Document {document.id} has no chunks to store")
        missing = [chunk.chunk_index for chunk in chunks if chunk.embedding is None]
        if missing:
            raise ValueError(f"Chunks without embeddings: {missing}")
        ordered = sorted(chunks, key=lambda chunk: chunk.chunk_index)
        ids: IDs = [chunk.chunk_id for chunk in ordered]
        documents: Documents = [chunk.content for chunk in ordered]
        metadatas: Metadatas = [self._serialize_chunk(document, chunk) for chunk in ordered]
        metadatas[0]["document_head"] = True
        vectors: ChromaEmbeddings = [list(chunk.embedding) for chunk in ordered]

        if len(ids) <= self._batch_size:
            for metadata in metadatas:
                metadata["committed"] = True
            self._collection.add(ids=ids, documents=documents, embeddings=vectors, metadatas=metadatas)
            return list(ids)

        for lo in range(0, len(ids), self._batch_size):
            hi = lo + self._batch_size
            self._collection.add(
                ids=ids[lo:hi],
                documents=documents[lo:hi],
                embeddings=vectors[lo:hi],
                metadatas=metadatas[lo:hi],
            )
        self._mark_committed(ids, metadatas)
        return list(ids)

    def _mark_committed(self, ids: IDs, metadatas: Metadatas) -> None:
        # Head batch last: the document record appears only once every chunk is searchable.
        committed = [{**metadata, "committed": True} for metadata in metadatas]
        starts = list(range(0, len(ids), self._batch_size))
        for lo in reversed(starts):
            hi = lo + self._batch_size
            self._collection.update(ids=ids[lo:hi], metadatas=committed[lo:hi])

    def search(self, vector: Sequence[float], *, k: int = 5, document_id: str | None = None) -> Sequence[RetrievedChunk]:
        if k <= 0:
            return []
        where = self._visible({"document_id": document_id} if document_id else None)
        results = self._collection.query(
            query_embeddings=[list(vector)],
            n_results=k,
            where=where,
            include=["documents", "metadatas", "distances"],
        )
        retrieved = self._deserialize_results(results)
        retrieved.sort(key=lambda item: item.similarity, reverse=True)
        return retrieved

    def delete_document(self, document_id: str) -> bool:
        existing = self._collection.get(where={"document_id": document_id}, limit=1, include=["metadatas"])
        if not existing.get("ids"):
            return False
        self._collection.delete(where={"document_id": document_id})
        return True

    def get_document(self, document_id: str) -> Document | None:
        where = self._visible({"document_id": document_id}, {"document_head": True})
        batch = self._collection.get(where=where, limit=1, include=["metadatas"])
        metadatas = batch.get("metadatas") or []
        if not metadatas:
            return None
        return self._deserialize_document(metadatas[0])

    def list_documents(self) -> Sequence[Document]:
        documents: dict[str, Document] = {}
        where = self._visible({"document_head": True})
        # paginate through metadatas only
        limit = 1000
        offset = 0
        while True:
            batch = self._collection.get(where=where, include=["metadatas"], limit=limit, offset=offset)
            metadatas = batch.get("metadatas") or []
            if not metadatas:
                break
            for md in metadatas:
                if not isinstance(md, Mapping):
                    continue
                doc_id = str(md.get("document_id", ""))
                if doc_id and doc_id not in documents:
                    documents[doc_id] = self._deserialize_document(md)
            if len(metadatas) < limit:
                break
            offset += limit
        return sorted(documents.values(), key=lambda doc: doc.uploaded_at, reverse=True)

    def count(self) -> int:
        return int(self._collection.count())

    @staticmethod
    def _visible(*clauses: Mapping[str, object] | None) -> dict[str, object]:
        conditions = [{"committed": True}, *(clause for clause in clauses if clause)]
        if len(conditions) == 1:
            return conditions[0]
        return {"$and": conditions}

    @staticmethod
    def _serialize_chunk(document: Document, chunk: Chunk) -> MutableMapping[str, object]:
        return {
            "document_id": document.id,
            "filename": document.filename,
            "total_pages": document.total_pages,
            "total_chunks": document.total_chunks,
            "uploaded_at": document.uploaded_at.isoformat(),
            "page_number": chunk.page_number,
            "chunk_index": chunk.chunk_index,
            "committed": False,
            "document_head": False,
        }

    @staticmethod
    def _deserialize_document(metadata: Mapping[str, object]) -> Document:
        return Document(
            id=str(metadata.get("document_id", "")),
            filename=str(metadata.get("filename", "")),
            total_pages=int(metadata.get("total_pages", 0)),
            total_chunks=int(metadata.get("total_chunks", 0)),
            uploaded_at=datetime.fromisoformat(str(metadata["uploaded_at"])),
        )

    def _deserialize_results(self, results: Mapping[str, object]) -> List[RetrievedChunk]:
        documents = self._first(results.get("documents"))
        metadatas = self._first(results.get("metadatas"))
        distances = self._first(results.get("distances"))
        retrieved: List[RetrievedChunk] = []
        for content, metadata, distance in zip(documents, metadatas, distances, strict=False):
            chunk = Chunk(
                content=content,
                page_number=int(metadata.get("page_number", 0)),
                chunk_index=int(metadata.get("chunk_index", 0)),
                document_id=str(metadata.get("document_id", "")),
            )
            retrieved.append(RetrievedChunk(chunk=chunk, similarity=1.0 - float(distance)))
        return retrieved

    @staticmethod
    def _first(value: object) -> Iterable:
        if isinstance(value, list):
            return value[0] if value else []
        return []
