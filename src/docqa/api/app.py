"""FastAPI application exposing docqa services."""

from __future__ import annotations

import tempfile
from dataclasses import dataclass
from pathlib import Path
from uuid import uuid4

import chromadb
from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile, status
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from docqa.api.schemas import (
    AskRequest,
    AskResponse,
    CitationModel,
    DocumentListResponse,
    DocumentModel,
    ErrorResponse,
    PagesIngestionRequest,
)
from docqa.config import Settings, get_settings
from docqa.embeddings import (
    ChromaVectorStore,
    EmbeddingBackend,
    EmbeddingConfig,
    HashEmbeddingBackend,
    HuggingFaceEmbeddingBackend,
    OpenAIEmbeddingBackend,
    VectorStore,
)
from docqa.errors import DocQAError, StorageFailed
from docqa.ingestion import IngestionConfig, IngestionPipeline
from docqa.metrics.observability import bind_correlation_id, clear_correlation_id, configure_logging, get_logger
from docqa.models import SamplingConfig
from docqa.retrieval import RetrievalConfig, VectorRetriever
from docqa.services import (
    AnswerSynthesizer,
    CompletionBackend,
    GenerationConfig,
    OpenAICompletionBackend,
    QueryService,
    SynthesisConfig,
    TemplateCompletionBackend,
    TransformersCompletionBackend,
)

# Model and vector size used when the settings leave them unset
DEFAULT_EMBEDDING_MODELS: dict[str, tuple[str, int]] = {
    "hash": ("hash", 384),
    "huggingface": ("BAAI/bge-small-en-v1.5", 384),
    "openai": ("text-embedding-3-small", 1536),
}


@dataclass(frozen=True)
class AppDependencies:
    pipeline: IngestionPipeline
    store: VectorStore
    query_service: QueryService


def build_embedding_config(settings: Settings) -> EmbeddingConfig:
    default_model, default_dim = DEFAULT_EMBEDDING_MODELS[settings.embedding_provider]
    return EmbeddingConfig(
        model=settings.embedding_model or default_model,
        dim=settings.embedding_dim or default_dim,
        device=settings.embedding_device,
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        timeout_seconds=settings.embedding_timeout_seconds,
    )


def build_embedding_backend(settings: Settings) -> EmbeddingBackend:
    config = build_embedding_config(settings)
    if settings.embedding_provider == "openai":
        return OpenAIEmbeddingBackend(config)
    if settings.embedding_provider == "huggingface":
        return HuggingFaceEmbeddingBackend(config)
    return HashEmbeddingBackend(config)


def build_completion_backend(settings: Settings) -> CompletionBackend:
    config = GenerationConfig(
        model=settings.completion_model,
        device=settings.completion_device,
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        timeout_seconds=settings.completion_timeout_seconds,
    )
    if settings.completion_provider == "openai":
        return OpenAICompletionBackend(config)
    if settings.completion_provider == "transformers":
        return TransformersCompletionBackend(config)
    return TemplateCompletionBackend()


def build_store(settings: Settings) -> ChromaVectorStore:
    chroma_client = None
    if settings.chroma_host:
        chroma_client = chromadb.HttpClient(
            host=settings.chroma_host,
            port=settings.chroma_port or 8000,
            ssl=settings.chroma_ssl,
        )
    return ChromaVectorStore(
        collection_name=settings.chroma_collection,
        client=chroma_client,
        persist_directory=None if chroma_client else settings.chroma_persist_dir,
    )


def build_dependencies(
    settings: Settings,
    *,
    embedding_backend: EmbeddingBackend | None = None,
    completion_backend: CompletionBackend | None = None,
    store: VectorStore | None = None,
) -> AppDependencies:
    """Construct every service handle once; the app reuses them across requests."""

    embedding_backend = embedding_backend or build_embedding_backend(settings)
    completion_backend = completion_backend or build_completion_backend(settings)
    store = store or build_store(settings)
    pipeline = IngestionPipeline(
        embedding_backend,
        store,
        IngestionConfig(
            max_tokens=settings.chunk_max_tokens,
            overlap_tokens=settings.chunk_overlap_tokens,
            max_concurrency=settings.embedding_concurrency,
            embedding_timeout_seconds=settings.embedding_timeout_seconds,
        ),
    )
    retriever = VectorRetriever(
        embedding_backend,
        store,
        RetrievalConfig(
            top_k=settings.top_k,
            max_top_k=settings.max_top_k,
            embedding_timeout_seconds=settings.embedding_timeout_seconds,
            search_timeout_seconds=settings.search_timeout_seconds,
        ),
    )
    synthesizer = AnswerSynthesizer(
        completion_backend,
        SynthesisConfig(
            sampling=SamplingConfig(
                temperature=settings.completion_temperature,
                max_tokens=settings.completion_max_tokens,
            ),
            timeout_seconds=settings.completion_timeout_seconds,
        ),
    )
    query_service = QueryService(retriever=retriever, synthesizer=synthesizer)
    return AppDependencies(pipeline=pipeline, store=store, query_service=query_service)


def create_app(*, settings: Settings | None = None, dependencies: AppDependencies | None = None) -> FastAPI:
    settings = settings or get_settings()
    deps = dependencies or build_dependencies(settings)

    configure_logging()
    logger = get_logger("api")
    app = FastAPI(title="docqa API", version="0.1.0")
    app.state.dependencies = deps

    @app.middleware("http")
    async def add_correlation_id(request: Request, call_next):  # type: ignore[override]
        correlation_id = request.headers.get("X-Request-ID", uuid4().hex)
        request.state.correlation_id = correlation_id
        bind_correlation_id(correlation_id)
        try:
            response = await call_next(request)
        finally:
            clear_correlation_id()
        response.headers["X-Correlation-ID"] = correlation_id
        return response

    @app.exception_handler(DocQAError)
    async def handle_pipeline_error(request: Request, exc: DocQAError) -> JSONResponse:
        correlation_id = getattr(request.state, "correlation_id", uuid4().hex)
        logger.error("request.failed", correlation_id=correlation_id, code=exc.code, detail=str(exc))
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(detail=str(exc), code=exc.code, correlation_id=correlation_id).model_dump(),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        correlation_id = getattr(request.state, "correlation_id", uuid4().hex)
        logger.error("unhandled.error", correlation_id=correlation_id, detail=str(exc))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal Server Error", "code": "internal_error", "correlation_id": correlation_id},
        )

    def get_dependencies(request: Request) -> AppDependencies:
        return request.app.state.dependencies

    def get_pipeline(dep: AppDependencies = Depends(get_dependencies)) -> IngestionPipeline:
        return dep.pipeline

    def get_store(dep: AppDependencies = Depends(get_dependencies)) -> VectorStore:
        return dep.store

    def get_query_service(dep: AppDependencies = Depends(get_dependencies)) -> QueryService:
        return dep.query_service

    # Handlers are plain functions so FastAPI runs each request on its own worker thread.

    @app.post("/documents", response_model=DocumentModel, status_code=status.HTTP_201_CREATED)
    def upload_document(
        file: UploadFile = File(...),
        pipeline: IngestionPipeline = Depends(get_pipeline),
    ) -> DocumentModel:
        filename = Path(file.filename or "").name
        if not filename:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file provided")
        suffix = Path(filename).suffix.lower()
        if suffix not in settings.allowed_extensions_tuple:
            file.file.close()
            msg = f"Unsupported file type: {suffix or 'unknown'}"
            raise HTTPException(status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, detail=msg)
        max_bytes = settings.max_upload_size_mb * 1024 * 1024
        with tempfile.TemporaryDirectory() as tmpdir:
            destination = Path(tmpdir) / f"upload{suffix}"
            # Stream copy so an oversized upload never lands on disk in full
            bytes_written = 0
            with destination.open("wb") as out_f:
                while True:
                    block = file.file.read(1024 * 1024)
                    if not block:
                        break
                    bytes_written += len(block)
                    if bytes_written > max_bytes:
                        break
                    out_f.write(block)
            file.file.close()
            if bytes_written > max_bytes:
                destination.unlink(missing_ok=True)
                raise HTTPException(
                    status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                    detail=f"File too large (>{settings.max_upload_size_mb}MB): {filename}",
                )
            if bytes_written == 0:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"File is empty: {filename}")
            document = pipeline.ingest_file(destination, filename=filename)
        return DocumentModel.from_document(document)

    @app.post("/documents/pages", response_model=DocumentModel, status_code=status.HTTP_201_CREATED)
    def ingest_pages(
        payload: PagesIngestionRequest,
        pipeline: IngestionPipeline = Depends(get_pipeline),
    ) -> DocumentModel:
        document = pipeline.ingest(payload.filename, payload.pages)
        return DocumentModel.from_document(document)

    @app.get("/documents", response_model=DocumentListResponse)
    def list_documents(store: VectorStore = Depends(get_store)) -> DocumentListResponse:
        documents = store.list_documents()
        return DocumentListResponse(documents=[DocumentModel.from_document(doc) for doc in documents])

    @app.get("/documents/{document_id}", response_model=DocumentModel)
    def get_document(document_id: str, store: VectorStore = Depends(get_store)) -> DocumentModel:
        document = store.get_document(document_id)
        if document is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
        return DocumentModel.from_document(document)

    @app.delete("/documents/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_document(document_id: str, store: VectorStore = Depends(get_store)) -> Response:
        try:
            removed = store.delete_document(document_id)
        except Exception as exc:
            raise StorageFailed(f"Failed to delete document {document_id}: {exc}") from exc
        if not removed:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
        logger.info("document.deleted", document_id=document_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.post("/ask", response_model=AskResponse)
    def ask(payload: AskRequest, service: QueryService = Depends(get_query_service)) -> AskResponse:
        answer = service.answer(payload.question, document_id=payload.document_id, k=payload.top_k)
        return AskResponse(
            query_id=answer.query_id,
            answer=answer.text,
            citations=[CitationModel.from_citation(citation) for citation in answer.citations],
            latency_ms=answer.latency_ms,
            retrieval_ms=answer.retrieval_ms,
            generation_ms=answer.generation_ms,
        )

    @app.get("/metrics")
    async def metrics() -> Response:
        payload = generate_latest()
        return Response(content=payload, media_type=CONTENT_TYPE_LATEST)

    @app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        from docqa import __version__

        return {"status": "ok", "version": __version__, "environment": settings.environment}

    @app.get("/healthz/ready")
    def readiness(store: VectorStore = Depends(get_store)) -> dict[str, str]:
        try:
            store.count()
        except Exception as exc:
            return {"status": "error", "detail": str(exc)}
        return {"status": "ready"}

    return app
