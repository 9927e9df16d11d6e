"""Query orchestration combining retrieval and grounded answer synthesis."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple
from uuid import NAMESPACE_URL, uuid5

from docqa.errors import CompletionFailed, DocQAError, InputInvalid
from docqa.metrics.observability import PipelineMetrics, get_logger
from docqa.models import Answer, Chunk, Citation, SamplingConfig
from docqa.retrieval.service import Retriever
from docqa.services.generation import CompletionBackend, TemplateCompletionBackend
from docqa.timeouts import call_with_timeout

FALLBACK_ANSWER = "I couldn't find any relevant information to answer your question."
EMPTY_COMPLETION_ANSWER = "Unable to generate an answer."

SYSTEM_INSTRUCTION = (
    "You are a helpful assistant that answers questions based on the provided context from a document. "
    "Only use information from the context. "
    "Always cite the page numbers when referencing information. "
    "If the context doesn't contain enough information to answer the question, say so.\n"
    "Format your citations as [Page X] inline with your answer."
)


@dataclass(frozen=True)
class PromptBuilderConfig:
    """Configuration for prompt construction."""

    system_instruction: str = SYSTEM_INSTRUCTION
    page_prefix: str = "[Page "
    page_suffix: str = "]"


class PromptBuilder:
    """Builds the grounding prompt handed to the completion backend."""

    def __init__(self, config: PromptBuilderConfig | None = None) -> None:
        self._config = config or PromptBuilderConfig()

    @property
    def system_instruction(self) -> str:
        return self._config.system_instruction

    def build_context(self, chunks: Sequence[Chunk]) -> str:
        tag = self._config
        return "\n\n".join(f"{tag.page_prefix}{chunk.page_number}{tag.page_suffix}: {chunk.content}" for chunk in chunks)

    def build_user_turn(self, question: str, chunks: Sequence[Chunk]) -> str:
        return f"Context from the document:\n\n{self.build_context(chunks)}\n\nQuestion: {question}"


@dataclass(frozen=True)
class SynthesisConfig:
    """Configuration for answer synthesis."""

    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    timeout_seconds: float | None = 120.0


class AnswerSynthesizer:
    """Turns retrieved chunks into a grounded answer plus citations.

    Citations reflect the chunks placed into the context, one per chunk and in
    the same order, whether or not the model's reply mentions them.
    """

    def __init__(
        self,
        backend: CompletionBackend | None = None,
        config: SynthesisConfig | None = None,
        prompt_builder: PromptBuilder | None = None,
    ) -> None:
        self._backend = backend or TemplateCompletionBackend()
        self._config = config or SynthesisConfig()
        self._prompt_builder = prompt_builder or PromptBuilder()

    def synthesize(self, question: str, retrieved: Sequence[Chunk]) -> Tuple[str, List[Citation]]:
        if not retrieved:
            return FALLBACK_ANSWER, []
        user_turn = self._prompt_builder.build_user_turn(question, retrieved)
        try:
            text = call_with_timeout(
                self._backend.complete,
                self._prompt_builder.system_instruction,
                user_turn,
                self._config.sampling,
                timeout=self._config.timeout_seconds,
            )
        except Exception as exc:
            raise CompletionFailed(f"Failed to generate an answer: {exc}") from exc
        citations = [Citation.from_chunk(chunk) for chunk in retrieved]
        return (text or "").strip() or EMPTY_COMPLETION_ANSWER, citations


class QueryService:
    """Orchestrates retrieval and synthesis for incoming questions."""

    def __init__(self, retriever: Retriever, synthesizer: AnswerSynthesizer | None = None) -> None:
        self._retriever = retriever
        self._synthesizer = synthesizer or AnswerSynthesizer()
        self._logger = get_logger("query")

    def answer(self, question: str, *, document_id: str | None = None, k: int | None = None) -> Answer:
        if not question or not question.strip():
            raise InputInvalid("No question provided")
        question = question.strip()
        start = time.perf_counter()
        try:
            retrieved = self._retriever.retrieve(question, document_id=document_id, k=k)
            retrieval_duration = time.perf_counter() - start
            self._logger.info(
                "retrieval.complete",
                question=question,
                document_id=document_id,
                chunk_count=len(retrieved),
                duration_seconds=retrieval_duration,
                top_k=k,
            )
            generation_start = time.perf_counter()
            text, citations = self._synthesizer.synthesize(question, [item.chunk for item in retrieved])
            generation_duration = time.perf_counter() - generation_start
        except DocQAError as exc:
            PipelineMetrics.observe_failure(exc.code)
            self._logger.error("query.failed", question=question, code=exc.code, detail=str(exc))
            raise
        if retrieved:
            PipelineMetrics.observe_generation(generation_duration)
            self._logger.info(
                "generation.complete",
                question=question,
                duration_seconds=generation_duration,
                citation_count=len(citations),
            )
        else:
            self._logger.info("generation.skipped", question=question, reason="no_context")
        latency_ms = (time.perf_counter() - start) * 1000
        query_id = uuid5(NAMESPACE_URL, f"{document_id or '*'}:{question}").hex
        return Answer(
            text=text,
            citations=citations,
            query_id=query_id,
            latency_ms=latency_ms,
            chunks=list(retrieved),
            retrieval_ms=retrieval_duration * 1000,
            generation_ms=generation_duration * 1000 if retrieved else None,
        )
