"""Service layer orchestrations for docqa."""

from .generation import (
    CompletionBackend,
    GenerationConfig,
    OpenAICompletionBackend,
    TemplateCompletionBackend,
    TransformersCompletionBackend,
)
from .query import FALLBACK_ANSWER, AnswerSynthesizer, PromptBuilder, PromptBuilderConfig, QueryService, SynthesisConfig

__all__ = [
    "FALLBACK_ANSWER",
    "AnswerSynthesizer",
    "CompletionBackend",
    "GenerationConfig",
    "OpenAICompletionBackend",
    "PromptBuilder",
    "PromptBuilderConfig",
    "QueryService",
    "SynthesisConfig",
    "TemplateCompletionBackend",
    "TransformersCompletionBackend",
]
