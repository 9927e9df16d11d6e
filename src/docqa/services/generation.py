"""Completion backends for docqa."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Protocol

from docqa.models import SamplingConfig

LOGGER = logging.getLogger(__name__)

_CONTEXT_ENTRY = re.compile(r"^\[Page (\d+)\]: (.*)$", re.MULTILINE)


@dataclass(frozen=True)
class GenerationConfig:
    """Configuration for completion backends."""

    model: str = "gpt-4o-mini"
    device: str | None = None
    api_key: str | None = None
    base_url: str | None = None
    timeout_seconds: float | None = None


class CompletionBackend(Protocol):
    """Single-turn completion capability."""

    def complete(self, system: str, user: str, config: SamplingConfig) -> str:
        """Return the model's reply to one system instruction and one user turn."""


class TemplateCompletionBackend:
    """Deterministic extractive backend used for tests and offline environments.

    Echoes the first context entry with its page citation, so answers stay
    grounded in the supplied context without calling a model.
    """

    def complete(self, system: str, user: str, config: SamplingConfig) -> str:
        match = _CONTEXT_ENTRY.search(user)
        if match is None:
            return "The provided context does not contain enough information to answer that question."
        page, content = match.groups()
        words = content.split()
        excerpt = " ".join(words[:60])
        if len(words) > 60:
            excerpt += " ..."
        return f"According to the document: {excerpt} [Page {page}]"


class TransformersCompletionBackend:
    """Local causal language model through Hugging Face Transformers."""

    def __init__(self, config: GenerationConfig | None = None) -> None:
        from transformers import AutoModelForCausalLM, AutoTokenizer

        self._config = config or GenerationConfig(model="Qwen/Qwen2.5-1.5B-Instruct")
        self._tokenizer = AutoTokenizer.from_pretrained(self._config.model, trust_remote_code=True)
        self._model = AutoModelForCausalLM.from_pretrained(self._config.model, trust_remote_code=True)
        if self._tokenizer.pad_token is None and self._tokenizer.eos_token is not None:
            self._tokenizer.pad_token = self._tokenizer.eos_token
        if getattr(self._model.config, "pad_token_id", None) is None and self._tokenizer.pad_token_id is not None:
            self._model.config.pad_token_id = self._tokenizer.pad_token_id
        if self._config.device:
            self._model.to(self._config.device)
        LOGGER.info("Loaded generation model %s", self._config.model)

    def complete(self, system: str, user: str, config: SamplingConfig) -> str:
        import torch

        messages = [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ]
        if hasattr(self._tokenizer, "apply_chat_template"):
            prompt = self._tokenizer.apply_chat_template(messages, tokenize=False, add_generation_prompt=True)
        else:
            prompt = f"{system}\n\n{user}\n\nAnswer:"
        tokenized = self._tokenizer(prompt, return_tensors="pt", padding=True)
        input_ids = tokenized.input_ids
        attention_mask = tokenized.attention_mask
        prompt_length = input_ids.shape[1]
        if self._config.device:
            input_ids = input_ids.to(self._config.device)
            attention_mask = attention_mask.to(self._config.device)
        with torch.no_grad():
            output = self._model.generate(
                input_ids,
                attention_mask=attention_mask,
                max_new_tokens=config.max_tokens,
                temperature=config.temperature,
                do_sample=config.temperature > 0,
            )
        generated = self._tokenizer.decode(output[0][prompt_length:], skip_special_tokens=True)
        return generated.strip()


class OpenAICompletionBackend:
    """Chat completions from the OpenAI API."""

    def __init__(self, config: GenerationConfig | None = None) -> None:
        from openai import OpenAI

        self._config = config or GenerationConfig()
        self._client = OpenAI(
            api_key=self._config.api_key,
            base_url=self._config.base_url,
            timeout=self._config.timeout_seconds,
            max_retries=0,
        )

    def complete(self, system: str, user: str, config: SamplingConfig) -> str:
        response = self._client.chat.completions.create(
            model=self._config.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            temperature=config.temperature,
            max_tokens=config.max_tokens,
        )
        return response.choices[0].message.content or ""
