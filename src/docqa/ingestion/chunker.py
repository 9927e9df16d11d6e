"""Word-based, token-budgeted chunking of a single page of text.

Token counts are estimated, not computed by a real tokenizer: one token is
taken to be roughly four characters, applied per word. Chunks never span
pages; callers invoke the chunker once per page so the overlap state resets at
every page boundary.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterator, List, Sequence, Tuple

DEFAULT_MAX_TOKENS = 800
DEFAULT_OVERLAP_TOKENS = 100


def estimate_tokens(word: str) -> int:
    """Rough token estimate for one word (1 token ~ 4 characters)."""

    return math.ceil(len(word) / 4)


@dataclass(frozen=True)
class ChunkWindow:
    """Words of one emitted chunk; the first ``overlap`` are repeated from the previous chunk."""

    words: Tuple[str, ...]
    overlap: int = 0

    @property
    def text(self) -> str:
        return " ".join(self.words)

    @property
    def fresh_words(self) -> Tuple[str, ...]:
        return self.words[self.overlap :]


def _validate(max_tokens: int, overlap_tokens: int) -> None:
    if max_tokens <= 0:
        raise ValueError("max_tokens must be a positive integer")
    if overlap_tokens <= 0:
        raise ValueError("overlap_tokens must be a positive integer")
    if overlap_tokens >= max_tokens:
        raise ValueError("overlap_tokens must be smaller than max_tokens")


def _overlap_tail(words: Sequence[str], overlap_tokens: int) -> List[str]:
    # Walk backward from the end; keep at least one word of the chunk out of the tail.
    tail: List[str] = []
    budget = 0
    for word in reversed(words[1:]):
        cost = estimate_tokens(word)
        if budget + cost > overlap_tokens:
            break
        tail.append(word)
        budget += cost
    tail.reverse()
    return tail


def iter_windows(
    page_text: str,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    overlap_tokens: int = DEFAULT_OVERLAP_TOKENS,
) -> Iterator[ChunkWindow]:
    """Yield chunk windows for ``page_text`` in order."""

    _validate(max_tokens, overlap_tokens)
    current: List[str] = []
    current_tokens = 0
    overlap = 0
    for word in page_text.split():
        cost = estimate_tokens(word)
        if current and current_tokens + cost > max_tokens:
            yield ChunkWindow(words=tuple(current), overlap=overlap)
            current = _overlap_tail(current, overlap_tokens)
            current_tokens = sum(estimate_tokens(w) for w in current)
            if current_tokens + cost > max_tokens:
                # The carried tail and the next word cannot share a chunk.
                current, current_tokens = [], 0
            overlap = len(current)
        current.append(word)
        current_tokens += cost
    if current:
        yield ChunkWindow(words=tuple(current), overlap=overlap)


def iter_chunks(
    page_text: str,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    overlap_tokens: int = DEFAULT_OVERLAP_TOKENS,
) -> Iterator[str]:
    for window in iter_windows(page_text, max_tokens, overlap_tokens):
        yield window.text


def chunk_text(
    page_text: str,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    overlap_tokens: int = DEFAULT_OVERLAP_TOKENS,
) -> List[str]:
    """Split one page of text into overlapping chunks of at most ``max_tokens`` estimated tokens.

    A single word larger than the budget still becomes its own chunk, so the
    bound is soft. Empty or whitespace-only text yields no chunks.
    """

    return list(iter_chunks(page_text, max_tokens, overlap_tokens))
