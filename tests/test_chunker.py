from __future__ import annotations

import pytest

from docqa.ingestion.chunker import chunk_text, estimate_tokens, iter_windows


def _words(count: int, prefix: str = "w") -> list[str]:
    return [f"{prefix}{i:03d}" for i in range(count)]


def _long_page(count: int = 2000) -> str:
    return " ".join(f"lorem{i}" for i in range(count))


def test_estimate_tokens_rounds_up_per_four_characters():
    assert estimate_tokens("") == 0
    assert estimate_tokens("a") == 1
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2
    assert estimate_tokens("x" * 17) == 5


def test_empty_and_blank_pages_yield_no_chunks():
    assert chunk_text("") == []
    assert chunk_text("   \n\t  ") == []


def test_short_page_is_single_chunk_with_normalized_spacing():
    words = _words(50)
    text = "\n".join(words[:25]) + "   " + "\t".join(words[25:])
    assert chunk_text(text) == [" ".join(words)]


def test_windows_carry_trailing_overlap():
    words = _words(25)  # four characters each, one estimated token per word
    chunks = chunk_text(" ".join(words), max_tokens=10, overlap_tokens=3)
    assert chunks == [
        " ".join(words[0:10]),
        " ".join(words[7:17]),
        " ".join(words[14:24]),
        " ".join(words[21:25]),
    ]


def test_chunking_is_deterministic():
    text = _long_page()
    assert chunk_text(text, 800, 100) == chunk_text(text, 800, 100)


def test_fresh_words_reconstruct_the_page():
    text = _long_page()
    windows = list(iter_windows(text, max_tokens=800, overlap_tokens=100))
    assert len(windows) > 1
    assert windows[0].overlap == 0
    rebuilt = [word for window in windows for word in window.fresh_words]
    assert rebuilt == text.split()


@pytest.mark.parametrize("max_tokens,overlap_tokens", [(800, 100), (50, 10), (20, 19), (7, 1)])
def test_chunk_size_and_overlap_bounds(max_tokens: int, overlap_tokens: int):
    words = [f"{'x' * (i % 11 + 1)}" for i in range(700)]
    windows = list(iter_windows(" ".join(words), max_tokens, overlap_tokens))
    for window in windows:
        assert window.text
        assert len(window.fresh_words) >= 1
        overlap_cost = sum(estimate_tokens(word) for word in window.words[: window.overlap])
        assert overlap_cost <= overlap_tokens
        if len(window.words) > 1:
            assert sum(estimate_tokens(word) for word in window.words) <= max_tokens


def test_oversized_word_gets_its_own_chunk():
    giant = "x" * 4000
    assert chunk_text(f"a {giant} b", max_tokens=800, overlap_tokens=100) == ["a", giant, "b"]


def test_two_thousand_word_page_yields_multiple_chunks():
    chunks = chunk_text(_long_page(), 800, 100)
    assert len(chunks) > 1
    assert all(chunks)


@pytest.mark.parametrize("max_tokens,overlap_tokens", [(0, 0), (10, 0), (10, 10), (10, 20), (-5, 1)])
def test_invalid_budgets_are_rejected(max_tokens: int, overlap_tokens: int):
    with pytest.raises(ValueError):
        chunk_text("some words", max_tokens, overlap_tokens)
