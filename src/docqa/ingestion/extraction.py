"""Page text extraction via LangChain document loaders."""

from __future__ import annotations

import re
import unicodedata
from pathlib import Path
from typing import List, Mapping

from langchain_community.document_loaders import PyPDFLoader, TextLoader
from langchain_community.document_loaders.base import BaseLoader

from docqa.errors import ExtractionEmpty, InputInvalid

_LOADERS: Mapping[str, type[BaseLoader]] = {
    ".pdf": PyPDFLoader,
    ".txt": TextLoader,
    ".md": TextLoader,
}

SUPPORTED_EXTENSIONS = tuple(_LOADERS)


def normalize_page_text(raw: str) -> str:
    normalized = unicodedata.normalize("NFKC", raw)
    normalized = normalized.replace("\u00a0", " ")
    normalized = re.sub(r"[ \t]+", " ", normalized)
    return normalized.strip()


def extract_pages(path: Path, *, encoding: str = "utf-8") -> List[str]:
    """Return one normalized text per page of ``path``.

    PDFs yield one entry per physical page. Plain text files are split on form
    feeds, so a file without them is a single page.
    """

    suffix = path.suffix.lower()
    loader_cls = _LOADERS.get(suffix)
    if loader_cls is None:
        raise InputInvalid(f"Unsupported document type: {suffix or '<none>'}")
    try:
        if loader_cls is TextLoader:
            documents = TextLoader(str(path), encoding=encoding).load()
        else:
            documents = loader_cls(str(path)).load()
    except Exception as exc:
        raise ExtractionEmpty(f"Failed to extract text from {path.name}: {exc}") from exc

    if loader_cls is TextLoader:
        raw_pages = [page for document in documents for page in document.page_content.split("\f")]
    else:
        raw_pages = [document.page_content for document in documents]
    return [normalize_page_text(page) for page in raw_pages]
