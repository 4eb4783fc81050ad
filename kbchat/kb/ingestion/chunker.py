"""Paragraph chunking for free-text knowledge documents."""

import re
from pathlib import Path

from ...core.models.knowledge import KnowledgeEntry
from ...observability.logger import get_logger

logger = get_logger(__name__)

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")


def chunk_paragraphs(text: str, max_chars: int = 300) -> list[str]:
    """Split on blank lines and merge consecutive short paragraphs.

    A paragraph joins the current chunk while the combined length stays under
    ``max_chars``; a single paragraph longer than that becomes its own chunk.
    """
    chunks: list[str] = []
    current = ""

    for paragraph in _PARAGRAPH_BREAK.split(text):
        trimmed = paragraph.strip()
        if not trimmed:
            continue

        if len(current) + len(trimmed) < max_chars:
            current = f"{current}\n{trimmed}" if current else trimmed
        else:
            if current:
                chunks.append(current)
            current = trimmed

    if current:
        chunks.append(current)
    return chunks


def load_corpus_entries(path: str | Path | None, max_chars: int = 300) -> list[KnowledgeEntry]:
    """Read a plain-text document and turn each chunk into a flat entry.

    The chunk doubles as question and answer: it is both what the query is
    compared against and what gets injected into the prompt.
    """
    if not path:
        return []

    source = Path(path)
    try:
        text = source.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("corpus_file_unreadable", path=str(source), error=str(exc))
        return []

    chunks = chunk_paragraphs(text, max_chars=max_chars)
    logger.info("corpus_chunked", path=str(source), chunks=len(chunks))
    return [KnowledgeEntry(question=chunk, answer=chunk) for chunk in chunks]
