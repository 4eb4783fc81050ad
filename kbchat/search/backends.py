"""Knowledge search backends honoring ``search(query, top_k) -> ranked items``."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from ..core.models.knowledge import (
    DEFAULT_WEIGHTS,
    KnowledgeBase,
    KnowledgeEntry,
    RankingWeights,
    ScoredItem,
)
from ..core.retrieval.ranker import rank_top_k
from ..core.retrieval.text import normalize
from ..kb.ingestion.embedder import EntryEmbedder
from ..kb.storage.chroma_client import ChromaKnowledgeIndex
from ..observability.logger import get_logger

logger = get_logger(__name__)


class SearchBackend(Protocol):
    async def search(self, query: str, top_k: int) -> list[ScoredItem]:
        """Return up to ``top_k`` items, best first."""
        ...


class LexicalSearchBackend:
    """In-memory keyword/Jaccard ranker over the knowledge tree."""

    def __init__(self, knowledge_base: KnowledgeBase, weights: RankingWeights = DEFAULT_WEIGHTS):
        self.knowledge_base = knowledge_base
        self.weights = weights

    async def search(self, query: str, top_k: int) -> list[ScoredItem]:
        return rank_top_k(query, self.knowledge_base, top_k, self.weights)


class EmbeddingSearchBackend:
    """Cosine search over embedded entry questions.

    Entries are embedded lazily on the first search. Keyword weighting does
    not apply here; category names are carried through for match tags.
    """

    def __init__(
        self,
        knowledge_base: KnowledgeBase,
        embedder: EntryEmbedder,
        index: ChromaKnowledgeIndex | None = None,
        extra_entries: Sequence[KnowledgeEntry] = (),
    ):
        self.knowledge_base = knowledge_base
        self.embedder = embedder
        self.index = index or ChromaKnowledgeIndex(mode="memory")
        self.extra_entries = tuple(extra_entries)
        self._sources: dict[str, tuple[str | None, str | None, KnowledgeEntry]] = {}
        self._initialized = False

    async def initialize(self) -> None:
        """Embed every entry and load the index; retried on the next search if it fails."""
        if self._initialized:
            return

        items = list(self.knowledge_base.iter_items())
        items.extend((None, None, entry) for entry in self.extra_entries)

        sources = {f"kb-{position}": item for position, item in enumerate(items)}
        if sources:
            embeddings, _ = await self.embedder.embed_entries([entry for _, _, entry in items])
            self.index.clear()
            self.index.add_embeddings(
                ids=list(sources),
                embeddings=embeddings,
                metadatas=[{"position": position} for position in range(len(items))],
                documents=[entry.question for _, _, entry in items],
            )

        self._sources = sources
        self._initialized = True
        logger.info("embedding_index_ready", items=len(sources))

    async def search(self, query: str, top_k: int) -> list[ScoredItem]:
        if not normalize(query):
            return []

        await self.initialize()
        if not self._sources:
            return []

        query_embedding = await self.embedder.embed_query(query)
        raw = self.index.query(query_embedding, n_results=top_k)

        ids = raw.get("ids", [[]])[0] if raw else []
        distances = raw.get("distances", [[]])[0] if raw else []

        results: list[ScoredItem] = []
        for item_id, distance in zip(ids, distances):
            source = self._sources.get(item_id)
            if source is None:
                continue
            category, subcategory, entry = source
            # Cosine distance; similarity below zero is no match at all
            score = min(1.0, max(0.0, 1.0 - float(distance))) if distance is not None else 0.0
            results.append(
                ScoredItem(entry=entry, score=score, category=category, subcategory=subcategory)
            )

        results.sort(key=lambda item: item.score, reverse=True)
        return results[:top_k]
