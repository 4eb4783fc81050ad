"""Knowledge search service: backend ranking plus the threshold decision."""

from __future__ import annotations

from typing import Any

from chromadb.errors import ChromaError
from openai import OpenAIError

from ..core.models.enums import SearchBackendType
from ..core.models.knowledge import KnowledgeBase, KnowledgeMatch, RankingWeights, ScoredItem
from ..core.retrieval.policy import decide
from ..integrations.openai_client import build_embedding_client
from ..kb.ingestion.chunker import load_corpus_entries
from ..kb.ingestion.embedder import EntryEmbedder
from ..observability.logger import get_logger
from .backends import EmbeddingSearchBackend, LexicalSearchBackend, SearchBackend

logger = get_logger(__name__)

DEFAULT_THRESHOLD = 0.55
DEFAULT_TOP_K = 3


class KnowledgeSearchService:
    """Answer ``search(query, top_k, threshold)`` for the chat pipeline.

    Stateless per call; a failing remote backend is reported as "no match".
    """

    def __init__(
        self,
        backend: SearchBackend,
        threshold: float = DEFAULT_THRESHOLD,
        top_k: int = DEFAULT_TOP_K,
    ):
        self.backend = backend
        self.threshold = threshold
        self.top_k = top_k

    async def search_ranked(self, query: str, top_k: int | None = None) -> list[ScoredItem]:
        """Ranked items straight from the backend (errors propagate)."""
        return await self.backend.search(query, top_k or self.top_k)

    async def search(
        self,
        query: str,
        top_k: int | None = None,
        threshold: float | None = None,
    ) -> KnowledgeMatch | None:
        """Return the accepted best match, or None.

        Args:
            query: Raw user question
            top_k: How many candidates the backend ranks
            threshold: Minimum score to accept (inclusive)

        Returns:
            KnowledgeMatch when the best item clears the threshold
        """
        threshold = self.threshold if threshold is None else threshold

        try:
            results = await self.search_ranked(query, top_k)
        except (OpenAIError, ChromaError) as exc:
            logger.warning("knowledge_search_failed", error=str(exc))
            return None

        best = results[0] if results else None
        match = decide(best, threshold)

        logger.info(
            "knowledge_search",
            candidates=len(results),
            best_score=best.score if best else None,
            threshold=threshold,
            matched=match is not None,
        )
        return match


def build_search_service(
    config: dict[str, Any],
    knowledge_base: KnowledgeBase,
    backend_type: SearchBackendType | str | None = None,
) -> KnowledgeSearchService:
    """Compose the configured backend with the retrieval settings.

    Args:
        config: Full configuration dict
        knowledge_base: Loaded, immutable knowledge base
        backend_type: Override for ``retrieval.backend``

    Returns:
        KnowledgeSearchService
    """
    retrieval = config.get("retrieval", {})
    backend_name = SearchBackendType(backend_type or retrieval.get("backend", SearchBackendType.LEXICAL))

    backend: SearchBackend
    if backend_name == SearchBackendType.EMBEDDING:
        embedding_config = config.get("embedding", {})
        backend = EmbeddingSearchBackend(
            knowledge_base=knowledge_base,
            embedder=EntryEmbedder(build_embedding_client(config)),
            extra_entries=load_corpus_entries(
                embedding_config.get("corpus_path"),
                max_chars=embedding_config.get("chunk_size", 300),
            ),
        )
    else:
        backend = LexicalSearchBackend(
            knowledge_base=knowledge_base,
            weights=RankingWeights(**retrieval.get("weights", {})),
        )

    logger.info("search_service_ready", backend=backend_name.value)
    return KnowledgeSearchService(
        backend=backend,
        threshold=retrieval.get("threshold", DEFAULT_THRESHOLD),
        top_k=retrieval.get("top_k", DEFAULT_TOP_K),
    )
