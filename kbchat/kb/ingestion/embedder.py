"""Embedding generator for knowledge entries."""

from typing import Any

from ...core.models.knowledge import KnowledgeEntry
from ...integrations.openai_client import LLMClient
from ...observability.logger import get_logger

logger = get_logger(__name__)


class EntryEmbedder:
    """Generate embeddings for knowledge entries and queries."""

    def __init__(
        self,
        client: LLMClient,
        model: str | None = None,
        dimensions: int | None = None,
    ):
        """Initialize embedding generator.

        Args:
            client: Client pointed at an embeddings endpoint
            model: Embedding model (defaults to the client's model)
            dimensions: Optional embedding dimensions
        """
        self.client = client
        self.model = model
        self.dimensions = dimensions
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")

    async def embed_entries(
        self, entries: list[KnowledgeEntry], batch_size: int = 100
    ) -> tuple[list[list[float]], dict[str, Any]]:
        """Embed the question text of each entry, in order."""
        texts = [self.build_embedding_text(entry) for entry in entries]
        embeddings, metadata = await self.client.generate_embeddings_batch(
            texts=texts,
            model=self.model,
            dimensions=self.dimensions,
            batch_size=batch_size,
        )
        self.logger.info("entries_embedded", count=len(embeddings), tokens=metadata.get("tokens_used", 0))
        return embeddings, metadata

    async def embed_query(self, query: str) -> list[float]:
        embedding, _ = await self.client.generate_embedding(
            text=query,
            model=self.model,
            dimensions=self.dimensions,
        )
        return embedding

    @staticmethod
    def build_embedding_text(entry: KnowledgeEntry) -> str:
        # Queries are compared against questions, so only the question is embedded
        return entry.question
