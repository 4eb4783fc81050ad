"""ChromaDB wrapper holding knowledge-entry embeddings.

In-memory by default: the knowledge base is small and re-embedded on
startup, with the client's embedding cache avoiding repeat API calls.
"""

from typing import Any

import chromadb

from ...core.models.base import generate_id
from ...observability.logger import get_logger

logger = get_logger(__name__)


class ChromaKnowledgeIndex:
    """Cosine-space Chroma collection of knowledge embeddings."""

    def __init__(
        self,
        mode: str = "memory",
        persist_directory: str | None = None,
        collection_name: str | None = None,
    ):
        """Initialize ChromaDB client.

        Args:
            mode: "memory" for in-memory or "persistent" for disk storage
            persist_directory: Directory for persistent storage
            collection_name: Name of the collection. In-memory clients in one
                process share a single store, so memory indexes default to a
                unique name; persistent ones to "knowledge_entries".
        """
        self.mode = mode
        self.persist_directory = persist_directory
        if collection_name is None:
            collection_name = generate_id("knowledge_entries_") if mode == "memory" else "knowledge_entries"
        self.collection_name = collection_name
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")

        if mode == "memory":
            self.client = chromadb.EphemeralClient()
            self.logger.info("chroma_client_initialized", mode="in-memory")
        else:
            if not persist_directory:
                raise ValueError("persist_directory required for persistent mode")
            self.client = chromadb.PersistentClient(path=persist_directory)
            self.logger.info("chroma_client_initialized", mode="persistent", directory=persist_directory)

        self.collection = self.client.get_or_create_collection(
            name=self.collection_name,
            metadata={"hnsw:space": "cosine"},
        )

    def add_embeddings(
        self,
        ids: list[str],
        embeddings: list[list[float]],
        metadatas: list[dict[str, Any]] | None = None,
        documents: list[str] | None = None,
    ) -> None:
        """Add embeddings to the collection.

        Args:
            ids: Unique item identifiers
            embeddings: Embedding vectors, aligned with ``ids``
            metadatas: Optional non-empty metadata dicts
            documents: Optional document texts
        """
        try:
            self.collection.add(
                ids=ids,
                embeddings=embeddings,
                metadatas=metadatas,
                documents=documents,
            )
        except Exception as e:
            self.logger.error("add_embeddings_failed", error=str(e), exc_info=True)
            raise
        self.logger.info("embeddings_added", count=len(ids))

    def query(self, query_embedding: list[float], n_results: int = 3) -> dict[str, Any]:
        """Query for the nearest entries.

        Args:
            query_embedding: Query embedding vector
            n_results: Number of results (clamped to the collection size)

        Returns:
            Dict with ids, distances, metadatas, documents
        """
        available = self.count()
        if available == 0 or n_results <= 0:
            return {"ids": [[]], "distances": [[]], "metadatas": [[]], "documents": [[]]}

        try:
            return self.collection.query(
                query_embeddings=[query_embedding],
                n_results=min(n_results, available),
            )
        except Exception as e:
            self.logger.error("query_failed", error=str(e), exc_info=True)
            raise

    def count(self) -> int:
        return self.collection.count()

    def clear(self) -> None:
        """Drop and recreate the collection."""
        self.client.delete_collection(self.collection_name)
        self.collection = self.client.get_or_create_collection(
            name=self.collection_name,
            metadata={"hnsw:space": "cosine"},
        )
        self.logger.info("collection_cleared", name=self.collection_name)
