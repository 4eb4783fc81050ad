"""Knowledge search service and its backends."""

from .service import KnowledgeSearchService, build_search_service

__all__ = ["KnowledgeSearchService", "build_search_service"]
