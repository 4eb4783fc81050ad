"""kbchat data models for the knowledge base, retrieval results, and chat sessions."""

from .base import FrozenModel, KBChatBaseModel, generate_id, utc_now
from .chat import (
    DEFAULT_SESSION_TITLE,
    GREETING_MESSAGE,
    ChatMessage,
    ChatSession,
    ChatTurn,
)
from .enums import MessageRole, MessageSource, PipelineStage, SearchBackendType
from .knowledge import (
    DEFAULT_WEIGHTS,
    FLAT_MODE_TAGS,
    Category,
    KnowledgeBase,
    KnowledgeEntry,
    KnowledgeMatch,
    RankingWeights,
    ScoredItem,
    Subcategory,
)

__all__ = [
    # Base
    "KBChatBaseModel",
    "FrozenModel",
    "generate_id",
    "utc_now",
    # Enums
    "MessageRole",
    "MessageSource",
    "PipelineStage",
    "SearchBackendType",
    # Knowledge
    "KnowledgeEntry",
    "Subcategory",
    "Category",
    "KnowledgeBase",
    "KnowledgeMatch",
    "RankingWeights",
    "ScoredItem",
    "DEFAULT_WEIGHTS",
    "FLAT_MODE_TAGS",
    # Chat
    "ChatMessage",
    "ChatSession",
    "ChatTurn",
    "DEFAULT_SESSION_TITLE",
    "GREETING_MESSAGE",
]
