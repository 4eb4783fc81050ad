"""Enumeration types for kbchat models."""

from enum import Enum


class MessageRole(str, Enum):
    """Chat message author role."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class MessageSource(str, Enum):
    """Where an assistant reply came from."""

    KNOWLEDGE_BASE = "knowledge-base"
    LLM = "llm"


class PipelineStage(str, Enum):
    """Stage of the chat pipeline for a single turn."""

    IDLE = "idle"
    KNOWLEDGE = "knowledge"
    LLM = "llm"
    ERROR = "error"


class SearchBackendType(str, Enum):
    """Available knowledge search backends."""

    LEXICAL = "lexical"
    EMBEDDING = "embedding"
