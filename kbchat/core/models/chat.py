"""Chat session and message models (Pydantic only)."""

from datetime import datetime

from pydantic import Field

from .base import KBChatBaseModel, generate_id, utc_now
from .enums import MessageRole, MessageSource, PipelineStage
from .knowledge import KnowledgeMatch

DEFAULT_SESSION_TITLE = "新对话"
GREETING_MESSAGE = "你好喵！本喵是你的知识助手。输入问题后我会结合本地知识库的内容回答你愚蠢的问题喵！"


class ChatMessage(KBChatBaseModel):
    """A single chat message."""

    id: str = Field(default_factory=generate_id, description="Message identifier")
    role: MessageRole = Field(..., description="Author role")
    content: str = Field(..., description="Message text")
    source: MessageSource | None = Field(None, description="Reply origin (assistant only)")


class ChatSession(KBChatBaseModel):
    """A persisted conversation."""

    id: str = Field(default_factory=generate_id, description="Session identifier")
    title: str = Field(DEFAULT_SESSION_TITLE, description="Sidebar title")
    messages: list[ChatMessage] = Field(default_factory=list, description="Ordered messages")
    created_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def new(cls) -> "ChatSession":
        """Create a session seeded with the assistant greeting."""
        return cls(
            messages=[
                ChatMessage(
                    role=MessageRole.ASSISTANT,
                    content=GREETING_MESSAGE,
                    source=MessageSource.LLM,
                )
            ]
        )


class ChatTurn(KBChatBaseModel):
    """Outcome of one user question through the pipeline."""

    user_message: ChatMessage
    reply: ChatMessage
    knowledge_match: KnowledgeMatch | None = None
    stage: PipelineStage = PipelineStage.IDLE
