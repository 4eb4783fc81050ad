"""Knowledge-grounded chat assistant.

Each turn runs the same pipeline:
- look the question up in the local knowledge base
- ask the LLM for one merged reply, with the hit (or the miss) injected
- fall back to a fixed failure reply when the LLM call fails

Replies are persisted per session through ``SessionStore``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Any

from openai import OpenAIError
from rich.console import Console

from ..core.models.chat import ChatMessage, ChatSession, ChatTurn
from ..core.models.enums import MessageRole, MessageSource, PipelineStage
from ..core.storage.knowledge_loader import load_knowledge_base
from ..core.storage.session_store import SessionStore
from ..integrations.openai_client import LLMClient, build_llm_client
from ..observability.logger import get_logger
from ..search.service import KnowledgeSearchService, build_search_service
from .prompt import (
    DEFAULT_HISTORY_WINDOW,
    FAILURE_REPLY,
    SYSTEM_PROMPT,
    build_messages,
    normalize_whitespace,
)

logger = get_logger(__name__)

STAGE_LABELS = {
    PipelineStage.IDLE: "小猫想和你聊天",
    PipelineStage.KNOWLEDGE: "正在翻资料的说",
    PipelineStage.LLM: "我想想...",
    PipelineStage.ERROR: "猫猫混乱中",
}

EXIT_COMMANDS = {"exit", "quit"}


class KnowledgeAssistant:
    """Answer questions with the knowledge base first, then the LLM."""

    def __init__(
        self,
        search_service: KnowledgeSearchService,
        llm_client: LLMClient,
        multi_turn: bool = False,
        history_window: int = DEFAULT_HISTORY_WINDOW,
        system_prompt: str = SYSTEM_PROMPT,
    ):
        self.search_service = search_service
        self.llm_client = llm_client
        self.multi_turn = multi_turn
        self.history_window = history_window
        self.system_prompt = system_prompt
        self.stage = PipelineStage.IDLE

    async def answer(self, history: Sequence[ChatMessage], content: str) -> ChatTurn | None:
        """Run one question through the pipeline.

        Args:
            history: Messages before this question
            content: Raw user input

        Returns:
            ChatTurn with the user message and the reply, or None for blank input
        """
        question = normalize_whitespace(content)
        if not question:
            return None

        user_message = ChatMessage(role=MessageRole.USER, content=question)
        conversation = [*history, user_message]

        self.stage = PipelineStage.KNOWLEDGE
        match = await self.search_service.search(question)
        logger.info("knowledge_lookup", hit=match is not None, tags=sorted(match.tags) if match else [])

        self.stage = PipelineStage.LLM
        messages = build_messages(
            conversation,
            match,
            system_prompt=self.system_prompt,
            multi_turn=self.multi_turn,
            window=self.history_window,
        )

        try:
            reply_text, usage = await self.llm_client.create_chat_completion(messages)
        except (OpenAIError, ValueError) as exc:
            logger.exception("chat_reply_failed", error=str(exc))
            self.stage = PipelineStage.ERROR
            reply = ChatMessage(role=MessageRole.ASSISTANT, content=FAILURE_REPLY)
            return ChatTurn(user_message=user_message, reply=reply, knowledge_match=match, stage=self.stage)

        logger.info("chat_reply_created", tokens_total=usage.get("tokens_total", 0))
        self.stage = PipelineStage.IDLE
        reply = ChatMessage(role=MessageRole.ASSISTANT, content=reply_text, source=MessageSource.LLM)
        return ChatTurn(user_message=user_message, reply=reply, knowledge_match=match, stage=self.stage)


def build_assistant(config: dict[str, Any], multi_turn: bool | None = None) -> KnowledgeAssistant:
    """Wire knowledge base, search service and LLM client from config."""
    chat_config = config.get("chat", {})
    knowledge_base = load_knowledge_base(config.get("knowledge", {}).get("path"))

    return KnowledgeAssistant(
        search_service=build_search_service(config, knowledge_base),
        llm_client=build_llm_client(config),
        multi_turn=chat_config.get("multi_turn", False) if multi_turn is None else multi_turn,
        history_window=chat_config.get("history_window", DEFAULT_HISTORY_WINDOW),
        system_prompt=chat_config.get("system_prompt") or SYSTEM_PROMPT,
    )


def _print_reply(console: Console, turn: ChatTurn) -> None:
    if turn.knowledge_match:
        tags = ", ".join(sorted(turn.knowledge_match.tags))
        console.print(f"[dim]知识库命中 ({tags})[/dim]")
    style = "red" if turn.stage == PipelineStage.ERROR else "bold"
    console.print(f"[{style}]喵助手:[/{style}] {turn.reply.content}")


def _ask(assistant: KnowledgeAssistant, store: SessionStore, session: ChatSession, content: str) -> ChatTurn | None:
    turn = asyncio.run(assistant.answer(session.messages, content))
    if turn is None:
        return None
    session.messages = [*session.messages, turn.user_message, turn.reply]
    store.save_messages(session.id, session.messages)
    return turn


def run_chat_session(
    config: dict[str, Any],
    session_id: str | None = None,
    prompt: str | None = None,
    multi_turn: bool | None = None,
    console: Console | None = None,
) -> ChatSession:
    """Launch an interactive or one-off chat session.

    Args:
        config: Full configuration dict
        session_id: Continue this stored session; a new one is created otherwise
        prompt: Single question (omit for interactive mode)
        multi_turn: Override ``chat.multi_turn``
        console: Rich console to print to

    Returns:
        The session as persisted after the last turn

    Raises:
        KeyError: If ``session_id`` is not stored
    """
    console = console or Console()
    store = SessionStore(config.get("storage", {}).get("sessions_path"))

    if session_id:
        session = store.load_session(session_id)
        if session is None:
            raise KeyError(session_id)
    else:
        session = store.create_session()

    assistant = build_assistant(config, multi_turn=multi_turn)
    logger.info("chat_session_started", session_id=session.id, multi_turn=assistant.multi_turn)

    if prompt:
        turn = _ask(assistant, store, session, prompt)
        if turn:
            _print_reply(console, turn)
        return store.load_session(session.id) or session

    console.print(f"[bold blue]{session.title}[/bold blue] [dim]({session.id}, type 'exit' to quit)[/dim]")
    for message in session.messages[-2:]:
        speaker = "喵助手" if message.role == MessageRole.ASSISTANT else "你"
        console.print(f"[dim]{speaker}: {message.content}[/dim]")

    while True:
        try:
            user_input = console.input("\n[bold]你:[/bold] ").strip()
        except (EOFError, KeyboardInterrupt):
            console.print("\n[dim]Exiting chat.[/dim]")
            break
        if user_input.lower() in EXIT_COMMANDS:
            console.print("[dim]Goodbye喵![/dim]")
            break

        with console.status(STAGE_LABELS[PipelineStage.KNOWLEDGE]):
            turn = _ask(assistant, store, session, user_input)
        if turn:
            _print_reply(console, turn)

    return store.load_session(session.id) or session
