"""Prompt assembly for the knowledge-grounded chat."""

from __future__ import annotations

import re
from collections.abc import Sequence

from ..core.models.chat import ChatMessage
from ..core.models.enums import MessageRole
from ..core.models.knowledge import KnowledgeMatch

SYSTEM_PROMPT = (
    "你是一名耐心的智能聊天助手，会参考用户提供的对话历史，使用清晰、友好以及少量的傲娇猫娘的语气回答。"
    "若问题涉及用户本地知识库提供的答案，应优先沿用该答案的表述。每句话结尾都要有喵。"
)

KNOWLEDGE_HIT_TEMPLATE = "知识库命中答案：{answer}"
KNOWLEDGE_MISS_MESSAGE = "知识库未命中：未找到相关内容。"

MERGE_INSTRUCTION = (
    "请输出一条合并后的最终回复：\n"
    "1) 若提供了知识库命中答案，请优先复用其表述，并在必要处进行简洁补充；\n"
    "2) 若知识库未命中，请先用一句话说明未命中，然后直接给出回答；\n"
    "3) 全文语气保持清晰友好并带一点傲娇猫娘风，整段话必须以喵结尾。"
)

FAILURE_REPLY = "你这样的小猫还无权问我这样的问题"

DEFAULT_HISTORY_WINDOW = 10

_WHITESPACE = re.compile(r"\s+")


def normalize_whitespace(text: str) -> str:
    """Collapse whitespace runs and trim; case and punctuation are kept."""
    return _WHITESPACE.sub(" ", text or "").strip()


def select_history(
    history: Sequence[ChatMessage],
    multi_turn: bool = False,
    window: int = DEFAULT_HISTORY_WINDOW,
) -> list[ChatMessage]:
    """Pick the conversation context sent to the model.

    Single-turn mode keeps only the latest message; multi-turn keeps the
    last ``window`` messages (five user/assistant rounds by default).
    """
    if not history:
        return []
    if not multi_turn:
        return [history[-1]]
    return list(history[-max(window, 1):])


def _to_llm_message(message: ChatMessage) -> dict[str, str]:
    # Anything that is not an assistant reply is presented as user input
    role = "assistant" if message.role == MessageRole.ASSISTANT else "user"
    return {"role": role, "content": message.content}


def build_messages(
    history: Sequence[ChatMessage],
    match: KnowledgeMatch | None,
    system_prompt: str = SYSTEM_PROMPT,
    multi_turn: bool = False,
    window: int = DEFAULT_HISTORY_WINDOW,
) -> list[dict[str, str]]:
    """Build the chat completion payload for one turn.

    Args:
        history: Conversation so far, ending with the new user message
        match: Accepted knowledge match, or None on a miss
        system_prompt: Persona instruction placed first
        multi_turn: Whether earlier rounds are included
        window: Message count kept in multi-turn mode

    Returns:
        OpenAI-style messages: system prompt, context, knowledge note, merge instruction
    """
    knowledge_note = (
        KNOWLEDGE_HIT_TEMPLATE.format(answer=match.answer) if match else KNOWLEDGE_MISS_MESSAGE
    )

    messages = [{"role": "system", "content": system_prompt}]
    messages.extend(_to_llm_message(m) for m in select_history(history, multi_turn, window))
    messages.append({"role": "user", "content": knowledge_note})
    messages.append({"role": "user", "content": MERGE_INSTRUCTION})
    return messages
