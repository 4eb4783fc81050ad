"""Prompt assembly for chat completions."""

from kbchat.chat.prompt import (
    KNOWLEDGE_MISS_MESSAGE,
    MERGE_INSTRUCTION,
    SYSTEM_PROMPT,
    build_messages,
    normalize_whitespace,
    select_history,
)
from kbchat.core.models import ChatMessage, KnowledgeMatch, MessageRole


def _history(count):
    messages = []
    for i in range(count):
        role = MessageRole.USER if i % 2 == 0 else MessageRole.ASSISTANT
        messages.append(ChatMessage(role=role, content=f"message {i}"))
    return messages


def test_normalize_whitespace():
    assert normalize_whitespace("  什么是\n\n人工智能？  ") == "什么是 人工智能？"
    assert normalize_whitespace("") == ""


def test_select_history_single_turn_keeps_last_message():
    history = _history(5)
    assert select_history(history) == [history[-1]]
    assert select_history([]) == []


def test_select_history_multi_turn_window():
    history = _history(14)
    selected = select_history(history, multi_turn=True)
    assert selected == history[-10:]
    assert select_history(history[:3], multi_turn=True) == history[:3]


def test_build_messages_on_hit():
    match = KnowledgeMatch(question="什么是人工智能？", answer="计算机科学的一个分支。")
    history = _history(3)

    messages = build_messages(history, match)

    assert messages[0] == {"role": "system", "content": SYSTEM_PROMPT}
    assert messages[1] == {"role": "user", "content": "message 2"}
    assert messages[2] == {"role": "user", "content": "知识库命中答案：计算机科学的一个分支。"}
    assert messages[3] == {"role": "user", "content": MERGE_INSTRUCTION}
    assert len(messages) == 4


def test_build_messages_on_miss_multi_turn():
    history = _history(4)

    messages = build_messages(history, None, system_prompt="persona", multi_turn=True)

    assert messages[0]["content"] == "persona"
    assert [m["role"] for m in messages[1:5]] == ["user", "assistant", "user", "assistant"]
    assert messages[5]["content"] == KNOWLEDGE_MISS_MESSAGE


def test_system_messages_in_history_are_sent_as_user():
    history = [ChatMessage(role=MessageRole.SYSTEM, content="note")]
    messages = build_messages(history, None)
    assert messages[1] == {"role": "user", "content": "note"}
