"""Chat pipeline with the mocked LLM client and file-backed sessions."""

import asyncio
from pathlib import Path

from openai import APIConnectionError
from rich.console import Console

from kbchat.chat.assistant import KnowledgeAssistant, run_chat_session
from kbchat.chat.prompt import FAILURE_REPLY, KNOWLEDGE_MISS_MESSAGE
from kbchat.core.config.loader import load_config
from kbchat.core.models import MessageRole, MessageSource, PipelineStage
from kbchat.core.storage.knowledge_loader import load_knowledge_base
from kbchat.core.storage.session_store import SessionStore
from kbchat.integrations.openai_client import LLMClient
from kbchat.search.backends import LexicalSearchBackend
from kbchat.search.service import KnowledgeSearchService

SAMPLE_KB = Path(__file__).resolve().parents[2] / "data" / "knowledge_base.json"


class _RecordingClient:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    async def create_chat_completion(self, messages):
        self.calls.append(messages)
        if self.error:
            raise self.error
        return "好的喵", {"tokens_total": 3}


def _assistant(client, multi_turn=False):
    service = KnowledgeSearchService(LexicalSearchBackend(load_knowledge_base(SAMPLE_KB)))
    return KnowledgeAssistant(search_service=service, llm_client=client, multi_turn=multi_turn)


def test_knowledge_hit_is_injected():
    client = _RecordingClient()

    turn = asyncio.run(_assistant(client).answer([], "  什么是人工智能？ "))

    assert turn.user_message.content == "什么是人工智能？"
    assert turn.knowledge_match.question == "什么是人工智能？"
    assert turn.reply.content == "好的喵"
    assert turn.reply.source == MessageSource.LLM
    assert turn.stage == PipelineStage.IDLE

    sent = client.calls[0]
    assert sent[1] == {"role": "user", "content": "什么是人工智能？"}
    assert sent[2]["content"].startswith("知识库命中答案：人工智能（AI）")


def test_knowledge_miss_is_reported_to_the_model():
    client = _RecordingClient()

    turn = asyncio.run(_assistant(client).answer([], "你好"))

    assert turn.knowledge_match is None
    assert client.calls[0][2]["content"] == KNOWLEDGE_MISS_MESSAGE


def test_llm_failure_returns_failure_reply():
    client = _RecordingClient(error=APIConnectionError(request=None))

    turn = asyncio.run(_assistant(client).answer([], "你好"))

    assert turn.reply.content == FAILURE_REPLY
    assert turn.reply.role == MessageRole.ASSISTANT
    assert turn.stage == PipelineStage.ERROR


def test_blank_input_is_ignored():
    client = _RecordingClient()
    assert asyncio.run(_assistant(client).answer([], "   ")) is None
    assert client.calls == []


def test_multi_turn_sends_history():
    client = _RecordingClient()
    assistant = _assistant(client, multi_turn=True)

    first = asyncio.run(assistant.answer([], "你好"))
    asyncio.run(assistant.answer([first.user_message, first.reply], "什么是人工智能？"))

    sent = client.calls[1]
    assert [m["role"] for m in sent[1:4]] == ["user", "assistant", "user"]


def test_mock_client_completion(monkeypatch):
    monkeypatch.setenv("KBCHAT_TEST_MODE", "1")

    text, usage = asyncio.run(
        LLMClient().create_chat_completion([{"role": "user", "content": "你好"}])
    )

    assert text == "(mock) 你好喵"
    assert usage["mock"] is True


def test_one_shot_session_is_persisted(tmp_path, monkeypatch):
    monkeypatch.setenv("KBCHAT_TEST_MODE", "1")
    config = load_config(
        overrides={
            "knowledge": {"path": str(SAMPLE_KB)},
            "storage": {"sessions_path": str(tmp_path / "sessions.json"), "cache_dir": None},
        }
    )

    session = run_chat_session(config, prompt="什么是人工智能？", console=Console(file=None, quiet=True))

    stored = SessionStore(tmp_path / "sessions.json").load_session(session.id)
    assert stored.title == "什么是人工智能？"
    assert [m.role for m in stored.messages] == ["assistant", "user", "assistant"]
    assert stored.messages[-1].content.startswith("(mock)")
