"""Knowledge search over the bundled sample data, lexical and embedding backends."""

import asyncio
from pathlib import Path

from openai import APIConnectionError

from kbchat.core.models import KnowledgeBase, KnowledgeEntry
from kbchat.core.storage.knowledge_loader import load_knowledge_base
from kbchat.integrations.openai_client import LLMClient
from kbchat.kb.ingestion.embedder import EntryEmbedder
from kbchat.kb.storage.chroma_client import ChromaKnowledgeIndex
from kbchat.search.backends import EmbeddingSearchBackend, LexicalSearchBackend
from kbchat.search.service import KnowledgeSearchService, build_search_service

SAMPLE_KB = Path(__file__).resolve().parents[2] / "data" / "knowledge_base.json"


def _lexical_service(threshold=0.55):
    kb = load_knowledge_base(SAMPLE_KB)
    return KnowledgeSearchService(LexicalSearchBackend(kb), threshold=threshold)


def test_exact_question_is_matched():
    match = asyncio.run(_lexical_service().search("什么是人工智能？"))

    assert match is not None
    assert match.question == "什么是人工智能？"
    assert match.answer.startswith("人工智能（AI）")
    assert match.tags == frozenset({"人工智能", "基础概念"})


def test_unrelated_greeting_is_not_matched():
    service = _lexical_service()

    for threshold in (0.1, 0.55, 1.0):
        assert asyncio.run(service.search("你好", threshold=threshold)) is None


def test_degenerate_queries_are_not_matched():
    service = _lexical_service()
    assert asyncio.run(service.search("")) is None
    assert asyncio.run(service.search("？？？")) is None


def test_flat_entry_exact_match_regardless_of_threshold():
    kb = KnowledgeBase(entries=(KnowledgeEntry(question="什么是人工智能？", answer="AI"),))
    service = KnowledgeSearchService(LexicalSearchBackend(kb))

    match = asyncio.run(service.search("什么是人工智能？", threshold=1.0))

    assert match.answer == "AI"
    assert match.tags == frozenset({"RAG", "Knowledge"})


def test_ranked_results_are_sorted():
    ranked = asyncio.run(_lexical_service().search_ranked("如何使用本地知识库", top_k=3))

    assert len(ranked) == 3
    assert ranked[0].entry.question == "如何使用本地知识库？"
    assert [r.score for r in ranked] == sorted((r.score for r in ranked), reverse=True)


class _FailingBackend:
    async def search(self, query, top_k):
        raise APIConnectionError(request=None)


def test_backend_failure_reports_no_match():
    service = KnowledgeSearchService(_FailingBackend())
    assert asyncio.run(service.search("什么是人工智能？")) is None


def test_build_search_service_reads_config():
    kb = load_knowledge_base(SAMPLE_KB)
    config = {
        "retrieval": {
            "backend": "lexical",
            "threshold": 0.9,
            "top_k": 2,
            "weights": {"category": 0.5, "subcategory": 0.5, "question": 0.5, "category_bonus": 0.5},
        }
    }

    service = build_search_service(config, kb)

    assert isinstance(service.backend, LexicalSearchBackend)
    assert service.threshold == 0.9
    assert service.top_k == 2
    assert service.backend.weights.category == 0.5


def test_embedding_backend_in_test_mode(monkeypatch):
    monkeypatch.setenv("KBCHAT_TEST_MODE", "1")
    kb = load_knowledge_base(SAMPLE_KB)
    chunk = KnowledgeEntry(question="猫咪每天要睡十几个小时。", answer="猫咪每天要睡十几个小时。")

    backend = EmbeddingSearchBackend(
        knowledge_base=kb,
        embedder=EntryEmbedder(LLMClient(model="text-embedding-3-small")),
        index=ChromaKnowledgeIndex(mode="memory", collection_name="test_embedding_backend"),
        extra_entries=[chunk],
    )
    service = KnowledgeSearchService(backend, threshold=0.55)

    async def run():
        return (
            await service.search("什么是人工智能？"),
            await service.search("猫咪每天要睡十几个小时。"),
            await service.search_ranked("", top_k=3),
        )

    hit, chunk_hit, empty = asyncio.run(run())

    assert hit.question == "什么是人工智能？"
    assert hit.tags == frozenset({"人工智能", "基础概念"})
    assert chunk_hit.tags == frozenset({"RAG", "Knowledge"})
    assert empty == []
    assert backend.index.count() == kb.item_count + 1


def test_default_memory_indexes_are_isolated(monkeypatch):
    monkeypatch.setenv("KBCHAT_TEST_MODE", "1")
    embedder = EntryEmbedder(LLMClient(model="text-embedding-3-small"))
    first = KnowledgeSearchService(EmbeddingSearchBackend(load_knowledge_base(SAMPLE_KB), embedder))
    other_kb = KnowledgeBase(entries=(KnowledgeEntry(question="猫咪喜欢什么？", answer="晒太阳"),))
    second = KnowledgeSearchService(EmbeddingSearchBackend(other_kb, embedder))

    async def run():
        await first.search("什么是人工智能？")
        await second.search("猫咪喜欢什么？")
        return await first.search("什么是人工智能？"), await second.search("猫咪喜欢什么？")

    first_match, second_match = asyncio.run(run())

    assert first.backend.index.collection_name != second.backend.index.collection_name
    assert first_match.question == "什么是人工智能？"
    assert second_match.answer == "晒太阳"
