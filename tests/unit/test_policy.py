"""Threshold decision and match tags."""

from kbchat.core.models import FLAT_MODE_TAGS, KnowledgeEntry, ScoredItem
from kbchat.core.retrieval import decide

ENTRY = KnowledgeEntry(question="什么是人工智能？", answer="人工智能是计算机科学的一个分支。")


def test_decide_without_best():
    assert decide(None, 0.5) is None


def test_decide_threshold_is_inclusive():
    item = ScoredItem(entry=ENTRY, score=0.55, category="人工智能", subcategory="基础概念")

    match = decide(item, 0.55)

    assert match is not None
    assert match.question == ENTRY.question
    assert match.answer == ENTRY.answer
    assert match.tags == frozenset({"人工智能", "基础概念"})


def test_decide_below_threshold():
    item = ScoredItem(entry=ENTRY, score=0.54, category="人工智能", subcategory="基础概念")
    assert decide(item, 0.55) is None


def test_flat_items_get_fixed_tags():
    match = decide(ScoredItem(entry=ENTRY, score=1.0), 1.0)
    assert match.tags == FLAT_MODE_TAGS == frozenset({"RAG", "Knowledge"})
