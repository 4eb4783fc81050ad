"""Knowledge file loading and validation."""

import json

from kbchat.core.storage.knowledge_loader import (
    PLACEHOLDER_ENTRIES,
    load_knowledge_base,
    parse_knowledge_base,
)

HIERARCHY = [
    {
        "name": "人工智能",
        "keywords": ["人工智能"],
        "subcategories": [
            {
                "name": "基础概念",
                "keywords": ["什么是"],
                "items": [
                    {"question": "什么是人工智能？", "answer": "一个计算机科学分支。"},
                    {"question": "缺少答案"},
                    {"question": "   ", "answer": "空白问题"},
                    "not an object",
                ],
            }
        ],
    }
]


def test_hierarchical_list_loads_and_skips_invalid_items(tmp_path):
    path = tmp_path / "kb.json"
    path.write_text(json.dumps(HIERARCHY, ensure_ascii=False), encoding="utf-8")

    kb = load_knowledge_base(path)

    assert kb.is_hierarchical
    assert kb.item_count == 1
    category, subcategory, entry = next(kb.iter_items())
    assert (category, subcategory) == ("人工智能", "基础概念")
    assert entry.answer == "一个计算机科学分支。"


def test_flat_entries_from_dict():
    kb = parse_knowledge_base(
        {"entries": [{"question": "Q1", "answer": "A1", "tags": ["t"]}, {"answer": "no question"}]}
    )

    assert not kb.is_hierarchical
    assert [e.question for e in kb.entries] == ["Q1"]
    assert kb.entries[0].tags == ("t",)


def test_category_without_valid_items_is_dropped():
    data = [
        {"name": "empty", "keywords": [], "subcategories": [{"name": "s", "items": [{"question": "q"}]}]},
        {"question": "flat question", "answer": "flat answer"},
    ]

    kb = parse_knowledge_base(data)

    assert kb.categories == ()
    assert kb.entries[0].question == "flat question"


def test_yaml_source(tmp_path):
    path = tmp_path / "kb.yaml"
    path.write_text(
        "categories:\n"
        "  - name: 使用说明\n"
        "    keywords: [知识库]\n"
        "    subcategories:\n"
        "      - name: 维护\n"
        "        keywords: [添加]\n"
        "        items:\n"
        "          - question: 如何添加知识？\n"
        "            answer: 编辑知识文件。\n",
        encoding="utf-8",
    )

    kb = load_knowledge_base(path)

    assert kb.categories[0].keywords == ("知识库",)
    assert kb.item_count == 1


def test_missing_or_broken_file_uses_placeholders(tmp_path):
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")

    for source in (tmp_path / "missing.json", broken, None):
        kb = load_knowledge_base(source)
        assert kb.entries == PLACEHOLDER_ENTRIES
        assert not kb.is_hierarchical


def test_custom_fallback_entries():
    kb = parse_knowledge_base([], fallback_entries=())
    assert kb.item_count == 0
