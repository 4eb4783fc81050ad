"""Load a loosely typed knowledge file into a strict, immutable KnowledgeBase.

Accepted shapes (JSON or YAML):

- a list of categories, or ``{"categories": [...]}``::

    [{"name": "...", "keywords": [...],
      "subcategories": [{"name": "...", "keywords": [...],
                         "items": [{"question": "...", "answer": "..."}]}]}]

- a flat list of entries, or ``{"entries": [...]}``::

    [{"question": "...", "answer": "...", "tags": ["..."]}]

Malformed input never raises: bad records are skipped with a warning and a
source that yields nothing degrades to the placeholder flat entries.
"""

import json
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ..models.knowledge import Category, KnowledgeBase, KnowledgeEntry, Subcategory
from ...observability.logger import get_logger

logger = get_logger(__name__)

PLACEHOLDER_ENTRIES: tuple[KnowledgeEntry, ...] = (
    KnowledgeEntry(
        question="什么是人工智能？",
        answer=(
            "人工智能（AI）是计算机科学的一个分支，它企图了解智能的实质，"
            "并生产出一种新的能以人类智能相似的方式做出反应的智能机器。"
        ),
        tags=("人工智能", "定义"),
    ),
    KnowledgeEntry(
        question="如何使用本地知识库？",
        answer=(
            "打开 data/knowledge_base.json 文件，按照 question 和 answer 的键值对形式补充内容，"
            "并重新启动应用即可。"
        ),
        tags=("使用说明",),
    ),
)


def _as_list(value: Any, field: str) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    logger.warning("knowledge_field_not_a_list", field=field, type=type(value).__name__)
    return []


def _as_keywords(value: Any) -> tuple[str, ...]:
    return tuple(str(keyword) for keyword in _as_list(value, "keywords") if keyword is not None)


def _parse_entry(raw: Any) -> KnowledgeEntry | None:
    if not isinstance(raw, dict):
        logger.warning("knowledge_entry_skipped", reason="not_an_object")
        return None

    question = raw.get("question")
    answer = raw.get("answer")
    if not isinstance(question, str) or not isinstance(answer, str):
        logger.warning("knowledge_entry_skipped", reason="missing_question_or_answer")
        return None

    try:
        return KnowledgeEntry(
            question=question,
            answer=answer,
            tags=tuple(str(tag) for tag in _as_list(raw.get("tags"), "tags")),
        )
    except ValidationError as exc:
        logger.warning("knowledge_entry_skipped", reason="invalid", error=str(exc))
        return None


def _parse_entries(raw_entries: Sequence[Any]) -> tuple[KnowledgeEntry, ...]:
    entries = (_parse_entry(raw) for raw in raw_entries)
    return tuple(entry for entry in entries if entry is not None)


def _parse_subcategory(raw: Any) -> Subcategory | None:
    if not isinstance(raw, dict):
        logger.warning("knowledge_subcategory_skipped", reason="not_an_object")
        return None

    name = str(raw.get("name") or "")
    items = _parse_entries(_as_list(raw.get("items"), "items"))
    if not items:
        logger.warning("knowledge_subcategory_skipped", name=name, reason="no_valid_items")
        return None
    return Subcategory(name=name, keywords=_as_keywords(raw.get("keywords")), items=items)


def _parse_category(raw: Any) -> Category | None:
    if not isinstance(raw, dict):
        logger.warning("knowledge_category_skipped", reason="not_an_object")
        return None

    name = str(raw.get("name") or "")
    subcategories = tuple(
        sub
        for sub in (_parse_subcategory(s) for s in _as_list(raw.get("subcategories"), "subcategories"))
        if sub is not None
    )
    if not subcategories:
        logger.warning("knowledge_category_skipped", name=name, reason="no_valid_subcategories")
        return None
    return Category(name=name, keywords=_as_keywords(raw.get("keywords")), subcategories=subcategories)


def _split_sections(data: Any) -> tuple[list[Any], list[Any]]:
    """Separate raw category records from raw flat entry records."""
    if isinstance(data, dict):
        return (
            _as_list(data.get("categories"), "categories"),
            _as_list(data.get("entries"), "entries"),
        )

    if isinstance(data, list):
        categories: list[Any] = []
        entries: list[Any] = []
        for record in data:
            if isinstance(record, dict) and "subcategories" in record:
                categories.append(record)
            else:
                entries.append(record)
        return categories, entries

    if data is not None:
        logger.warning("knowledge_source_malformed", type=type(data).__name__)
    return [], []


def parse_knowledge_base(
    data: Any,
    fallback_entries: Sequence[KnowledgeEntry] = PLACEHOLDER_ENTRIES,
) -> KnowledgeBase:
    """Validate already-decoded data into a KnowledgeBase.

    Args:
        data: Decoded JSON/YAML document (list or dict), or None
        fallback_entries: Flat entries used when the source yields nothing

    Returns:
        KnowledgeBase; hierarchical when any valid category survives
    """
    raw_categories, raw_entries = _split_sections(data)

    categories = tuple(
        category
        for category in (_parse_category(raw) for raw in raw_categories)
        if category is not None
    )
    entries = _parse_entries(raw_entries)

    if not categories and not entries:
        entries = tuple(fallback_entries)
        logger.info("knowledge_fallback_entries", count=len(entries))

    knowledge_base = KnowledgeBase(categories=categories, entries=entries)
    logger.info(
        "knowledge_base_loaded",
        hierarchical=knowledge_base.is_hierarchical,
        categories=len(categories),
        items=knowledge_base.item_count,
    )
    return knowledge_base


def _read_document(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yaml", ".yml"):
        return yaml.safe_load(text)
    return json.loads(text)


def load_knowledge_base(
    path: str | Path | None,
    fallback_entries: Sequence[KnowledgeEntry] = PLACEHOLDER_ENTRIES,
) -> KnowledgeBase:
    """Load and validate a knowledge file.

    Args:
        path: JSON or YAML file; None or a missing file uses the fallback
        fallback_entries: Flat entries used when the file yields nothing

    Returns:
        KnowledgeBase (never raises for bad input)
    """
    data: Any = None
    if path is None:
        logger.warning("knowledge_path_not_configured")
    else:
        source = Path(path)
        try:
            data = _read_document(source)
        except FileNotFoundError:
            logger.warning("knowledge_file_missing", path=str(source))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, yaml.YAMLError) as exc:
            logger.warning("knowledge_file_unreadable", path=str(source), error=str(exc))

    return parse_knowledge_base(data, fallback_entries=fallback_entries)
