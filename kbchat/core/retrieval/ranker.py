"""Hierarchical ranker over the category → subcategory → item tree."""

from collections.abc import Iterator

from ..models.knowledge import (
    DEFAULT_WEIGHTS,
    KnowledgeBase,
    RankingWeights,
    ScoredItem,
)
from .scoring import keyword_score, similarity


def _clamp(score: float) -> float:
    # Weighted sums can drift a ulp past the unit interval
    return min(1.0, max(0.0, score))


def score_items(
    query: str,
    knowledge_base: KnowledgeBase,
    weights: RankingWeights = DEFAULT_WEIGHTS,
) -> Iterator[ScoredItem]:
    """Yield a scored item for every entry, in knowledge-base order.

    Hierarchical mode blends question similarity with keyword scores of the
    enclosing category and subcategory. Flat mode (no categories) scores by
    question similarity only.
    """
    if not knowledge_base.categories:
        for entry in knowledge_base.entries:
            yield ScoredItem(entry=entry, score=_clamp(similarity(query, entry.question)))
        return

    for category in knowledge_base.categories:
        category_score = keyword_score(query, category.keywords)

        for subcategory in category.subcategories:
            subcategory_score = keyword_score(query, subcategory.keywords)
            category_bonus = (
                category_score * weights.category + subcategory_score * weights.subcategory
            )

            for entry in subcategory.items:
                question_score = similarity(query, entry.question)
                final_score = (
                    question_score * weights.question + category_bonus * weights.category_bonus
                )
                yield ScoredItem(
                    entry=entry,
                    score=_clamp(final_score),
                    category=category.name,
                    subcategory=subcategory.name,
                )


def rank(
    query: str,
    knowledge_base: KnowledgeBase,
    weights: RankingWeights = DEFAULT_WEIGHTS,
) -> ScoredItem | None:
    """Return the single best item, or None when the knowledge base has no items.

    Only a strictly greater score replaces the current best, so the first
    item seen wins ties.
    """
    best: ScoredItem | None = None
    for item in score_items(query, knowledge_base, weights):
        if best is None or item.score > best.score:
            best = item
    return best


def rank_top_k(
    query: str,
    knowledge_base: KnowledgeBase,
    top_k: int,
    weights: RankingWeights = DEFAULT_WEIGHTS,
) -> list[ScoredItem]:
    """Return the ``top_k`` best items, best first.

    The sort is stable, so equal scores keep knowledge-base order and the
    head of the list is the same item :func:`rank` picks.
    """
    if top_k <= 0:
        return []
    items = list(score_items(query, knowledge_base, weights))
    items.sort(key=lambda item: item.score, reverse=True)
    return items[:top_k]
