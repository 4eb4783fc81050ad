"""Threshold gate turning the best ranked item into an optional match."""

from ..models.knowledge import FLAT_MODE_TAGS, KnowledgeMatch, ScoredItem


def match_tags(item: ScoredItem) -> frozenset[str]:
    """Category and subcategory names, or the fixed flat-mode pair."""
    names = {name for name in (item.category, item.subcategory) if name}
    return frozenset(names) if names else FLAT_MODE_TAGS


def decide(best: ScoredItem | None, threshold: float) -> KnowledgeMatch | None:
    """Accept ``best`` when its score reaches ``threshold`` (inclusive).

    A rejected or missing item is not an error: the caller proceeds without
    knowledge augmentation.
    """
    if best is None or best.score < threshold:
        return None

    return KnowledgeMatch(
        question=best.entry.question,
        answer=best.entry.answer,
        tags=match_tags(best),
    )
