"""Knowledge base models: hierarchical entries, ranked results, and matches."""

import math
from collections.abc import Iterator

from pydantic import Field, model_validator

from .base import FrozenModel

# Tags attached to matches that carry no category structure (flat mode, document chunks)
FLAT_MODE_TAGS: frozenset[str] = frozenset({"RAG", "Knowledge"})


class KnowledgeEntry(FrozenModel):
    """A single question/answer fact."""

    question: str = Field(..., min_length=1, description="Canonical question text")
    answer: str = Field(..., min_length=1, description="Answer injected into the prompt")
    tags: tuple[str, ...] = Field(default=(), description="Display tags (flat entries only)")


class Subcategory(FrozenModel):
    """Second level of the knowledge tree."""

    name: str = Field(..., description="Subcategory name")
    keywords: tuple[str, ...] = Field(default=(), description="Keywords used for scoring")
    items: tuple[KnowledgeEntry, ...] = Field(default=(), description="Question/answer items")


class Category(FrozenModel):
    """Top level of the knowledge tree."""

    name: str = Field(..., description="Category name")
    keywords: tuple[str, ...] = Field(default=(), description="Keywords used for scoring")
    subcategories: tuple[Subcategory, ...] = Field(default=(), description="Subcategories")


class KnowledgeBase(FrozenModel):
    """Immutable knowledge base held in memory for the process lifetime.

    When ``categories`` is empty the ranker falls back to the flat ``entries``
    list and scores items by question similarity alone.
    """

    categories: tuple[Category, ...] = Field(default=(), description="Category tree")
    entries: tuple[KnowledgeEntry, ...] = Field(default=(), description="Flat fallback entries")

    @property
    def is_hierarchical(self) -> bool:
        return bool(self.categories)

    @property
    def item_count(self) -> int:
        return sum(1 for _ in self.iter_items())

    def iter_items(self) -> Iterator[tuple[str | None, str | None, KnowledgeEntry]]:
        """Yield ``(category, subcategory, entry)`` in walk order.

        Flat entries are yielded with ``None`` names, and only when the
        category list is empty.
        """
        if self.categories:
            for category in self.categories:
                for subcategory in category.subcategories:
                    for entry in subcategory.items:
                        yield category.name, subcategory.name, entry
        else:
            for entry in self.entries:
                yield None, None, entry

    @classmethod
    def empty(cls) -> "KnowledgeBase":
        return cls()


class RankingWeights(FrozenModel):
    """Policy constants combining keyword and question scores.

    ``category``/``subcategory`` weigh the two keyword scores into the
    category bonus; ``question``/``category_bonus`` weigh the question
    similarity against that bonus. Each pair must sum to 1 so the final
    score stays a convex combination.
    """

    category: float = Field(0.4, ge=0.0, le=1.0)
    subcategory: float = Field(0.6, ge=0.0, le=1.0)
    question: float = Field(0.5, ge=0.0, le=1.0)
    category_bonus: float = Field(0.5, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_pairs_sum_to_one(self) -> "RankingWeights":
        if not math.isclose(self.category + self.subcategory, 1.0, abs_tol=1e-9):
            raise ValueError("category and subcategory weights must sum to 1")
        if not math.isclose(self.question + self.category_bonus, 1.0, abs_tol=1e-9):
            raise ValueError("question and category_bonus weights must sum to 1")
        return self


DEFAULT_WEIGHTS = RankingWeights()


class ScoredItem(FrozenModel):
    """One knowledge entry with its final ranking score."""

    entry: KnowledgeEntry
    score: float = Field(..., ge=0.0, le=1.0)
    category: str | None = None
    subcategory: str | None = None


class KnowledgeMatch(FrozenModel):
    """Accepted match handed to the chat pipeline."""

    question: str
    answer: str
    tags: frozenset[str] = Field(default=FLAT_MODE_TAGS)
