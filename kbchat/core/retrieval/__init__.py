"""Knowledge retrieval core: normalize, tokenize, score, rank, decide."""

from .policy import decide, match_tags
from .ranker import rank, rank_top_k, score_items
from .scoring import keyword_score, similarity
from .text import normalize, tokenize

__all__ = [
    "normalize",
    "tokenize",
    "similarity",
    "keyword_score",
    "score_items",
    "rank",
    "rank_top_k",
    "decide",
    "match_tags",
]
