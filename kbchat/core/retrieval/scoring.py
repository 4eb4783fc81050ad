"""Similarity and keyword scores in [0, 1]."""

from collections.abc import Sequence

from .text import normalize, tokenize


def similarity(target: str, candidate: str) -> float:
    """Score how well ``candidate`` matches ``target``.

    A normalized substring match in either direction scores 1. Otherwise the
    score is the Jaccard index of the two token sets. Earlier revisions
    divided the overlap by the target's token count; Jaccard replaced that
    so the score is symmetric.
    """
    norm_target = normalize(target)
    norm_candidate = normalize(candidate)
    if not norm_target or not norm_candidate:
        return 0.0

    # Must run before tokenization: near-exact phrases win regardless of overlap
    if norm_target in norm_candidate or norm_candidate in norm_target:
        return 1.0

    target_tokens = set(tokenize(norm_target))
    candidate_tokens = set(tokenize(norm_candidate))
    if not target_tokens or not candidate_tokens:
        return 0.0

    union = target_tokens | candidate_tokens
    return len(target_tokens & candidate_tokens) / len(union)


def keyword_score(query: str, keywords: Sequence[str]) -> float:
    """Fraction of ``keywords`` contained in the normalized query.

    An empty keyword list scores 0. Keywords that normalize to nothing still
    count toward the total but never match.
    """
    if not keywords:
        return 0.0

    norm_query = normalize(query)
    found = 0
    for keyword in keywords:
        norm_keyword = normalize(keyword)
        if norm_keyword and norm_keyword in norm_query:
            found += 1
    return found / len(keywords)
