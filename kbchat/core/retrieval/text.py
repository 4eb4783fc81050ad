"""Text normalization and tokenization for knowledge matching.

Space-delimited scripts tokenize into words; unsegmented scripts such as
Chinese have no word boundaries, so they tokenize into overlapping
character bigrams instead.
"""

import unicodedata


def _is_kept(char: str) -> bool:
    """Letters, numbers, and whitespace survive normalization in any script."""
    if char.isspace():
        return True
    return unicodedata.category(char)[0] in ("L", "N")


def normalize(text: str) -> str:
    """Lowercase, strip punctuation, and collapse whitespace.

    Punctuation is removed before whitespace is collapsed so the result is
    stable under repeated application.
    """
    if not isinstance(text, str):
        text = str(text or "")

    lowered = text.lower()
    kept = "".join(char for char in lowered if _is_kept(char))
    return " ".join(kept.split())


def tokenize(text: str) -> list[str]:
    """Split text into comparable units.

    Returns whitespace-delimited words when the normalized text contains
    whitespace, otherwise every contiguous two-character window. Strings of
    length one or less yield their characters.
    """
    normalized = normalize(text)
    if not normalized:
        return []

    if any(char.isspace() for char in normalized):
        return normalized.split()

    if len(normalized) <= 1:
        return list(normalized)
    return [normalized[i : i + 2] for i in range(len(normalized) - 1)]
