# -*- coding: utf-8 -*-
"""
Text helpers shared by the matchers and the message formatters.
"""

from __future__ import annotations

import re
import unicodedata

STOPWORDS = frozenset({
    "de", "da", "do", "das", "dos",
    "o", "a", "os", "as",
    "um", "uma", "uns", "umas",
    "e", "ou",
    "em", "no", "na", "nos", "nas",
    "para", "por", "com", "sem",
})

_AMOUNT_PATTERN = re.compile(r"(?:r\$\s*)?(\d+(?:[.,]\d{1,2})?)", re.IGNORECASE)


def normalize_text(value: str | None) -> str:
    """Lowercase, strip diacritics and trim."""
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFD", value.lower())
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return stripped.strip()


def significant_words(value: str | None) -> list[str]:
    return [
        word for word in normalize_text(value).split()
        if len(word) > 1 and word not in STOPWORDS
    ]


def word_overlap(text1: str | None, text2: str | None) -> float:
    """
    Word-overlap similarity in [0, 1].

    A pair of words counts when they are equal or one contains the other, so
    inflections ("conta"/"contas") and partial phrases still score. The count
    is divided by the longer word list.
    """
    words1 = significant_words(text1)
    words2 = significant_words(text2)
    if not words1 or not words2:
        return 0.0

    matches = 0
    for w1 in words1:
        if any(w1 == w2 or w1 in w2 or w2 in w1 for w2 in words2):
            matches += 1

    return matches / max(len(words1), len(words2))


def capitalize_first(value: str | None) -> str | None:
    if not value:
        return value
    value = value.strip()
    return value[:1].upper() + value[1:]


def title_case(value: str) -> str:
    """'conta de gás' -> 'Conta De Gás'"""
    return " ".join(word[:1].upper() + word[1:].lower() for word in value.strip().split())


def parse_amount(text: str | None) -> int | None:
    """
    Extract the first amount from free text, in minor units.

    Accepts "50", "50,00", "50.90" and "R$ 50,00". Returns None when no
    positive amount is present.
    """
    if not text:
        return None
    match = _AMOUNT_PATTERN.search(text)
    if not match:
        return None
    value = float(match.group(1).replace(",", "."))
    if value <= 0:
        return None
    return round(value * 100)


def strip_amount(text: str) -> str:
    """Remove the first amount token (and its currency prefix) from text."""
    return " ".join(_AMOUNT_PATTERN.sub("", text, count=1).split())
