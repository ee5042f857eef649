# -*- coding: utf-8 -*-
"""
Entity matching utilities.

Resolves a free-text hint ("mercado", "cartão", "salário") into one of the
user's configured categories, income sources, goals or accounts.

Matching runs in priority order and the first hit wins:
    exact (1.0) > substring either way (0.8) > alias table (0.7) > group (0.6)

Alias and group matches stay below the auto-commit threshold on purpose, so
they only auto-commit when the intent confidence is very high.

Vocabularies are loaded from chatledger/config/vocabulary.yaml.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Generic, Iterable, Optional, Sequence, TypeVar

import yaml

from chatledger.ledger.types import AccountRef, CategoryRef, GoalRef, IncomeSourceRef
from chatledger.shared.text_utils import normalize_text, significant_words

T = TypeVar("T")

EXACT_CONFIDENCE = 1.0
SUBSTRING_CONFIDENCE = 0.8
ALIAS_CONFIDENCE = 0.7
GROUP_CONFIDENCE = 0.6
WORD_CONFIDENCE = 0.6


@dataclass(frozen=True)
class MatchCandidate(Generic[T]):
    """A matched entity with a similarity score (not a probability)."""

    entity: T
    confidence: float


@lru_cache(maxsize=1)
def load_vocabulary() -> dict:
    """Load the domain vocabulary from YAML."""
    config_path = Path(__file__).resolve().parents[1] / "config" / "vocabulary.yaml"
    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError("vocabulary.yaml must be a mapping")
    return data


def _aliases(section: str) -> dict[str, list[str]]:
    raw = load_vocabulary().get(section) or {}
    return {str(key): [str(v) for v in (values or [])] for key, values in raw.items()}


def _match_by_name(hint: str, candidates: Sequence[T], name_of) -> Optional[MatchCandidate[T]]:
    """Exact then substring matching shared by every entity kind."""
    for candidate in candidates:
        if normalize_text(name_of(candidate)) == hint:
            return MatchCandidate(candidate, EXACT_CONFIDENCE)

    for candidate in candidates:
        name = normalize_text(name_of(candidate))
        if name and (hint in name or name in hint):
            return MatchCandidate(candidate, SUBSTRING_CONFIDENCE)

    return None


def match_category(
    hint: Optional[str], categories: Sequence[CategoryRef]
) -> Optional[MatchCandidate[CategoryRef]]:
    """
    Match a category hint against the configured categories.

    Args:
        hint: free text from the user ("mercado", "conta de luz")
        categories: the user's active categories

    Returns:
        MatchCandidate or None when nothing matches (or the hint is empty)
    """
    normalized = normalize_text(hint)
    if not normalized or not categories:
        return None

    match = _match_by_name(normalized, categories, lambda c: c.name)
    if match:
        return match

    match = _match_category_alias(normalized, categories)
    if match:
        return match

    for category in categories:
        if category.group_name and normalized in normalize_text(category.group_name):
            return MatchCandidate(category, GROUP_CONFIDENCE)

    return None


def _match_category_alias(
    hint: str, categories: Sequence[CategoryRef]
) -> Optional[MatchCandidate[CategoryRef]]:
    for key, values in _aliases("category_aliases").items():
        if key not in hint and not any(v in hint for v in values):
            continue
        terms = [key, *values]
        for category in categories:
            name = normalize_text(category.name)
            if any(term in name or name in term for term in terms):
                return MatchCandidate(category, ALIAS_CONFIDENCE)
    return None


def match_income_source(
    hint: Optional[str], income_sources: Sequence[IncomeSourceRef]
) -> Optional[MatchCandidate[IncomeSourceRef]]:
    """Match an income-source hint; falls back to source-type aliases."""
    normalized = normalize_text(hint)
    if not normalized or not income_sources:
        return None

    match = _match_by_name(normalized, income_sources, lambda s: s.name)
    if match:
        return match

    type_aliases = _aliases("income_source_type_aliases")
    for source in income_sources:
        if any(alias in normalized for alias in type_aliases.get(source.type, [])):
            return MatchCandidate(source, ALIAS_CONFIDENCE)

    return None


def match_goal(hint: Optional[str], goals: Sequence[GoalRef]) -> Optional[MatchCandidate[GoalRef]]:
    """Match a goal hint; falls back to word-level containment."""
    normalized = normalize_text(hint)
    if not normalized or not goals:
        return None

    match = _match_by_name(normalized, goals, lambda g: g.name)
    if match:
        return match

    hint_words = significant_words(normalized)
    for goal in goals:
        goal_words = significant_words(goal.name)
        if any(hw in gw or gw in hw for hw in hint_words for gw in goal_words):
            return MatchCandidate(goal, WORD_CONFIDENCE)

    return None


def match_account(hint: Optional[str], accounts: Sequence[AccountRef]) -> Optional[MatchCandidate[AccountRef]]:
    """
    Match a paying-account hint ("no cartão", "com o flash").

    Name containment wins over account-type aliases.
    """
    normalized = normalize_text(hint)
    if not normalized or not accounts:
        return None

    for account in accounts:
        name = normalize_text(account.name)
        if name == normalized:
            return MatchCandidate(account, EXACT_CONFIDENCE)
        if name and (normalized in name or name in normalized):
            return MatchCandidate(account, SUBSTRING_CONFIDENCE)

    type_aliases = _aliases("account_type_aliases")
    for account in accounts:
        if any(alias in normalized for alias in type_aliases.get(account.type, [])):
            return MatchCandidate(account, ALIAS_CONFIDENCE)

    return None


def select_default_account(accounts: Iterable[AccountRef]) -> Optional[AccountRef]:
    """Pick the default paying account by type preference."""
    accounts = list(accounts)
    if not accounts:
        return None
    order = load_vocabulary().get("default_account_type_order") or []
    for account_type in order:
        for account in accounts:
            if account.type == account_type:
                return account
    return accounts[0]


def suggest_group_code(hint: str) -> str:
    """Suggest the parent group code for a category that does not exist yet."""
    normalized = normalize_text(hint)
    vocabulary = load_vocabulary()
    for group_code, keywords in (vocabulary.get("group_keywords") or {}).items():
        if any(keyword in normalized for keyword in keywords or []):
            return group_code
    return vocabulary.get("default_group", "lifestyle")
