# -*- coding: utf-8 -*-
"""
Confidence Router

Pure decision functions: given the intent confidence, the entity match and
the scheduled-transaction match, decide how much user interaction a
registration needs.

    AUTO_COMMIT      insert a new row with no further interaction
    CONFIRM          ask yes/no (optionally clearing a scheduled row)
    CREATE_CATEGORY  offer to create the category the user named
    ASK_ENTITY       ask for the paying account and/or the category
    ASK_AMOUNT       no amount and no scheduled row to fall back on

A scheduled match always requires confirmation: clearing an existing row is
riskier than inserting a new one.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from chatledger.ledger.types import ScheduledTransaction
from chatledger.nlu.thresholds import (
    HIGH_CONFIDENCE,
    MEDIUM_CONFIDENCE,
    SCHEDULED_MATCH_CONFIDENCE,
    combine_confidence,
)
from chatledger.shared.entity_matcher import MatchCandidate

# Income with no matched source still registers, with this stand-in score.
UNMATCHED_SOURCE_CONFIDENCE = 0.7


class Outcome(Enum):
    AUTO_COMMIT = "auto_commit"
    CONFIRM = "confirm"
    CREATE_CATEGORY = "create_category"
    ASK_ENTITY = "ask_entity"
    ASK_AMOUNT = "ask_amount"


# Higher is "more automatic".
AUTOMATION_RANK = {
    Outcome.ASK_AMOUNT: 0,
    Outcome.ASK_ENTITY: 0,
    Outcome.CREATE_CATEGORY: 1,
    Outcome.CONFIRM: 2,
    Outcome.AUTO_COMMIT: 3,
}


@dataclass(frozen=True)
class RouteDecision:
    outcome: Outcome
    combined_confidence: float = 0.0
    scheduled: Optional[MatchCandidate[ScheduledTransaction]] = None

    @property
    def scheduled_transaction(self) -> Optional[ScheduledTransaction]:
        return self.scheduled.entity if self.scheduled else None


def _usable_scheduled(
    scheduled: Optional[MatchCandidate[ScheduledTransaction]],
) -> Optional[MatchCandidate[ScheduledTransaction]]:
    if scheduled and scheduled.confidence >= SCHEDULED_MATCH_CONFIDENCE:
        return scheduled
    return None


def route_without_amount(
    scheduled: Optional[MatchCandidate[ScheduledTransaction]],
) -> RouteDecision:
    """No stated amount: only a scheduled row can be confirmed, never auto-committed."""
    usable = _usable_scheduled(scheduled)
    if usable:
        return RouteDecision(Outcome.CONFIRM, usable.confidence, usable)
    return RouteDecision(Outcome.ASK_AMOUNT)


def route_expense(
    intent_confidence: float,
    amount: Optional[int],
    category_match: Optional[MatchCandidate[Any]],
    category_hint: Optional[str],
    scheduled: Optional[MatchCandidate[ScheduledTransaction]] = None,
) -> RouteDecision:
    """
    Decide the outcome of an expense registration.

    Args:
        intent_confidence: confidence of the REGISTER_EXPENSE intent
        amount: stated amount in minor units (None when not stated)
        category_match: entity match for the category hint
        category_hint: the raw hint, used to offer a new category
        scheduled: scheduled match (by hint when amount is None, by amount otherwise)
    """
    if amount is None:
        return route_without_amount(scheduled)

    usable = _usable_scheduled(scheduled)
    if category_match is None:
        if intent_confidence >= HIGH_CONFIDENCE and category_hint:
            return RouteDecision(Outcome.CREATE_CATEGORY, 0.0)
        return RouteDecision(Outcome.ASK_ENTITY, 0.0)

    combined = combine_confidence(intent_confidence, category_match.confidence)
    if combined >= HIGH_CONFIDENCE and usable is None:
        return RouteDecision(Outcome.AUTO_COMMIT, combined)
    if combined >= MEDIUM_CONFIDENCE:
        return RouteDecision(Outcome.CONFIRM, combined, usable)
    return RouteDecision(Outcome.ASK_ENTITY, combined)


def route_income(
    intent_confidence: float,
    amount: Optional[int],
    source_match: Optional[MatchCandidate[Any]],
    scheduled: Optional[MatchCandidate[ScheduledTransaction]] = None,
) -> RouteDecision:
    """Income variant: a missing source never blocks the registration, it only lowers confidence."""
    if amount is None:
        return route_without_amount(scheduled)

    usable = _usable_scheduled(scheduled)
    match_confidence = source_match.confidence if source_match else UNMATCHED_SOURCE_CONFIDENCE
    combined = combine_confidence(intent_confidence, match_confidence)
    if combined >= HIGH_CONFIDENCE and usable is None:
        return RouteDecision(Outcome.AUTO_COMMIT, combined)
    return RouteDecision(Outcome.CONFIRM, combined, usable)
