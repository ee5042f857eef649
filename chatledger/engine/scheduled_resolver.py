# -*- coding: utf-8 -*-
"""
Scheduled Transaction Resolver

Finds the pending ledger row a message most likely refers to, so that
"paguei a luz" clears the projected electricity bill instead of inserting a
duplicate.

Two entry points:
    - match_by_amount: the message stated an amount; only the target month
      is scanned and the amount must be within 30% of the scheduled one
    - match_by_hint: no amount; every pending row is scanned and scored by
      category/source id, recency and word overlap with the hint

The scoring functions are pure and work on ScheduledTransaction lists; the
resolver class only adds the ledger lookups.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from chatledger.ledger.repository import LedgerRepository
from chatledger.ledger.types import ScheduledTransaction
from chatledger.shared.dates import in_month
from chatledger.shared.entity_matcher import MatchCandidate
from chatledger.shared.text_utils import word_overlap

logger = logging.getLogger(__name__)

EXPENSE_ID_WEIGHT = 0.5
INCOME_ID_WEIGHT = 0.7
AMOUNT_WEIGHT = 0.4
AMOUNT_TOLERANCE = 0.3
AMOUNT_ACCEPT_FLOOR = 0.5

HINT_ID_WEIGHT = 0.7
HINT_MONTH_BOOST = 0.2
DESCRIPTION_WEIGHT = 0.3
DESCRIPTION_NOISE_FLOOR = 0.5
DISPLAY_NAME_WEIGHT = 0.5
DISPLAY_NAME_NOISE_FLOOR = 0.3
HINT_ACCEPT_FLOOR = 0.4


def amount_proximity(amount: int, scheduled_amount: int) -> float:
    """
    Amount-proximity term in [0, 0.4].

    Full credit for an exact match, then linear decay to zero as the
    difference approaches 30% of the scheduled amount.
    """
    diff = abs(scheduled_amount - amount)
    if diff == 0:
        return AMOUNT_WEIGHT
    max_diff = scheduled_amount * AMOUNT_TOLERANCE
    if max_diff <= 0 or diff > max_diff:
        return 0.0
    return AMOUNT_WEIGHT * (1 - diff / max_diff)


def _linked_id(tx: ScheduledTransaction) -> Optional[str]:
    return tx.category_id if tx.type == "expense" else tx.income_source_id


def score_by_amount(
    candidates: Iterable[ScheduledTransaction],
    entity_id: Optional[str],
    amount: int,
    tx_type: str,
) -> Optional[MatchCandidate[ScheduledTransaction]]:
    """Best candidate scoring strictly above the acceptance floor; first seen wins ties."""
    id_weight = INCOME_ID_WEIGHT if tx_type == "income" else EXPENSE_ID_WEIGHT
    best: Optional[MatchCandidate[ScheduledTransaction]] = None

    for tx in candidates:
        if tx.type != tx_type:
            continue
        score = 0.0
        if entity_id and _linked_id(tx) == entity_id:
            score += id_weight
        score += amount_proximity(amount, tx.amount)

        if score > AMOUNT_ACCEPT_FLOOR and (best is None or score > best.confidence):
            best = MatchCandidate(tx, score)

    return best


def score_by_hint(
    candidates: Iterable[ScheduledTransaction],
    entity_id: Optional[str],
    description_hint: Optional[str],
    year: int,
    month: int,
    tx_type: str,
) -> Optional[MatchCandidate[ScheduledTransaction]]:
    best: Optional[MatchCandidate[ScheduledTransaction]] = None

    for tx in candidates:
        if tx.type != tx_type:
            continue
        score = 0.0
        if entity_id and _linked_id(tx) == entity_id:
            score += HINT_ID_WEIGHT
        if tx.date and in_month(tx.date, year, month):
            score += HINT_MONTH_BOOST

        if description_hint:
            if tx.description:
                overlap = word_overlap(description_hint, tx.description)
                if overlap > DESCRIPTION_NOISE_FLOOR:
                    score += DESCRIPTION_WEIGHT * overlap
            if tx.display_name:
                overlap = word_overlap(description_hint, tx.display_name)
                if overlap > DISPLAY_NAME_NOISE_FLOOR:
                    score += DISPLAY_NAME_WEIGHT * overlap

        if score >= HINT_ACCEPT_FLOOR and (best is None or score > best.confidence):
            best = MatchCandidate(tx, score)

    return best


class ScheduledTransactionResolver:
    def __init__(self, repository: LedgerRepository):
        self.repository = repository

    def match_by_amount(
        self,
        budget_id: str,
        entity_id: Optional[str],
        amount: int,
        year: int,
        month: int,
        tx_type: str = "expense",
    ) -> Optional[MatchCandidate[ScheduledTransaction]]:
        """
        Match a stated amount against the pending rows of one month.

        Args:
            budget_id: budget to search
            entity_id: matched category id (expense) or income source id (income)
            amount: stated amount in minor units
            year, month: target month
            tx_type: "expense" or "income"
        """
        pending = self.repository.list_pending_transactions(budget_id, tx_type, year=year, month=month)
        match = score_by_amount(pending, entity_id, amount, tx_type)
        if match:
            logger.info(f"Scheduled {tx_type} matched by amount: {match.entity.id} ({match.confidence:.2f})")
        return match

    def match_by_hint(
        self,
        budget_id: str,
        entity_id: Optional[str],
        description_hint: Optional[str],
        year: int,
        month: int,
        tx_type: str = "expense",
    ) -> Optional[MatchCandidate[ScheduledTransaction]]:
        """Match a message without an amount; scheduled items can lag, so every month is scanned."""
        pending = self.repository.list_pending_transactions(budget_id, tx_type)
        match = score_by_hint(pending, entity_id, description_hint, year, month, tx_type)
        if match:
            logger.info(f"Scheduled {tx_type} matched by hint: {match.entity.id} ({match.confidence:.2f})")
        else:
            logger.info(f"No scheduled {tx_type} matched hint '{description_hint}'")
        return match
