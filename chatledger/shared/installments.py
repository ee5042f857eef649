# -*- coding: utf-8 -*-
"""Installment expansion with credit-card billing cycles.

A billing cycle for month M runs from closing_day+1 of month M-1 to
closing_day of month M. Example with closing_day=15:
    - March cycle: Feb 16 -> Mar 15
    - April cycle: Mar 16 -> Apr 15

A purchase made on or after the closing day belongs to the next month's
cycle. Installments of a card purchase are dated on the (clamped) closing
day of the cycle they belong to, one calendar month apart.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from chatledger.errors import ContractError, ErrorCode

MIN_INSTALLMENTS = 2
MAX_INSTALLMENTS = 24


@dataclass(frozen=True)
class Installment:
    number: int  # 1-based
    date: datetime
    amount: int


def clamp_day(year: int, month: int, day: int) -> int:
    """closing_day=31 in February -> 28 (or 29)."""
    return min(day, calendar.monthrange(year, month)[1])


def add_months(value: datetime, months: int, day: Optional[int] = None) -> datetime:
    """Shift by whole months, clamping the day-of-month when needed."""
    base_day = day if day is not None else value.day
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    return value.replace(year=year, month=month, day=clamp_day(year, month, base_day))


def billing_month(purchase_date: datetime, closing_day: int) -> Tuple[int, int]:
    """Return (year, month) of the billing cycle a purchase falls into."""
    effective_closing_day = clamp_day(purchase_date.year, purchase_date.month, closing_day)
    if purchase_date.day >= effective_closing_day:
        shifted = add_months(purchase_date, 1, day=1)
        return shifted.year, shifted.month
    return purchase_date.year, purchase_date.month


def first_installment_date(purchase_date: datetime, closing_day: int) -> datetime:
    year, month = billing_month(purchase_date, closing_day)
    return purchase_date.replace(year=year, month=month, day=clamp_day(year, month, closing_day))


def installment_amount(total: int, count: int) -> int:
    # Remainder (total % count) is not redistributed.
    return total // count


def expand_installments(
    total: int,
    count: int,
    purchase_date: datetime,
    closing_day: Optional[int] = None,
) -> List[Installment]:
    """
    Expand one purchase into dated installments.

    Args:
        total: purchase total in minor units
        count: number of installments, already within [2, 24]
        purchase_date: when the purchase happened
        closing_day: billing closing day of the paying card, if any

    Returns:
        List of Installment, numbered from 1, one month apart

    Raises:
        ContractError: count outside [2, 24]
    """
    if not MIN_INSTALLMENTS <= count <= MAX_INSTALLMENTS:
        raise ContractError.from_code(ErrorCode.INVALID_INSTALLMENTS, count=count)

    if closing_day:
        first_date = first_installment_date(purchase_date, closing_day)
    else:
        first_date = purchase_date

    amount = installment_amount(total, count)
    anchor_day = closing_day or purchase_date.day
    return [
        Installment(number=i + 1, date=add_months(first_date, i, day=anchor_day), amount=amount)
        for i in range(count)
    ]
