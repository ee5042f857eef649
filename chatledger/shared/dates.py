# -*- coding: utf-8 -*-
"""
Date helpers.

Ledger datetimes are naive UTC. "Today" is the calendar date in the
configured timezone, stored at noon UTC so it never shifts across days.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from chatledger.config import TIMEZONE


def local_today(now: Optional[datetime] = None) -> date:
    tz = ZoneInfo(TIMEZONE)
    return (now.astimezone(tz) if now else datetime.now(tz)).date()


def today_noon_utc(now: Optional[datetime] = None) -> datetime:
    today = local_today(now)
    return datetime(today.year, today.month, today.day, 12, 0, 0)


def month_bounds(year: int, month: int) -> Tuple[datetime, datetime]:
    """[first day 00:00, last day 23:59:59] of a month."""
    last_day = calendar.monthrange(year, month)[1]
    return datetime(year, month, 1), datetime(year, month, last_day, 23, 59, 59)


def in_month(value: datetime, year: int, month: int) -> bool:
    return value.year == year and value.month == month
