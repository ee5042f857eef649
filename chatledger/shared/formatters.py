# -*- coding: utf-8 -*-
"""
Message formatting helpers (pt-BR).
"""

from __future__ import annotations

from datetime import date

MONTH_NAMES = [
    "janeiro", "fevereiro", "março", "abril", "maio", "junho",
    "julho", "agosto", "setembro", "outubro", "novembro", "dezembro",
]

ACCOUNT_ICONS = {
    "checking": "🏦",
    "savings": "🐷",
    "credit_card": "💳",
    "cash": "💵",
    "investment": "📈",
    "benefit": "🍽️",
}


def format_currency(amount: int) -> str:
    """
    Format minor units as BRL.

    Examples:
        >>> format_currency(123456)
        'R$ 1.234,56'
        >>> format_currency(-5000)
        '-R$ 50,00'
    """
    sign = "-" if amount < 0 else ""
    reais, cents = divmod(abs(int(amount)), 100)
    grouped = f"{reais:,}".replace(",", ".")
    return f"{sign}R$ {grouped},{cents:02d}"


def month_label(year: int, month: int) -> str:
    return f"{MONTH_NAMES[month - 1]}/{year}"


def format_date(value: date) -> str:
    return value.strftime("%d/%m/%Y")


def account_icon(account_type: str) -> str:
    return ACCOUNT_ICONS.get(account_type, "💰")


def progress_bar(percent: int, blocks: int = 10) -> str:
    filled = max(0, min(blocks, round(percent / (100 / blocks))))
    return "█" * filled + "░" * (blocks - filled)
