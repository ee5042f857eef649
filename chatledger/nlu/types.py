from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Union

from chatledger.nlu.thresholds import HIGH_CONFIDENCE


class Intent(Enum):
    REGISTER_EXPENSE = "REGISTER_EXPENSE"
    REGISTER_INCOME = "REGISTER_INCOME"
    TRANSFER = "TRANSFER"
    QUERY_BALANCE = "QUERY_BALANCE"
    QUERY_CATEGORY = "QUERY_CATEGORY"
    QUERY_GOAL = "QUERY_GOAL"
    QUERY_ACCOUNT = "QUERY_ACCOUNT"
    GREETING = "GREETING"
    UNKNOWN = "UNKNOWN"

    @property
    def is_query(self) -> bool:
        return self.name.startswith("QUERY_")


@dataclass(frozen=True)
class ExpenseData:
    amount: Optional[int] = None  # minor units; None means "not stated"
    description: Optional[str] = None
    category_hint: Optional[str] = None
    account_hint: Optional[str] = None
    is_installment: bool = False
    total_installments: Optional[int] = None
    date: Optional[datetime] = None


@dataclass(frozen=True)
class IncomeData:
    amount: Optional[int] = None
    description: Optional[str] = None
    income_source_hint: Optional[str] = None
    account_hint: Optional[str] = None
    date: Optional[datetime] = None


@dataclass(frozen=True)
class TransferData:
    amount: Optional[int] = None
    from_account_hint: Optional[str] = None
    to_account_hint: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class QueryData:
    query_type: str = "balance"  # balance | category | goal | account
    category_name: Optional[str] = None
    goal_name: Optional[str] = None
    account_name: Optional[str] = None
    period: str = "month"


ExtractedData = Union[ExpenseData, IncomeData, TransferData, QueryData]


@dataclass(frozen=True)
class AIResponse:
    intent: Intent
    confidence: float
    data: Optional[ExtractedData] = None

    @property
    def requires_confirmation(self) -> bool:
        return self.confidence < HIGH_CONFIDENCE

    def to_dict(self) -> dict:
        """JSON-safe representation (stored in the audit log)."""
        data = None
        if self.data is not None:
            data = {
                key: value.isoformat() if isinstance(value, datetime) else value
                for key, value in asdict(self.data).items()
            }
        return {
            "intent": self.intent.value,
            "confidence": self.confidence,
            "data": data,
            "requires_confirmation": self.requires_confirmation,
        }
