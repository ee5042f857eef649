from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass(frozen=True)
class CategoryRef:
    id: str
    name: str
    icon: Optional[str] = None
    group_name: Optional[str] = None


@dataclass(frozen=True)
class GroupRef:
    id: str
    name: str
    code: str


@dataclass(frozen=True)
class IncomeSourceRef:
    id: str
    name: str
    type: str


@dataclass(frozen=True)
class GoalRef:
    id: str
    name: str
    target_amount: int
    current_amount: int = 0
    icon: Optional[str] = None


@dataclass(frozen=True)
class AccountRef:
    id: str
    name: str
    type: str
    closing_day: Optional[int] = None


@dataclass(frozen=True)
class ScheduledTransaction:
    """A pending ledger row waiting to be confirmed."""

    id: str
    type: str  # "expense" | "income"
    amount: int
    date: datetime
    description: Optional[str] = None
    category_id: Optional[str] = None
    category_name: Optional[str] = None
    category_icon: Optional[str] = None
    income_source_id: Optional[str] = None
    income_source_name: Optional[str] = None

    @property
    def display_name(self) -> Optional[str]:
        return self.category_name if self.type == "expense" else self.income_source_name


@dataclass
class UserContext:
    """
    Per-message snapshot of the user's budget.

    Rebuilt for every inbound message; never cached across turns.
    """

    budget_id: str
    member_id: str
    current_year: int
    current_month: int
    default_account_id: Optional[str] = None
    categories: List[CategoryRef] = field(default_factory=list)
    income_sources: List[IncomeSourceRef] = field(default_factory=list)
    goals: List[GoalRef] = field(default_factory=list)
    accounts: List[AccountRef] = field(default_factory=list)
    pending_transactions: List[ScheduledTransaction] = field(default_factory=list)

    def find_account(self, account_id: Optional[str]) -> Optional[AccountRef]:
        return next((a for a in self.accounts if a.id == account_id), None)

    def find_category(self, category_id: Optional[str]) -> Optional[CategoryRef]:
        return next((c for c in self.categories if c.id == category_id), None)

    def fingerprint(self) -> dict:
        """Simplified snapshot stored with each audit entry."""
        return {
            "categories": len(self.categories),
            "income_sources": len(self.income_sources),
            "goals": len(self.goals),
            "accounts": len(self.accounts),
            "pending_transactions": len(self.pending_transactions),
            "has_default_account": self.default_account_id is not None,
        }


@dataclass(frozen=True)
class CategorySpending:
    category_id: Optional[str]
    name: str
    icon: Optional[str]
    spent: int


@dataclass(frozen=True)
class MonthSummary:
    total_income: int
    total_expenses: int
    top_categories: List[CategorySpending] = field(default_factory=list)

    @property
    def balance(self) -> int:
        return self.total_income - self.total_expenses


@dataclass(frozen=True)
class CategoryMonthInfo:
    allocated: int
    spent: int

    @property
    def remaining(self) -> int:
        return self.allocated - self.spent

    @property
    def percent_used(self) -> int:
        if self.allocated <= 0:
            return 0
        return round(self.spent / self.allocated * 100)


@dataclass(frozen=True)
class AccountBalance:
    id: str
    name: str
    type: str
    balance: int
    credit_limit: Optional[int] = None
    closing_day: Optional[int] = None
    due_day: Optional[int] = None


@dataclass(frozen=True)
class ChatMember:
    budget_id: str
    member_id: str
