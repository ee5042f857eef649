# -*- coding: utf-8 -*-
"""
Ledger Repository

Read and write access to the household ledger, scoped by budget id.
Every public method runs in its own session and commits before returning,
so each call is one atomic unit against the database.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import and_, case, delete, func, select, update
from sqlalchemy.orm import Session, sessionmaker

from chatledger.ledger.database import get_session_factory
from chatledger.ledger.models import (
    Account,
    AILog,
    Category,
    ChatLink,
    Goal,
    Group,
    IncomeSource,
    Member,
    MonthlyAllocation,
    Transaction,
)
from chatledger.ledger.types import (
    AccountBalance,
    AccountRef,
    CategoryMonthInfo,
    CategoryRef,
    CategorySpending,
    ChatMember,
    GoalRef,
    GroupRef,
    IncomeSourceRef,
    MonthSummary,
    ScheduledTransaction,
    UserContext,
)
from chatledger.shared.dates import month_bounds
from chatledger.shared.entity_matcher import select_default_account

logger = logging.getLogger(__name__)

_SCHEDULED_SUFFIX = re.compile(r"\s*\(agendado\)\s*$", re.IGNORECASE)


class LedgerRepository:
    def __init__(self, session_factory: Optional[sessionmaker[Session]] = None):
        self._session_factory = session_factory or get_session_factory()

    # ------------------------------------------------------------------
    # Chat linking / context
    # ------------------------------------------------------------------

    def find_chat_member(self, platform: str, chat_id: str) -> Optional[ChatMember]:
        with self._session_factory() as session:
            row = session.execute(
                select(Member.budget_id, Member.id)
                .join(ChatLink, ChatLink.member_id == Member.id)
                .where(ChatLink.platform == platform, ChatLink.chat_id == str(chat_id))
            ).first()
        if row is None:
            return None
        return ChatMember(budget_id=row[0], member_id=row[1])

    def load_user_context(self, budget_id: str, member_id: str, year: int, month: int) -> UserContext:
        """Build the per-message snapshot of a budget."""
        with self._session_factory() as session:
            accounts = session.scalars(
                select(Account).where(Account.budget_id == budget_id).order_by(Account.name)
            ).all()
            categories = session.execute(
                select(Category, Group.name)
                .join(Group, Category.group_id == Group.id)
                .where(Category.budget_id == budget_id, Category.is_archived.is_(False))
                .order_by(Group.display_order, Category.name)
            ).all()
            income_sources = session.scalars(
                select(IncomeSource)
                .where(IncomeSource.budget_id == budget_id, IncomeSource.is_active.is_(True))
                .order_by(IncomeSource.name)
            ).all()
            goals = session.scalars(
                select(Goal).where(Goal.budget_id == budget_id, Goal.is_archived.is_(False)).order_by(Goal.name)
            ).all()

        account_refs = [
            AccountRef(id=a.id, name=a.name, type=a.type, closing_day=a.closing_day) for a in accounts
        ]
        default_account = select_default_account(account_refs)

        return UserContext(
            budget_id=budget_id,
            member_id=member_id,
            current_year=year,
            current_month=month,
            default_account_id=default_account.id if default_account else None,
            categories=[
                CategoryRef(id=c.id, name=c.name, icon=c.icon, group_name=group_name)
                for c, group_name in categories
            ],
            income_sources=[IncomeSourceRef(id=s.id, name=s.name, type=s.type) for s in income_sources],
            goals=[
                GoalRef(
                    id=g.id,
                    name=g.name,
                    icon=g.icon,
                    target_amount=g.target_amount,
                    current_amount=g.current_amount or 0,
                )
                for g in goals
            ],
            accounts=account_refs,
            pending_transactions=self.list_pending_transactions(budget_id, year=year, month=month),
        )

    # ------------------------------------------------------------------
    # Pending (scheduled) transactions
    # ------------------------------------------------------------------

    def list_pending_transactions(
        self,
        budget_id: str,
        tx_type: Optional[str] = None,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> List[ScheduledTransaction]:
        """Pending rows of a budget, optionally restricted to one type and month."""
        stmt = (
            select(Transaction, Category.name, Category.icon, IncomeSource.name)
            .outerjoin(Category, Transaction.category_id == Category.id)
            .outerjoin(IncomeSource, Transaction.income_source_id == IncomeSource.id)
            .where(Transaction.budget_id == budget_id, Transaction.status == "pending")
        )
        if tx_type:
            stmt = stmt.where(Transaction.type == tx_type)
        else:
            stmt = stmt.where(Transaction.type.in_(("expense", "income")))
        if year is not None and month is not None:
            start, end = month_bounds(year, month)
            stmt = stmt.where(Transaction.date >= start, Transaction.date <= end)
        stmt = stmt.order_by(Transaction.date, Transaction.created_at, Transaction.id)

        with self._session_factory() as session:
            rows = session.execute(stmt).all()

        return [
            ScheduledTransaction(
                id=tx.id,
                type=tx.type,
                amount=tx.amount,
                date=tx.date,
                description=tx.description,
                category_id=tx.category_id,
                category_name=category_name,
                category_icon=category_icon,
                income_source_id=tx.income_source_id,
                income_source_name=source_name,
            )
            for tx, category_name, category_icon, source_name in rows
        ]

    # ------------------------------------------------------------------
    # Transaction writes
    # ------------------------------------------------------------------

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        with self._session_factory() as session:
            return session.get(Transaction, transaction_id)

    def insert_transaction(self, values: Dict[str, Any]) -> Transaction:
        with self._session_factory() as session, session.begin():
            transaction = Transaction(**values)
            session.add(transaction)
        return transaction

    def insert_transactions(self, rows: Iterable[Dict[str, Any]]) -> List[Transaction]:
        """Insert several rows in a single database transaction."""
        with self._session_factory() as session, session.begin():
            transactions = [Transaction(**values) for values in rows]
            session.add_all(transactions)
        return transactions

    def mark_transaction_paid(
        self,
        transaction_id: str,
        paid_on: datetime,
        amount: Optional[int] = None,
        description: Optional[str] = None,
        source: Optional[str] = None,
    ) -> Optional[Transaction]:
        """
        Transition a pending row to cleared.

        Returns:
            The updated row, or None when it is gone or no longer pending
        """
        with self._session_factory() as session, session.begin():
            transaction = session.get(Transaction, transaction_id)
            if transaction is None or transaction.status != "pending":
                return None
            transaction.status = "cleared"
            transaction.date = paid_on
            if amount is not None:
                transaction.amount = amount
            if description:
                transaction.description = description
            if transaction.description:
                transaction.description = _SCHEDULED_SUFFIX.sub("", transaction.description).strip() or None
            if source:
                transaction.source = source
        return transaction

    def delete_transaction_tree(self, transaction_id: str) -> Optional[Transaction]:
        """
        Delete a transaction and every installment that points to it.

        Returns:
            The deleted parent row (detached), or None when it did not exist
        """
        with self._session_factory() as session, session.begin():
            transaction = session.get(Transaction, transaction_id)
            if transaction is None:
                return None
            session.execute(delete(Transaction).where(Transaction.parent_transaction_id == transaction_id))
            session.delete(transaction)
        return transaction

    def delete_transaction(self, transaction_id: str) -> None:
        with self._session_factory() as session, session.begin():
            session.execute(delete(Transaction).where(Transaction.id == transaction_id))

    # ------------------------------------------------------------------
    # Categories / groups
    # ------------------------------------------------------------------

    def list_groups(self) -> List[GroupRef]:
        with self._session_factory() as session:
            groups = session.scalars(select(Group).order_by(Group.display_order, Group.name)).all()
        return [GroupRef(id=g.id, name=g.name, code=g.code) for g in groups]

    def create_category(self, budget_id: str, group_id: str, name: str, icon: str = "📁") -> CategoryRef:
        with self._session_factory() as session, session.begin():
            group = session.get(Group, group_id)
            category = Category(budget_id=budget_id, group_id=group_id, name=name, icon=icon)
            session.add(category)
            session.flush()
            ref = CategoryRef(id=category.id, name=category.name, icon=icon, group_name=group.name if group else None)
        return ref

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def month_summary(self, budget_id: str, year: int, month: int) -> MonthSummary:
        start, end = month_bounds(year, month)
        cleared_in_month = and_(
            Transaction.budget_id == budget_id,
            Transaction.status == "cleared",
            Transaction.date >= start,
            Transaction.date <= end,
        )
        with self._session_factory() as session:
            total_income = session.scalar(
                select(func.coalesce(func.sum(Transaction.amount), 0)).where(
                    cleared_in_month, Transaction.type == "income"
                )
            )
            spending = session.execute(
                select(
                    Transaction.category_id,
                    Category.name,
                    Category.icon,
                    func.sum(Transaction.amount).label("spent"),
                )
                .outerjoin(Category, Transaction.category_id == Category.id)
                .where(cleared_in_month, Transaction.type == "expense")
                .group_by(Transaction.category_id, Category.name, Category.icon)
            ).all()

        top_categories = sorted(
            (
                CategorySpending(
                    category_id=category_id,
                    name=name or "Sem categoria",
                    icon=icon,
                    spent=int(spent or 0),
                )
                for category_id, name, icon, spent in spending
            ),
            key=lambda c: c.spent,
            reverse=True,
        )
        return MonthSummary(
            total_income=int(total_income or 0),
            total_expenses=sum(c.spent for c in top_categories),
            top_categories=top_categories,
        )

    def category_month_info(self, budget_id: str, category_id: str, year: int, month: int) -> CategoryMonthInfo:
        start, end = month_bounds(year, month)
        with self._session_factory() as session:
            allocated = session.scalar(
                select(func.coalesce(func.sum(MonthlyAllocation.allocated), 0)).where(
                    MonthlyAllocation.budget_id == budget_id,
                    MonthlyAllocation.category_id == category_id,
                    MonthlyAllocation.year == year,
                    MonthlyAllocation.month == month,
                )
            )
            spent = session.scalar(
                select(func.coalesce(func.sum(Transaction.amount), 0)).where(
                    Transaction.budget_id == budget_id,
                    Transaction.category_id == category_id,
                    Transaction.type == "expense",
                    Transaction.status == "cleared",
                    Transaction.date >= start,
                    Transaction.date <= end,
                )
            )
        return CategoryMonthInfo(allocated=int(allocated or 0), spent=int(spent or 0))

    def account_balances(self, budget_id: str, account_id: Optional[str] = None) -> List[AccountBalance]:
        """Opening balance plus every cleared movement of each account."""
        signed_amount = case(
            (Transaction.type == "income", Transaction.amount),
            (Transaction.type == "expense", -Transaction.amount),
            else_=0,
        )
        with self._session_factory() as session:
            stmt = select(Account).where(Account.budget_id == budget_id).order_by(Account.name)
            if account_id:
                stmt = stmt.where(Account.id == account_id)
            accounts = session.scalars(stmt).all()

            balances: List[AccountBalance] = []
            for account in accounts:
                movements = session.scalar(
                    select(func.coalesce(func.sum(signed_amount), 0)).where(
                        Transaction.account_id == account.id, Transaction.status == "cleared"
                    )
                )
                transfers_out = session.scalar(
                    select(func.coalesce(func.sum(Transaction.amount), 0)).where(
                        Transaction.account_id == account.id,
                        Transaction.type == "transfer",
                        Transaction.status == "cleared",
                    )
                )
                transfers_in = session.scalar(
                    select(func.coalesce(func.sum(Transaction.amount), 0)).where(
                        Transaction.to_account_id == account.id,
                        Transaction.type == "transfer",
                        Transaction.status == "cleared",
                    )
                )
                balances.append(
                    AccountBalance(
                        id=account.id,
                        name=account.name,
                        type=account.type,
                        balance=account.opening_balance + int(movements) - int(transfers_out) + int(transfers_in),
                        credit_limit=account.credit_limit,
                        closing_day=account.closing_day,
                        due_day=account.due_day,
                    )
                )
        return balances

    # ------------------------------------------------------------------
    # AI audit log
    # ------------------------------------------------------------------

    def create_ai_log(self, values: Dict[str, Any]) -> str:
        with self._session_factory() as session, session.begin():
            log = AILog(**values)
            session.add(log)
            session.flush()
            log_id = log.id
        return log_id

    def update_ai_log(self, log_id: str, **values: Any) -> bool:
        with self._session_factory() as session, session.begin():
            result = session.execute(update(AILog).where(AILog.id == log_id).values(**values))
        return bool(result.rowcount)

    def get_ai_log(self, log_id: str) -> Optional[AILog]:
        with self._session_factory() as session:
            return session.get(AILog, log_id)
