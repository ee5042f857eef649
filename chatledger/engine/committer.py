# -*- coding: utf-8 -*-
"""
Transaction Committer

The single choke point for every ledger mutation made from a chat:
    - new expense / income / transfer rows
    - installment purchases (parent row + one batched insert of the rest)
    - clearing a scheduled (pending) row
    - undo (children first, then the parent)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from chatledger.engine.state import Draft, ExpenseDraft, IncomeDraft, TransferDraft
from chatledger.errors import ContractError, ErrorCode
from chatledger.ledger.models import Transaction
from chatledger.ledger.repository import LedgerRepository
from chatledger.ledger.types import UserContext
from chatledger.shared.dates import today_noon_utc
from chatledger.shared.installments import Installment, expand_installments
from chatledger.shared.text_utils import capitalize_first

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommitResult:
    transaction_id: str
    amount: int
    description: Optional[str] = None
    installments: List[Installment] = field(default_factory=list)
    cleared_scheduled: bool = False


class TransactionCommitter:
    def __init__(self, repository: LedgerRepository, source: str):
        self.repository = repository
        self.source = source

    def commit(
        self,
        draft: Draft,
        context: UserContext,
        scheduled_transaction_id: Optional[str] = None,
    ) -> Optional[CommitResult]:
        """
        Apply a confirmed draft to the ledger.

        Args:
            draft: expense, income or transfer draft
            context: budget snapshot of the member committing
            scheduled_transaction_id: pending row to clear instead of inserting

        Returns:
            CommitResult, or None when the scheduled row was already resolved

        Raises:
            ContractError: incomplete draft or invalid installment count
        """
        if scheduled_transaction_id:
            return self.mark_scheduled_paid(scheduled_transaction_id, draft)
        if isinstance(draft, ExpenseDraft):
            return self.commit_expense(draft, context)
        if isinstance(draft, IncomeDraft):
            return self.commit_income(draft, context)
        if isinstance(draft, TransferDraft):
            return self.commit_transfer(draft, context)
        raise ContractError.from_code(ErrorCode.INCOMPLETE_DRAFT)

    def _base_values(self, context: UserContext, **values: Any) -> Dict[str, Any]:
        return {
            "budget_id": context.budget_id,
            "member_id": context.member_id,
            "status": "cleared",
            "source": self.source,
            **values,
        }

    def commit_expense(self, draft: ExpenseDraft, context: UserContext) -> CommitResult:
        if not draft.category_id or not draft.account_id or draft.amount is None:
            raise ContractError.from_code(ErrorCode.INCOMPLETE_DRAFT)

        description = capitalize_first(draft.description)
        if draft.is_installment and draft.total_installments:
            return self._commit_installments(draft, context, description)

        transaction = self.repository.insert_transaction(
            self._base_values(
                context,
                type="expense",
                account_id=draft.account_id,
                category_id=draft.category_id,
                amount=draft.amount,
                description=description,
                date=draft.date or today_noon_utc(),
            )
        )
        logger.info(f"Expense committed: {transaction.id} ({draft.amount})")
        return CommitResult(transaction_id=transaction.id, amount=draft.amount, description=description)

    def _commit_installments(
        self, draft: ExpenseDraft, context: UserContext, description: Optional[str]
    ) -> CommitResult:
        account = context.find_account(draft.account_id)
        closing_day = account.closing_day if account and account.type == "credit_card" else None
        installments = expand_installments(
            draft.amount,
            draft.total_installments,
            draft.date or today_noon_utc(),
            closing_day,
        )

        def values(installment: Installment, parent_id: Optional[str] = None) -> Dict[str, Any]:
            return self._base_values(
                context,
                type="expense",
                account_id=draft.account_id,
                category_id=draft.category_id,
                amount=installment.amount,
                description=description,
                date=installment.date,
                is_installment=True,
                installment_number=installment.number,
                total_installments=draft.total_installments,
                parent_transaction_id=parent_id,
            )

        parent = self.repository.insert_transaction(values(installments[0]))
        try:
            self.repository.insert_transactions(values(i, parent.id) for i in installments[1:])
        except Exception:
            logger.error(f"Installment batch failed, removing parent {parent.id}")
            self.repository.delete_transaction(parent.id)
            raise

        logger.info(f"Installment purchase committed: {parent.id} ({len(installments)}x {installments[0].amount})")
        return CommitResult(
            transaction_id=parent.id,
            amount=draft.amount,
            description=description,
            installments=installments,
        )

    def commit_income(self, draft: IncomeDraft, context: UserContext) -> CommitResult:
        account_id = draft.account_id or context.default_account_id
        if not account_id or draft.amount is None:
            raise ContractError.from_code(ErrorCode.INCOMPLETE_DRAFT)

        description = capitalize_first(draft.description)
        transaction = self.repository.insert_transaction(
            self._base_values(
                context,
                type="income",
                account_id=account_id,
                income_source_id=draft.income_source_id,
                amount=draft.amount,
                description=description,
                date=draft.date or today_noon_utc(),
            )
        )
        logger.info(f"Income committed: {transaction.id} ({draft.amount})")
        return CommitResult(transaction_id=transaction.id, amount=draft.amount, description=description)

    def commit_transfer(self, draft: TransferDraft, context: UserContext) -> CommitResult:
        if draft.from_account_id == draft.to_account_id:
            raise ContractError.from_code(ErrorCode.INCOMPLETE_DRAFT)

        description = capitalize_first(draft.description) or "Transferência via chat"
        transaction = self.repository.insert_transaction(
            self._base_values(
                context,
                type="transfer",
                account_id=draft.from_account_id,
                to_account_id=draft.to_account_id,
                amount=draft.amount,
                description=description,
                date=today_noon_utc(),
            )
        )
        logger.info(f"Transfer committed: {transaction.id} ({draft.amount})")
        return CommitResult(transaction_id=transaction.id, amount=draft.amount, description=description)

    def mark_scheduled_paid(self, transaction_id: str, draft: Draft) -> Optional[CommitResult]:
        """Clear a pending row, dated today, with the draft's amount and description."""
        transaction = self.repository.mark_transaction_paid(
            transaction_id,
            paid_on=today_noon_utc(),
            amount=draft.amount,
            description=capitalize_first(draft.description),
            source=self.source,
        )
        if transaction is None:
            logger.warning(f"Scheduled transaction {transaction_id} is gone or already cleared")
            return None

        logger.info(f"Scheduled transaction cleared: {transaction_id}")
        return CommitResult(
            transaction_id=transaction.id,
            amount=transaction.amount,
            description=transaction.description,
            cleared_scheduled=True,
        )

    def undo(self, transaction_id: Optional[str]) -> Optional[Transaction]:
        """Delete a committed transaction (and its installments); None when nothing was deleted."""
        if not transaction_id:
            return None
        deleted = self.repository.delete_transaction_tree(transaction_id)
        if deleted is None:
            logger.info(f"Undo target {transaction_id} not found")
        else:
            logger.info(f"Transaction undone: {transaction_id}")
        return deleted
