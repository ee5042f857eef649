# -*- coding: utf-8 -*-
"""
Query Executor

Answers the read-only intents (balance, category, goal, account) with a
formatted message. Queries never change the conversation state.
"""

import logging
from typing import Optional

from chatledger.ledger.repository import LedgerRepository
from chatledger.ledger.types import UserContext
from chatledger.nlu.types import Intent, QueryData
from chatledger.shared.entity_matcher import match_account, match_category, match_goal
from chatledger.shared.formatters import account_icon, format_currency, month_label, progress_bar

logger = logging.getLogger(__name__)

TOP_CATEGORIES = 5


class QueryExecutor:
    def __init__(self, repository: LedgerRepository):
        self.repository = repository

    def run(self, intent: Intent, data: Optional[QueryData], context: UserContext) -> str:
        """Execute a query intent and return the reply text."""
        data = data or QueryData()
        logger.info(f"Running query {intent.value} for budget {context.budget_id}")

        if intent == Intent.QUERY_CATEGORY:
            return self.category(data.category_name, context)
        if intent == Intent.QUERY_GOAL:
            return self.goal(data.goal_name, context)
        if intent == Intent.QUERY_ACCOUNT:
            return self.account(data.account_name, context)
        return self.balance(context)

    def balance(self, context: UserContext) -> str:
        year, month = context.current_year, context.current_month
        summary = self.repository.month_summary(context.budget_id, year, month)

        sign = "+" if summary.balance >= 0 else ""
        message = f"<b>Resumo de {month_label(year, month)}</b>\n\n"
        message += f"<b>Saldo:</b> {sign}{format_currency(summary.balance)}\n"
        message += f"Receitas: {format_currency(summary.total_income)}\n"
        message += f"Despesas: {format_currency(summary.total_expenses)}\n"

        if summary.top_categories:
            message += "\n<b>Maiores gastos:</b>\n"
            for category in summary.top_categories[:TOP_CATEGORIES]:
                message += f"{category.icon or '📁'} {category.name}: {format_currency(category.spent)}\n"

        return message

    def category(self, category_name: Optional[str], context: UserContext) -> str:
        if not category_name:
            return "Qual categoria você gostaria de consultar?"

        match = match_category(category_name, context.categories)
        if match is None:
            return (
                f"Não encontrei a categoria \"{category_name}\".\n\n"
                "Categorias disponíveis:\n"
                + "\n".join(f"- {c.name}" for c in context.categories)
            )

        category = match.entity
        info = self.repository.category_month_info(
            context.budget_id, category.id, context.current_year, context.current_month
        )
        percent = info.percent_used
        if percent > 100:
            status = "🔴"
        elif percent > 80:
            status = "🟡"
        else:
            status = "✅"

        message = f"{category.icon or '📁'} <b>{category.name}</b> - {month_label(context.current_year, context.current_month)}\n\n"
        message += f"{status} Usado: {percent}%\n"
        message += f"Planejado: {format_currency(info.allocated)}\n"
        message += f"Gasto: {format_currency(info.spent)}\n"
        message += f"Restante: {format_currency(info.remaining)}\n"
        if info.remaining < 0:
            message += f"\nVocê ultrapassou o limite em {format_currency(abs(info.remaining))}"
        return message

    def goal(self, goal_name: Optional[str], context: UserContext) -> str:
        if not context.goals:
            return "Você ainda não tem metas cadastradas."

        if not goal_name:
            message = "<b>Suas Metas</b>\n\n"
            for goal in context.goals:
                progress = _percent(goal.current_amount, goal.target_amount)
                message += f"{goal.icon or '🎯'} <b>{goal.name}</b>\n"
                message += f"Progresso: {progress}%\n"
                message += f"Atual: {format_currency(goal.current_amount)} / {format_currency(goal.target_amount)}\n"
                message += f"Falta: {format_currency(max(0, goal.target_amount - goal.current_amount))}\n\n"
            return message

        match = match_goal(goal_name, context.goals)
        if match is None:
            return (
                f"Não encontrei a meta \"{goal_name}\".\n\n"
                "Suas metas:\n"
                + "\n".join(f"- {g.name}" for g in context.goals)
            )

        goal = match.entity
        progress = _percent(goal.current_amount, goal.target_amount)
        message = f"{goal.icon or '🎯'} <b>{goal.name}</b>\n\n"
        message += f"{progress_bar(progress)} {progress}%\n\n"
        message += f"Valor atual: {format_currency(goal.current_amount)}\n"
        message += f"Meta: {format_currency(goal.target_amount)}\n"
        message += f"Falta: {format_currency(max(0, goal.target_amount - goal.current_amount))}\n"
        return message

    def account(self, account_name: Optional[str], context: UserContext) -> str:
        if not context.accounts:
            return "Você ainda não tem contas cadastradas."

        if not account_name:
            message = "<b>Suas Contas</b>\n\n"
            for account in self.repository.account_balances(context.budget_id):
                marker = "" if account.balance >= 0 else "🔴 "
                message += f"{account_icon(account.type)} <b>{account.name}</b>\n"
                message += f"{marker}Saldo: {format_currency(account.balance)}\n"
                if account.type == "credit_card" and account.credit_limit:
                    used = max(0, -account.balance)
                    message += f"Limite disponível: {format_currency(account.credit_limit - used)}\n"
                message += "\n"
            return message

        match = match_account(account_name, context.accounts)
        if match is None:
            return (
                f"Não encontrei a conta \"{account_name}\".\n\n"
                "Suas contas:\n"
                + "\n".join(f"- {a.name}" for a in context.accounts)
            )

        balances = self.repository.account_balances(context.budget_id, match.entity.id)
        if not balances:
            return "Conta não encontrada."
        account = balances[0]

        marker = "✅" if account.balance >= 0 else "🔴"
        message = f"{account_icon(account.type)} <b>{account.name}</b>\n\n"
        message += f"{marker} Saldo: {format_currency(account.balance)}\n"

        if account.type == "credit_card":
            if account.credit_limit:
                used = max(0, -account.balance)
                message += f"\nLimite: {format_currency(account.credit_limit)}\n"
                message += f"Usado: {format_currency(used)} ({_percent(used, account.credit_limit)}%)\n"
                message += f"Disponível: {format_currency(account.credit_limit - used)}\n"
            if account.closing_day:
                message += f"\nFechamento: dia {account.closing_day}"
            if account.due_day:
                message += f"\nVencimento: dia {account.due_day}"
        return message


def _percent(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return round(part / whole * 100)
