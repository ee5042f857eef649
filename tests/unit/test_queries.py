# Test read-only queries and message formatting

from sqlalchemy import insert

from chatledger.engine.queries import QueryExecutor
from chatledger.ledger.models import MonthlyAllocation, Transaction
from chatledger.nlu.types import Intent, QueryData
from chatledger.shared.dates import local_today
from chatledger.shared.formatters import format_currency, month_label, progress_bar
from tests.test_utils import at_noon


def _context(ledger):
    today = local_today()
    return ledger.repository.load_user_context(ledger.budget_id, ledger.member_id, today.year, today.month)


def _add_cleared(ledger, **values):
    today = local_today()
    with ledger.session_factory() as session, session.begin():
        session.execute(
            insert(Transaction).values(
                id=values.pop("id"),
                budget_id=ledger.budget_id,
                status="cleared",
                date=at_noon(today.year, today.month, 1),
                **values,
            )
        )


class TestFormatters:
    def test_format_currency(self):
        assert format_currency(5000) == "R$ 50,00"
        assert format_currency(123456) == "R$ 1.234,56"
        assert format_currency(-5000) == "-R$ 50,00"

    def test_month_label_and_progress(self):
        assert month_label(2026, 3).endswith("/2026")
        assert progress_bar(30) == "███" + "░" * 7
        assert progress_bar(100) == "█" * 10
        assert progress_bar(0) == "░" * 10


class TestQueryExecutor:
    def test_balance(self, ledger):
        _add_cleared(ledger, id="t1", type="income", amount=500000, account_id=ledger.checking_id)
        _add_cleared(ledger, id="t2", type="expense", amount=5000, category_id=ledger.mercado_id)
        _add_cleared(ledger, id="t3", type="expense", amount=19500, category_id=ledger.energia_id)

        reply = QueryExecutor(ledger.repository).run(Intent.QUERY_BALANCE, None, _context(ledger))

        assert "Resumo de" in reply
        assert "Receitas: R$ 5.000,00" in reply
        assert "Despesas: R$ 245,00" in reply
        assert reply.index("Energia") < reply.index("Mercado")

    def test_pending_rows_do_not_count(self, ledger):
        today = local_today()
        ledger.add_pending(type="expense", amount=19500, category_id=ledger.energia_id, date=at_noon(today.year, today.month, 1))

        reply = QueryExecutor(ledger.repository).run(Intent.QUERY_BALANCE, None, _context(ledger))

        assert "Despesas: R$ 0,00" in reply

    def test_category_over_budget(self, ledger):
        today = local_today()
        with ledger.session_factory() as session, session.begin():
            session.add(MonthlyAllocation(
                budget_id=ledger.budget_id,
                category_id=ledger.mercado_id,
                year=today.year,
                month=today.month,
                allocated=10000,
            ))
        _add_cleared(ledger, id="t1", type="expense", amount=15000, category_id=ledger.mercado_id)

        reply = QueryExecutor(ledger.repository).run(
            Intent.QUERY_CATEGORY, QueryData(query_type="category", category_name="mercado"), _context(ledger)
        )

        assert "🔴 Usado: 150%" in reply
        assert "ultrapassou o limite em R$ 50,00" in reply

    def test_unknown_category_lists_available(self, ledger):
        reply = QueryExecutor(ledger.repository).run(
            Intent.QUERY_CATEGORY, QueryData(query_type="category", category_name="pets"), _context(ledger)
        )
        assert "Não encontrei a categoria" in reply
        assert "- Mercado" in reply

    def test_goal(self, ledger):
        reply = QueryExecutor(ledger.repository).run(
            Intent.QUERY_GOAL, QueryData(query_type="goal", goal_name="viagem"), _context(ledger)
        )
        assert "Viagem" in reply
        assert "25%" in reply
        assert "Falta: R$ 7.500,00" in reply

    def test_credit_card_account(self, ledger):
        _add_cleared(ledger, id="t1", type="expense", amount=120000, account_id=ledger.card_id)

        reply = QueryExecutor(ledger.repository).run(
            Intent.QUERY_ACCOUNT, QueryData(query_type="account", account_name="nubank"), _context(ledger)
        )

        assert "Saldo: -R$ 1.200,00" in reply
        assert "Usado: R$ 1.200,00 (24%)" in reply
        assert "Disponível: R$ 3.800,00" in reply
        assert "Fechamento: dia 15" in reply

    def test_transfers_move_balances(self, ledger):
        _add_cleared(
            ledger, id="t1", type="transfer", amount=30000,
            account_id=ledger.checking_id, to_account_id=ledger.card_id,
        )

        balances = {b.name: b.balance for b in ledger.repository.account_balances(ledger.budget_id)}

        assert balances["Conta Corrente"] == 100000 - 30000
        assert balances["Nubank"] == 30000
