# Test confidence routing and scheduled-transaction scoring

from datetime import datetime

import pytest

from chatledger.engine.router import (
    AUTOMATION_RANK,
    Outcome,
    route_expense,
    route_income,
)
from chatledger.engine.scheduled_resolver import amount_proximity, score_by_amount, score_by_hint
from chatledger.ledger.types import CategoryRef, IncomeSourceRef, ScheduledTransaction
from chatledger.shared.entity_matcher import MatchCandidate

MERCADO = CategoryRef(id="c1", name="Mercado")
SALARIO = IncomeSourceRef(id="s1", name="Salário", type="salary")


def _scheduled(confidence: float) -> MatchCandidate:
    tx = ScheduledTransaction(id="t1", type="expense", amount=19500, date=datetime(2026, 3, 10, 12))
    return MatchCandidate(tx, confidence)


def _expense(tx_id, amount, category_id=None, description=None, date=datetime(2026, 3, 10, 12), category_name=None):
    return ScheduledTransaction(
        id=tx_id,
        type="expense",
        amount=amount,
        date=date,
        description=description,
        category_id=category_id,
        category_name=category_name,
    )


def _income(tx_id, amount, source_id=None, description=None, source_name=None):
    return ScheduledTransaction(
        id=tx_id,
        type="income",
        amount=amount,
        date=datetime(2026, 3, 5, 12),
        description=description,
        income_source_id=source_id,
        income_source_name=source_name,
    )


class TestRouteExpense:
    def test_high_confidence_auto_commits(self):
        decision = route_expense(0.95, 5000, MatchCandidate(MERCADO, 1.0), "mercado")
        assert decision.outcome == Outcome.AUTO_COMMIT
        assert decision.combined_confidence == pytest.approx(0.95)

    def test_scheduled_match_forces_confirmation(self):
        decision = route_expense(0.95, 19500, MatchCandidate(MERCADO, 1.0), "mercado", _scheduled(0.9))
        assert decision.outcome == Outcome.CONFIRM
        assert decision.scheduled_transaction.id == "t1"

    def test_weak_scheduled_match_is_ignored(self):
        decision = route_expense(0.95, 19500, MatchCandidate(MERCADO, 1.0), "mercado", _scheduled(0.45))
        assert decision.outcome == Outcome.AUTO_COMMIT
        assert decision.scheduled_transaction is None

    def test_medium_confidence_confirms(self):
        decision = route_expense(0.8, 5000, MatchCandidate(MERCADO, 0.8), "mercado")
        assert decision.outcome == Outcome.CONFIRM
        assert decision.combined_confidence == pytest.approx(0.64)

    def test_low_confidence_asks(self):
        decision = route_expense(0.7, 5000, MatchCandidate(MERCADO, 0.7), "mercado")
        assert decision.outcome == Outcome.ASK_ENTITY

    def test_unknown_category_with_confident_intent_offers_creation(self):
        assert route_expense(0.9, 12000, None, "academia").outcome == Outcome.CREATE_CATEGORY

    def test_unknown_category_with_weak_intent_asks(self):
        assert route_expense(0.8, 12000, None, "academia").outcome == Outcome.ASK_ENTITY
        assert route_expense(0.95, 12000, None, None).outcome == Outcome.ASK_ENTITY

    def test_no_amount_confirms_scheduled(self):
        decision = route_expense(0.9, None, MatchCandidate(MERCADO, 0.7), "luz", _scheduled(0.9))
        assert decision.outcome == Outcome.CONFIRM
        assert decision.scheduled_transaction.id == "t1"

    def test_no_amount_without_scheduled_asks_amount(self):
        assert route_expense(0.99, None, MatchCandidate(MERCADO, 1.0), "mercado").outcome == Outcome.ASK_AMOUNT

    @pytest.mark.parametrize("match_confidence", [0.6, 0.7, 0.8, 1.0])
    def test_automation_is_monotonic_in_intent_confidence(self, match_confidence):
        ranks = [
            AUTOMATION_RANK[route_expense(c / 100, 5000, MatchCandidate(MERCADO, match_confidence), "x").outcome]
            for c in range(0, 101, 5)
        ]
        assert ranks == sorted(ranks)

    @pytest.mark.parametrize("intent_confidence", [0.6, 0.75, 0.9, 1.0])
    def test_automation_is_monotonic_in_match_confidence(self, intent_confidence):
        ranks = [
            AUTOMATION_RANK[route_expense(intent_confidence, 5000, MatchCandidate(MERCADO, m / 100), "x").outcome]
            for m in range(60, 101, 5)
        ]
        assert ranks == sorted(ranks)


class TestRouteIncome:
    def test_matched_source_auto_commits(self):
        assert route_income(0.95, 500000, MatchCandidate(SALARIO, 1.0)).outcome == Outcome.AUTO_COMMIT

    def test_unmatched_source_still_registers(self):
        decision = route_income(0.95, 500000, None)
        assert decision.outcome == Outcome.CONFIRM
        assert decision.combined_confidence == pytest.approx(0.665)

    def test_no_amount_without_scheduled(self):
        assert route_income(0.95, None, MatchCandidate(SALARIO, 1.0)).outcome == Outcome.ASK_AMOUNT

    @pytest.mark.parametrize("match_confidence", [0.6, 0.7, 0.8, 1.0])
    def test_automation_is_monotonic_in_intent_confidence(self, match_confidence):
        ranks = [
            AUTOMATION_RANK[route_income(c / 100, 500000, MatchCandidate(SALARIO, match_confidence)).outcome]
            for c in range(0, 101, 5)
        ]
        assert ranks == sorted(ranks)

    @pytest.mark.parametrize("intent_confidence", [0.6, 0.75, 0.9, 1.0])
    def test_automation_is_monotonic_in_match_confidence(self, intent_confidence):
        ranks = [
            AUTOMATION_RANK[route_income(intent_confidence, 500000, MatchCandidate(SALARIO, m / 100)).outcome]
            for m in range(60, 101, 5)
        ]
        assert ranks == sorted(ranks)


class TestAmountScoring:
    def test_amount_proximity(self):
        assert amount_proximity(20000, 20000) == pytest.approx(0.4)
        assert amount_proximity(18000, 20000) == pytest.approx(0.4 * (1 - 2000 / 6000))
        assert amount_proximity(26000, 20000) == pytest.approx(0.0)
        assert amount_proximity(30000, 20000) == 0.0

    def test_category_and_exact_amount(self):
        match = score_by_amount([_expense("t1", 19500, "c-energia")], "c-energia", 19500, "expense")
        assert match.entity.id == "t1"
        assert match.confidence == pytest.approx(0.9)

    def test_amount_alone_is_not_enough(self):
        assert score_by_amount([_expense("t1", 19500)], "c-energia", 19500, "expense") is None

    def test_amount_too_far(self):
        assert score_by_amount([_expense("t1", 10000, "c-energia")], "c-energia", 19500, "expense") is None

    def test_income_weight(self):
        match = score_by_amount([_income("t1", 500000, "s1")], "s1", 480000, "income")
        assert match.confidence == pytest.approx(0.7 + 0.4 * (1 - 20000 / 150000))

    def test_other_type_is_skipped(self):
        assert score_by_amount([_income("t1", 19500, "c-energia")], "c-energia", 19500, "expense") is None

    def test_first_seen_wins_ties(self):
        rows = [_expense("t1", 19500, "c1"), _expense("t2", 19500, "c1")]
        assert score_by_amount(rows, "c1", 19500, "expense").entity.id == "t1"

    def test_closer_amount_wins(self):
        rows = [_expense("t1", 21000, "c1"), _expense("t2", 19600, "c1")]
        assert score_by_amount(rows, "c1", 19500, "expense").entity.id == "t2"


class TestHintScoring:
    def test_category_in_current_month(self):
        row = _expense("t1", 19500, "c-energia", "Conta de luz (agendado)", category_name="Energia")
        match = score_by_hint([row], "c-energia", "luz", 2026, 3, "expense")
        assert match.entity.id == "t1"
        assert match.confidence == pytest.approx(0.9)

    def test_description_overlap_alone_is_not_enough(self):
        row = _expense("t1", 12000, None, "Internet fibra", date=datetime(2026, 1, 10, 12))
        assert score_by_hint([row], None, "internet fibra", 2026, 3, "expense") is None

    def test_description_overlap_in_current_month(self):
        row = _expense("t1", 12000, None, "Internet fibra")
        match = score_by_hint([row], None, "internet fibra", 2026, 3, "expense")
        assert match.confidence == pytest.approx(0.2 + 0.3)

    def test_display_name_overlap(self):
        row = _income("t1", 80000, "s-vr", None, source_name="Vale Refeição")
        match = score_by_hint([row], None, "vale refeicao", 2026, 3, "income")
        # month boost + full display-name overlap
        assert match.confidence == pytest.approx(0.2 + 0.5)

    def test_month_alone_is_not_enough(self):
        row = _expense("t1", 19500, "c-other", "Academia")
        assert score_by_hint([row], "c-energia", "luz", 2026, 3, "expense") is None

    def test_older_months_are_scanned(self):
        row = _expense("t1", 19500, "c-energia", "Energia", date=datetime(2026, 1, 10, 12))
        match = score_by_hint([row], "c-energia", "luz", 2026, 3, "expense")
        assert match.confidence == pytest.approx(0.7)
