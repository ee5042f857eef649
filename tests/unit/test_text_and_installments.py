# Test text helpers and installment expansion

from datetime import datetime

import pytest

from chatledger.errors import ContractError, ErrorCode
from chatledger.shared.installments import (
    billing_month,
    expand_installments,
    first_installment_date,
    installment_amount,
)
from chatledger.shared.text_utils import (
    capitalize_first,
    normalize_text,
    parse_amount,
    strip_amount,
    title_case,
    word_overlap,
)


class TestTextUtils:
    def test_normalize_text(self):
        assert normalize_text("  Conta de Água ") == "conta de agua"
        assert normalize_text(None) == ""

    def test_word_overlap_identical(self):
        assert word_overlap("Conta de luz", "conta de luz") == 1.0

    def test_word_overlap_ignores_stopwords_and_inflection(self):
        # "contas"/"conta" match by containment, "de" is ignored
        assert word_overlap("contas de luz", "conta luz") == 1.0

    def test_word_overlap_divides_by_longer_list(self):
        assert word_overlap("internet", "internet fibra casa") == pytest.approx(1 / 3)

    def test_word_overlap_empty(self):
        assert word_overlap("", "mercado") == 0.0
        assert word_overlap("de da do", "mercado") == 0.0

    def test_parse_amount(self):
        assert parse_amount("gastei 50 no mercado") == 5000
        assert parse_amount("gastei 50,90 no mercado") == 5090
        assert parse_amount("R$ 1200 de aluguel") == 120000
        assert parse_amount("paguei a luz") is None
        assert parse_amount("0 reais") is None

    def test_strip_amount(self):
        assert strip_amount("50 mercado") == "mercado"
        assert strip_amount("gastei R$ 50,00 no mercado") == "gastei no mercado"

    def test_capitalization(self):
        assert capitalize_first("mercado do bairro") == "Mercado do bairro"
        assert capitalize_first(None) is None
        assert title_case("conta de gás") == "Conta De Gás"


class TestBillingCycle:
    def test_purchase_before_closing_day_stays_in_month(self):
        assert billing_month(datetime(2026, 3, 10, 12), 15) == (2026, 3)

    def test_purchase_on_closing_day_moves_to_next_cycle(self):
        assert billing_month(datetime(2026, 3, 15, 12), 15) == (2026, 4)

    def test_december_rolls_over_year(self):
        assert billing_month(datetime(2026, 12, 20, 12), 15) == (2027, 1)

    def test_closing_day_clamped_in_short_month(self):
        # closing day 31 in February 2026 -> 28
        assert first_installment_date(datetime(2026, 2, 10, 12), 31) == datetime(2026, 2, 28, 12)
        assert billing_month(datetime(2026, 2, 28, 12), 31) == (2026, 3)


class TestExpandInstallments:
    def test_card_purchase_after_closing_day(self):
        """TV of 2000 in 10x on a card closing on the 15th, bought on the 20th"""
        installments = expand_installments(200000, 10, datetime(2026, 3, 20, 12), closing_day=15)

        assert len(installments) == 10
        assert [i.number for i in installments] == list(range(1, 11))
        assert all(i.amount == 20000 for i in installments)
        assert installments[0].date == datetime(2026, 4, 15, 12)
        assert installments[1].date == datetime(2026, 5, 15, 12)
        assert installments[-1].date == datetime(2027, 1, 15, 12)

    def test_card_purchase_before_closing_day(self):
        installments = expand_installments(30000, 3, datetime(2026, 3, 10, 12), closing_day=15)
        assert [i.date for i in installments] == [
            datetime(2026, 3, 15, 12),
            datetime(2026, 4, 15, 12),
            datetime(2026, 5, 15, 12),
        ]

    def test_end_of_month_closing_day_is_clamped_per_month(self):
        installments = expand_installments(30000, 3, datetime(2026, 1, 10, 12), closing_day=31)
        assert [i.date.day for i in installments] == [31, 28, 31]

    def test_without_closing_day_uses_purchase_date(self):
        installments = expand_installments(30000, 3, datetime(2026, 1, 31, 12))
        assert [i.date for i in installments] == [
            datetime(2026, 1, 31, 12),
            datetime(2026, 2, 28, 12),
            datetime(2026, 3, 31, 12),
        ]

    def test_remainder_is_not_redistributed(self):
        assert installment_amount(10000, 3) == 3333
        installments = expand_installments(10000, 3, datetime(2026, 1, 5, 12))
        assert sum(i.amount for i in installments) == 9999

    @pytest.mark.parametrize("count", [1, 25])
    def test_count_out_of_range(self, count):
        with pytest.raises(ContractError) as exc_info:
            expand_installments(10000, count, datetime(2026, 1, 5, 12))
        assert exc_info.value.code == ErrorCode.INVALID_INSTALLMENTS
