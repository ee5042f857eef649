# Test entity matching (categories, income sources, goals, accounts)

from chatledger.ledger.types import AccountRef, CategoryRef, GoalRef, IncomeSourceRef
from chatledger.shared.entity_matcher import (
    match_account,
    match_category,
    match_goal,
    match_income_source,
    select_default_account,
    suggest_group_code,
)

CATEGORIES = [
    CategoryRef(id="c1", name="Mercado", icon="🛒", group_name="Essencial"),
    CategoryRef(id="c2", name="Energia", icon="💡", group_name="Essencial"),
    CategoryRef(id="c3", name="Restaurantes", icon="🍽️", group_name="Estilo de vida"),
]

ACCOUNTS = [
    AccountRef(id="a1", name="Conta Corrente", type="checking"),
    AccountRef(id="a2", name="Nubank", type="credit_card", closing_day=15),
    AccountRef(id="a3", name="Flash", type="benefit"),
]


class TestMatchCategory:
    def test_exact_name_ignores_case_and_accents(self):
        match = match_category("MERCADO", CATEGORIES)
        assert match.entity.id == "c1"
        assert match.confidence == 1.0

    def test_substring(self):
        match = match_category("restaurante", CATEGORIES)
        assert match.entity.id == "c3"
        assert match.confidence == 0.8

    def test_alias(self):
        """'conta de luz' has no name overlap with 'Energia', only the luz -> energia alias"""
        match = match_category("conta de luz", CATEGORIES)
        assert match.entity.id == "c2"
        assert match.confidence == 0.7

    def test_group_name(self):
        match = match_category("essencial", CATEGORIES)
        assert match.entity.group_name == "Essencial"
        assert match.confidence == 0.6

    def test_no_match(self):
        assert match_category("academia", CATEGORIES) is None

    def test_empty_hint(self):
        assert match_category(None, CATEGORIES) is None
        assert match_category("   ", CATEGORIES) is None

    def test_no_categories(self):
        assert match_category("mercado", []) is None


class TestMatchIncomeSource:
    SOURCES = [
        IncomeSourceRef(id="s1", name="Salário", type="salary"),
        IncomeSourceRef(id="s2", name="Aluguel do apto", type="rental"),
    ]

    def test_exact(self):
        match = match_income_source("salario", self.SOURCES)
        assert match.entity.id == "s1"
        assert match.confidence == 1.0

    def test_type_alias(self):
        match = match_income_source("pagamento", self.SOURCES)
        assert match.entity.id == "s1"
        assert match.confidence == 0.7

    def test_no_match(self):
        assert match_income_source("presente", self.SOURCES) is None


class TestMatchGoal:
    GOALS = [
        GoalRef(id="g1", name="Viagem", icon="✈️", target_amount=1000000, current_amount=0),
        GoalRef(id="g2", name="Reserva de emergência", icon=None, target_amount=500000, current_amount=0),
    ]

    def test_substring(self):
        match = match_goal("viagem europa", self.GOALS)
        assert match.entity.id == "g1"
        assert match.confidence == 0.8

    def test_word_containment(self):
        match = match_goal("emergencias", self.GOALS)
        assert match.entity.id == "g2"
        assert match.confidence == 0.6


class TestMatchAccount:
    def test_name_beats_type_alias(self):
        match = match_account("flash", ACCOUNTS)
        assert match.entity.id == "a3"
        assert match.confidence == 1.0

    def test_type_alias(self):
        match = match_account("no cartão", ACCOUNTS)
        assert match.entity.id == "a2"
        assert match.confidence == 0.7

    def test_no_hint(self):
        assert match_account(None, ACCOUNTS) is None


class TestDefaults:
    def test_default_account_prefers_checking(self):
        assert select_default_account(ACCOUNTS).id == "a1"

    def test_default_account_falls_back_to_first(self):
        accounts = [AccountRef(id="x", name="Carteira digital", type="investment")]
        assert select_default_account(accounts).id == "x"

    def test_default_account_empty(self):
        assert select_default_account([]) is None

    def test_suggest_group_code(self):
        assert suggest_group_code("conta de gás") == "essential"
        assert suggest_group_code("academia") == "lifestyle"
        assert suggest_group_code("cinema") == "pleasures"
        assert suggest_group_code("tesouro direto") == "investments"
        assert suggest_group_code("coisas aleatorias") == "lifestyle"
