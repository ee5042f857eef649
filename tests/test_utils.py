from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence
from unittest.mock import Mock

from sqlalchemy.orm import sessionmaker

from chatledger.engine.state import ConversationState
from chatledger.ledger.database import create_ledger_engine, init_db
from chatledger.ledger.models import (
    Account,
    Budget,
    Category,
    ChatLink,
    Goal,
    Group,
    IncomeSource,
    Member,
    Transaction,
)
from chatledger.ledger.repository import LedgerRepository
from chatledger.messaging.adapter import Choice, MessagingAdapter, with_cancel
from chatledger.nlu.types import AIResponse
from chatledger.services.kv_store import KVStore
from chatledger.services.state_store import ConversationStateStore


def make_openai_client_with_content(content: str) -> Mock:
    mock_client = Mock()

    mock_completion = Mock()
    mock_completion.choices = [Mock()]
    mock_completion.choices[0].message.content = content

    mock_client.chat.completions.create.return_value = mock_completion
    return mock_client


def set_openai_mock_content(mock_openai: Mock, content: str) -> Mock:
    client = make_openai_client_with_content(content)
    mock_openai.return_value = client
    return client


def make_openai_client_with_json(payload: object) -> Mock:
    return make_openai_client_with_content(json.dumps(payload, ensure_ascii=False))


class FakeLock:
    def __init__(self, owner: "FakeRedis", name: str):
        self.owner = owner
        self.name = name

    def acquire(self) -> bool:
        self.owner.lock_events.append(("acquire", self.name))
        return self.owner.lock_available

    def release(self) -> None:
        self.owner.lock_events.append(("release", self.name))


class FakeRedis:
    """In-memory stand-in for the handful of redis commands the app uses."""

    def __init__(self, lock_available: bool = True):
        self.lock_available = lock_available
        self.data: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}
        self.lock_events: List[tuple] = []

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def setex(self, key: str, ttl: int, value: str) -> None:
        self.data[key] = value
        self.ttls[key] = ttl

    def delete(self, key: str) -> None:
        self.data.pop(key, None)
        self.ttls.pop(key, None)

    def lock(self, name: str, timeout: int = None, blocking_timeout: int = None) -> FakeLock:
        return FakeLock(self, name)


@dataclass
class Sent:
    id: str
    text: str
    choices: List[Choice] = field(default_factory=list)


class RecordingAdapter(MessagingAdapter):
    """Records every outbound call; message ids are "m1", "m2", ..."""

    platform = "telegram"

    def __init__(self, redis: Optional[FakeRedis] = None):
        self.redis = redis or FakeRedis()
        super().__init__(ConversationStateStore(self.platform, KVStore(self.redis)))
        self.sent: List[Sent] = []
        self.deleted: List[str] = []
        self.acknowledged: List[Optional[str]] = []

    def _record(self, text: str, choices: Sequence[Choice] = ()) -> str:
        message_id = f"m{len(self.sent) + 1}"
        self.sent.append(Sent(message_id, text, list(choices)))
        return message_id

    def send_message(self, chat_id: str, text: str) -> Optional[str]:
        return self._record(text)

    def send_choice_list(self, chat_id: str, text: str, choices: Sequence[Choice]) -> Optional[str]:
        return self._record(text, with_cancel(choices))

    def delete_messages(self, chat_id: str, message_ids: List[str]) -> None:
        self.deleted.extend(message_ids)

    def acknowledge_interaction(self, interaction_id: Optional[str], text: Optional[str] = None) -> None:
        self.acknowledged.append(interaction_id)

    @property
    def last(self) -> Sent:
        return self.sent[-1]

    def choice_ids(self) -> List[str]:
        return [c.id for c in self.last.choices]

    def state(self, chat_id: str) -> ConversationState:
        return self.load_state(chat_id)


class ScriptedParser:
    """parse() stand-in returning queued AIResponses (or raising queued errors)."""

    def __init__(self, *responses: Any):
        self.responses = list(responses)
        self.calls: List[str] = []

    def __call__(self, message: str, context) -> AIResponse:
        self.calls.append(message)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


CHAT_ID = "1001"


@dataclass
class LedgerSeed:
    repository: LedgerRepository
    session_factory: sessionmaker
    budget_id: str
    member_id: str
    checking_id: str
    card_id: str
    mercado_id: str
    energia_id: str
    salary_source_id: str
    goal_id: str
    group_ids: Dict[str, str]

    def add_pending(self, **values: Any) -> str:
        row = Transaction(budget_id=self.budget_id, status="pending", **values)
        with self.session_factory() as session, session.begin():
            session.add(row)
        return row.id

    def transactions(self) -> List[Transaction]:
        with self.session_factory() as session:
            return list(session.query(Transaction).order_by(Transaction.date).all())

    def get(self, transaction_id: str) -> Optional[Transaction]:
        return self.repository.get_transaction(transaction_id)


def make_ledger(link_chat: bool = True) -> LedgerSeed:
    """In-memory SQLite ledger with one budget, linked to CHAT_ID on telegram."""
    engine = create_ledger_engine("sqlite:///:memory:")
    init_db(engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    with factory() as session, session.begin():
        budget = Budget(name="Casa")
        session.add(budget)
        session.flush()

        member = Member(budget_id=budget.id, name="Ana")
        groups = {
            "essential": Group(code="essential", name="Essencial", display_order=1),
            "lifestyle": Group(code="lifestyle", name="Estilo de vida", display_order=2),
            "pleasures": Group(code="pleasures", name="Prazeres", display_order=3),
        }
        session.add(member)
        session.add_all(groups.values())
        session.flush()

        if link_chat:
            session.add(ChatLink(platform="telegram", chat_id=CHAT_ID, member_id=member.id))

        checking = Account(budget_id=budget.id, name="Conta Corrente", type="checking", opening_balance=100000)
        card = Account(
            budget_id=budget.id,
            name="Nubank",
            type="credit_card",
            credit_limit=500000,
            closing_day=15,
            due_day=22,
        )
        mercado = Category(budget_id=budget.id, group_id=groups["essential"].id, name="Mercado", icon="🛒")
        energia = Category(budget_id=budget.id, group_id=groups["essential"].id, name="Energia", icon="💡")
        salary = IncomeSource(budget_id=budget.id, name="Salário", type="salary")
        goal = Goal(budget_id=budget.id, name="Viagem", icon="✈️", target_amount=1000000, current_amount=250000)
        session.add_all([checking, card, mercado, energia, salary, goal])
        session.flush()

        seed = LedgerSeed(
            repository=LedgerRepository(factory),
            session_factory=factory,
            budget_id=budget.id,
            member_id=member.id,
            checking_id=checking.id,
            card_id=card.id,
            mercado_id=mercado.id,
            energia_id=energia.id,
            salary_source_id=salary.id,
            goal_id=goal.id,
            group_ids={code: g.id for code, g in groups.items()},
        )
    return seed


def at_noon(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, 12, 0, 0)
