# Test conversation state serialization and the Redis-backed state store

import json
from datetime import datetime
from unittest.mock import Mock

import pytest

from chatledger.config import CONVERSATION_STATE_TTL
from chatledger.engine.state import (
    AwaitingConfirmation,
    AwaitingNewCategoryGroup,
    ConversationState,
    ExpenseDraft,
    IncomeDraft,
    NewCategoryDraft,
    Step,
    TransferDraft,
)
from chatledger.errors import ChatBusyError, ErrorCode
from chatledger.services.kv_store import KVStore
from chatledger.services.state_store import ConversationStateStore
from tests.test_utils import FakeRedis


def _round_trip(state: ConversationState) -> ConversationState:
    return ConversationState.from_dict(json.loads(json.dumps(state.to_dict())))


class TestConversationState:
    def test_default_is_idle(self):
        state = ConversationState()
        assert state.is_idle
        assert state.to_dict()["step"] == "IDLE"

    def test_confirmation_with_installment_expense(self):
        draft = ExpenseDraft(
            amount=200000,
            description="TV",
            category_id="c1",
            category_name="Eletrônicos",
            account_id="a2",
            account_name="Nubank",
            is_installment=True,
            total_installments=10,
            date=datetime(2026, 3, 20, 12),
        )
        state = ConversationState().advance(AwaitingConfirmation(draft, corrected=True), ["m1"], "log-1")

        restored = _round_trip(state)

        assert restored == state
        assert restored.step == Step.AWAITING_CONFIRMATION
        assert restored.payload.draft.date == datetime(2026, 3, 20, 12)

    def test_drafts_keep_their_kind(self):
        for draft in (
            IncomeDraft(amount=500000, income_source_id="s1"),
            TransferDraft(amount=50000, from_account_id="a1", to_account_id="a2"),
        ):
            restored = _round_trip(ConversationState().advance(AwaitingConfirmation(draft, "t1")))
            assert type(restored.payload.draft) is type(draft)
            assert restored.payload.scheduled_transaction_id == "t1"

    def test_new_category_payload(self):
        payload = AwaitingNewCategoryGroup(
            ExpenseDraft(amount=12000, account_id="a1"),
            NewCategoryDraft("Academia", "lifestyle", custom_name="Ginástica"),
        )
        restored = _round_trip(ConversationState().advance(payload, ["m3"]))
        assert restored.payload.new_category.name == "Ginástica"
        assert restored.messages_to_delete == ["m3"]

    def test_advance_keeps_audit_id_unless_replaced(self):
        state = ConversationState().advance(AwaitingConfirmation(ExpenseDraft(amount=1)), ["m1"], "log-1")
        state = state.advance(AwaitingConfirmation(ExpenseDraft(amount=2)), ["m2"])
        assert state.audit_log_id == "log-1"
        assert state.messages_to_delete == ["m2"]

    def test_reset_clears_draft_but_keeps_last_transaction(self):
        state = ConversationState(last_transaction_id="tx-1").advance(
            AwaitingConfirmation(ExpenseDraft(amount=1)), ["m1"], "log-1"
        )

        reset = state.reset()
        assert reset.is_idle
        assert reset.messages_to_delete == []
        assert reset.audit_log_id is None
        assert reset.last_transaction_id == "tx-1"

        assert state.reset(last_transaction_id="tx-2").last_transaction_id == "tx-2"
        assert state.reset(clear_last=True).last_transaction_id is None


class TestConversationStateStore:
    def test_save_and_load(self):
        redis = FakeRedis()
        store = ConversationStateStore("telegram", KVStore(redis))
        state = ConversationState(last_transaction_id="tx-1")

        assert store.save("42", state)

        assert store.load("42") == state
        assert redis.ttls["conversation:telegram:42"] == CONVERSATION_STATE_TTL

    def test_platforms_do_not_share_state(self):
        redis = FakeRedis()
        ConversationStateStore("telegram", KVStore(redis)).save("42", ConversationState(last_transaction_id="x"))
        assert ConversationStateStore("line", KVStore(redis)).load("42").last_transaction_id is None

    def test_corrupt_state_falls_back_to_idle(self):
        redis = FakeRedis()
        redis.data["conversation:telegram:42"] = json.dumps({"step": "NOT_A_STEP"})
        store = ConversationStateStore("telegram", KVStore(redis))
        assert store.load("42").is_idle

    def test_chat_lock_acquires_and_releases(self):
        redis = FakeRedis()
        store = ConversationStateStore("telegram", KVStore(redis))
        with store.chat_lock("42"):
            assert redis.lock_events == [("acquire", "chat_lock:telegram:42")]
        assert redis.lock_events[-1] == ("release", "chat_lock:telegram:42")

    def test_chat_lock_timeout_raises_busy(self):
        redis = FakeRedis(lock_available=False)
        store = ConversationStateStore("telegram", KVStore(redis))
        body = Mock()

        with pytest.raises(ChatBusyError) as exc_info:
            with store.chat_lock("42"):
                body()

        assert exc_info.value.code == ErrorCode.CHAT_BUSY
        body.assert_not_called()
        assert redis.lock_events == [("acquire", "chat_lock:telegram:42")]
