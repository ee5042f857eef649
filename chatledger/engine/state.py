# -*- coding: utf-8 -*-
"""
Conversation State

Per-chat state is a tagged union keyed by the conversation step: each step
carries only the draft fields it needs, so nothing from a finished flow can
leak into the next one.

    IDLE                            -> Idle
    AWAITING_ACCOUNT                -> AwaitingAccount(expense)
    AWAITING_CATEGORY               -> AwaitingCategory(expense)
    AWAITING_CONFIRMATION           -> AwaitingConfirmation(draft, scheduled_transaction_id)
    AWAITING_NEW_CATEGORY_CONFIRM   -> AwaitingNewCategoryConfirm(expense, new_category)
    AWAITING_NEW_CATEGORY_NAME      -> AwaitingNewCategoryName(expense, new_category)
    AWAITING_NEW_CATEGORY_GROUP     -> AwaitingNewCategoryGroup(expense, new_category)

Serialized as JSON into the KV store.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class Step(Enum):
    IDLE = "IDLE"
    AWAITING_ACCOUNT = "AWAITING_ACCOUNT"
    AWAITING_CATEGORY = "AWAITING_CATEGORY"
    AWAITING_CONFIRMATION = "AWAITING_CONFIRMATION"
    AWAITING_NEW_CATEGORY_CONFIRM = "AWAITING_NEW_CATEGORY_CONFIRM"
    AWAITING_NEW_CATEGORY_NAME = "AWAITING_NEW_CATEGORY_NAME"
    AWAITING_NEW_CATEGORY_GROUP = "AWAITING_NEW_CATEGORY_GROUP"


# ============================================
# Drafts
# ============================================


@dataclass(frozen=True)
class ExpenseDraft:
    amount: int
    description: Optional[str] = None
    category_id: Optional[str] = None
    category_name: Optional[str] = None
    account_id: Optional[str] = None
    account_name: Optional[str] = None
    is_installment: bool = False
    total_installments: Optional[int] = None
    date: Optional[datetime] = None

    kind = "expense"


@dataclass(frozen=True)
class IncomeDraft:
    amount: int
    description: Optional[str] = None
    income_source_id: Optional[str] = None
    income_source_name: Optional[str] = None
    account_id: Optional[str] = None
    account_name: Optional[str] = None
    date: Optional[datetime] = None

    kind = "income"


@dataclass(frozen=True)
class TransferDraft:
    amount: int
    from_account_id: str
    to_account_id: str
    from_account_name: Optional[str] = None
    to_account_name: Optional[str] = None
    description: Optional[str] = None

    kind = "transfer"


@dataclass(frozen=True)
class NewCategoryDraft:
    suggested_name: str
    suggested_group_code: str
    custom_name: Optional[str] = None

    @property
    def name(self) -> str:
        return self.custom_name or self.suggested_name


Draft = Union[ExpenseDraft, IncomeDraft, TransferDraft]

_DRAFT_TYPES = {cls.kind: cls for cls in (ExpenseDraft, IncomeDraft, TransferDraft)}


def draft_to_dict(draft: Draft) -> Dict[str, Any]:
    data = asdict(draft)
    if data.get("date") is not None:
        data["date"] = data["date"].isoformat()
    data["kind"] = draft.kind
    return data


def draft_from_dict(data: Dict[str, Any]) -> Draft:
    data = dict(data)
    cls = _DRAFT_TYPES[data.pop("kind")]
    if data.get("date"):
        data["date"] = datetime.fromisoformat(data["date"])
    return cls(**data)


# ============================================
# Step payloads
# ============================================


@dataclass(frozen=True)
class Idle:
    step = Step.IDLE


@dataclass(frozen=True)
class AwaitingAccount:
    expense: ExpenseDraft
    step = Step.AWAITING_ACCOUNT


@dataclass(frozen=True)
class AwaitingCategory:
    expense: ExpenseDraft
    step = Step.AWAITING_CATEGORY


@dataclass(frozen=True)
class AwaitingConfirmation:
    draft: Draft
    scheduled_transaction_id: Optional[str] = None
    # The user picked an entity other than the inferred one.
    corrected: bool = False
    step = Step.AWAITING_CONFIRMATION


@dataclass(frozen=True)
class AwaitingNewCategoryConfirm:
    expense: ExpenseDraft
    new_category: NewCategoryDraft
    step = Step.AWAITING_NEW_CATEGORY_CONFIRM


@dataclass(frozen=True)
class AwaitingNewCategoryName:
    expense: ExpenseDraft
    new_category: NewCategoryDraft
    step = Step.AWAITING_NEW_CATEGORY_NAME


@dataclass(frozen=True)
class AwaitingNewCategoryGroup:
    expense: ExpenseDraft
    new_category: NewCategoryDraft
    step = Step.AWAITING_NEW_CATEGORY_GROUP


StepPayload = Union[
    Idle,
    AwaitingAccount,
    AwaitingCategory,
    AwaitingConfirmation,
    AwaitingNewCategoryConfirm,
    AwaitingNewCategoryName,
    AwaitingNewCategoryGroup,
]

_PAYLOAD_TYPES = {
    cls.step: cls
    for cls in (
        Idle,
        AwaitingAccount,
        AwaitingCategory,
        AwaitingConfirmation,
        AwaitingNewCategoryConfirm,
        AwaitingNewCategoryName,
        AwaitingNewCategoryGroup,
    )
}

# Steps that accept a free-text answer instead of a button press.
FREE_TEXT_STEPS = frozenset({Step.IDLE, Step.AWAITING_NEW_CATEGORY_NAME})


def _payload_to_dict(payload: StepPayload) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    if hasattr(payload, "expense"):
        data["expense"] = draft_to_dict(payload.expense)
    if hasattr(payload, "new_category"):
        data["new_category"] = asdict(payload.new_category)
    if isinstance(payload, AwaitingConfirmation):
        data["draft"] = draft_to_dict(payload.draft)
        data["scheduled_transaction_id"] = payload.scheduled_transaction_id
        data["corrected"] = payload.corrected
    return data


def _payload_from_dict(step: Step, data: Dict[str, Any]) -> StepPayload:
    cls = _PAYLOAD_TYPES[step]
    if cls is Idle:
        return Idle()
    if cls is AwaitingConfirmation:
        return AwaitingConfirmation(
            draft=draft_from_dict(data["draft"]),
            scheduled_transaction_id=data.get("scheduled_transaction_id"),
            corrected=bool(data.get("corrected")),
        )
    kwargs: Dict[str, Any] = {"expense": draft_from_dict(data["expense"])}
    if "new_category" in data:
        kwargs["new_category"] = NewCategoryDraft(**data["new_category"])
    return cls(**kwargs)


@dataclass(frozen=True)
class ConversationState:
    """The single live conversation of a chat."""

    payload: StepPayload = field(default_factory=Idle)
    messages_to_delete: List[str] = field(default_factory=list)
    audit_log_id: Optional[str] = None
    # Survives the return to IDLE so /desfazer can find it.
    last_transaction_id: Optional[str] = None

    @property
    def step(self) -> Step:
        return self.payload.step

    @property
    def is_idle(self) -> bool:
        return self.step == Step.IDLE

    def advance(
        self,
        payload: StepPayload,
        messages_to_delete: Optional[List[str]] = None,
        audit_log_id: Optional[str] = None,
    ) -> "ConversationState":
        """Move to a new step, replacing the draft and the deletion queue."""
        return replace(
            self,
            payload=payload,
            messages_to_delete=list(messages_to_delete or []),
            audit_log_id=audit_log_id if audit_log_id is not None else self.audit_log_id,
        )

    def reset(self, last_transaction_id: Optional[str] = None, clear_last: bool = False) -> "ConversationState":
        """Back to IDLE; optionally record (or clear) the last committed transaction."""
        if clear_last:
            last = None
        else:
            last = last_transaction_id or self.last_transaction_id
        return ConversationState(last_transaction_id=last)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step.value,
            "context": _payload_to_dict(self.payload),
            "messages_to_delete": list(self.messages_to_delete),
            "audit_log_id": self.audit_log_id,
            "last_transaction_id": self.last_transaction_id,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ConversationState":
        if not data:
            return cls()
        step = Step(data.get("step", Step.IDLE.value))
        return cls(
            payload=_payload_from_dict(step, data.get("context") or {}),
            messages_to_delete=[str(m) for m in data.get("messages_to_delete") or []],
            audit_log_id=data.get("audit_log_id"),
            last_transaction_id=data.get("last_transaction_id"),
        )
