# -*- coding: utf-8 -*-
"""
Messaging Adapter

The engine never talks to a chat platform directly: every outbound message,
choice list and deletion goes through a MessagingAdapter. Platform
integrations (LINE, Telegram) implement the abstract methods.

Choice ids sent back by button presses:
    acc_<id>, cat_<id>, group_<id>
    newcat_accept, newcat_rename, newcat_existing
    confirm, cancel
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence

from chatledger.engine.state import ConversationState
from chatledger.services.state_store import ConversationStateStore

logger = logging.getLogger(__name__)

CONFIRM = "confirm"
CANCEL = "cancel"
NEWCAT_ACCEPT = "newcat_accept"
NEWCAT_RENAME = "newcat_rename"
NEWCAT_EXISTING = "newcat_existing"

ACCOUNT_PREFIX = "acc_"
CATEGORY_PREFIX = "cat_"
GROUP_PREFIX = "group_"


@dataclass(frozen=True)
class Choice:
    id: str
    label: str


CANCEL_CHOICE = Choice(CANCEL, "❌ Cancelar")


def with_cancel(choices: Sequence[Choice]) -> List[Choice]:
    """Every prompt ends with a cancel button."""
    choices = list(choices)
    if not any(c.id == CANCEL for c in choices):
        choices.append(CANCEL_CHOICE)
    return choices


class MessagingAdapter(ABC):
    """Outbound side of one chat platform."""

    platform: str = ""

    def __init__(self, state_store: Optional[ConversationStateStore] = None):
        self.state_store = state_store or ConversationStateStore(self.platform)

    @abstractmethod
    def send_message(self, chat_id: str, text: str) -> Optional[str]:
        """Send a plain message; returns the platform message id when there is one."""

    @abstractmethod
    def send_choice_list(self, chat_id: str, text: str, choices: Sequence[Choice]) -> Optional[str]:
        """Send a prompt with one button per choice (see with_cancel)."""

    def send_confirmation(self, chat_id: str, text: str) -> Optional[str]:
        return self.send_choice_list(
            chat_id,
            text,
            [Choice(CONFIRM, "✅ Confirmar"), CANCEL_CHOICE],
        )

    def send_new_category_prompt(self, chat_id: str, text: str, suggested_name: str) -> Optional[str]:
        return self.send_choice_list(
            chat_id,
            text,
            [
                Choice(NEWCAT_ACCEPT, f"✅ Criar \"{suggested_name}\""),
                Choice(NEWCAT_RENAME, "✏️ Outro nome"),
                Choice(NEWCAT_EXISTING, "📁 Usar existente"),
            ],
        )

    def send_group_list(self, chat_id: str, text: str, groups: Sequence[Choice]) -> Optional[str]:
        return self.send_choice_list(chat_id, text, groups)

    @abstractmethod
    def delete_messages(self, chat_id: str, message_ids: List[str]) -> None:
        """Best-effort deletion of interstitial messages."""

    @abstractmethod
    def acknowledge_interaction(self, interaction_id: Optional[str], text: Optional[str] = None) -> None:
        """Stop the client-side loading indicator of a button press."""

    def update_state(self, chat_id: str, state: ConversationState) -> None:
        if not self.state_store.save(chat_id, state):
            logger.error(f"Failed to persist conversation state for chat {chat_id}")

    def load_state(self, chat_id: str) -> ConversationState:
        return self.state_store.load(chat_id)
