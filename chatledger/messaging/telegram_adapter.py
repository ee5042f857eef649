# -*- coding: utf-8 -*-
"""
Telegram Messaging Adapter

Talks to the Telegram Bot API over HTTPS with requests. Messages are sent
with parse_mode=HTML; choices become an inline keyboard (two buttons per
row) whose callback_data is the choice id.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import requests

from chatledger.config import TELEGRAM_BOT_TOKEN, TELEGRAM_TIMEOUT
from chatledger.messaging.adapter import Choice, MessagingAdapter, with_cancel

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org/bot{token}"
TELEGRAM_FILE_BASE = "https://api.telegram.org/file/bot{token}"
BUTTONS_PER_ROW = 2


def build_inline_keyboard(choices: Sequence[Choice]) -> Dict[str, Any]:
    buttons = [{"text": c.label, "callback_data": c.id} for c in with_cancel(choices)]
    rows = [buttons[i:i + BUTTONS_PER_ROW] for i in range(0, len(buttons), BUTTONS_PER_ROW)]
    return {"inline_keyboard": rows}


class TelegramAdapter(MessagingAdapter):
    platform = "telegram"

    def __init__(self, token: Optional[str] = None, session: Optional[requests.Session] = None, state_store=None):
        super().__init__(state_store)
        self.token = token or TELEGRAM_BOT_TOKEN
        self.session = session or requests.Session()

    def _call(self, method: str, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """POST to a Bot API method; returns the `result` field or None on failure."""
        url = f"{TELEGRAM_API_BASE.format(token=self.token)}/{method}"
        try:
            response = self.session.post(url, json=payload, timeout=TELEGRAM_TIMEOUT)
            body = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Telegram {method} failed: {e}")
            return None

        if not body.get("ok"):
            logger.error(f"Telegram {method} rejected: {body.get('description')}")
            return None
        return body.get("result")

    def _send(self, chat_id: str, text: str, reply_markup: Optional[Dict[str, Any]] = None) -> Optional[str]:
        payload: Dict[str, Any] = {"chat_id": chat_id, "text": text, "parse_mode": "HTML"}
        if reply_markup:
            payload["reply_markup"] = reply_markup
        result = self._call("sendMessage", payload)
        if isinstance(result, dict) and "message_id" in result:
            return str(result["message_id"])
        return None

    def send_message(self, chat_id: str, text: str) -> Optional[str]:
        return self._send(chat_id, text)

    def send_choice_list(self, chat_id: str, text: str, choices: Sequence[Choice]) -> Optional[str]:
        return self._send(chat_id, text, build_inline_keyboard(choices))

    def delete_messages(self, chat_id: str, message_ids: List[str]) -> None:
        for message_id in message_ids:
            # Failures (message too old, already deleted) are logged by _call.
            self._call("deleteMessage", {"chat_id": chat_id, "message_id": int(message_id)})

    def acknowledge_interaction(self, interaction_id: Optional[str], text: Optional[str] = None) -> None:
        if not interaction_id:
            return
        payload: Dict[str, Any] = {"callback_query_id": interaction_id}
        if text:
            payload["text"] = text
        self._call("answerCallbackQuery", payload)

    def download_file(self, file_id: str) -> bytes:
        """
        Download a file (voice note) by file_id.

        Raises:
            requests.RequestException: the file could not be resolved or fetched
        """
        result = self._call("getFile", {"file_id": file_id})
        if not result or not result.get("file_path"):
            raise requests.RequestException(f"Telegram file {file_id} not available")

        url = f"{TELEGRAM_FILE_BASE.format(token=self.token)}/{result['file_path']}"
        response = self.session.get(url, timeout=TELEGRAM_TIMEOUT)
        response.raise_for_status()
        return response.content
