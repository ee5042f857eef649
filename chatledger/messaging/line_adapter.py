# -*- coding: utf-8 -*-
"""
LINE Messaging Adapter

Outbound side of the LINE integration (line-bot-sdk v3):

- Messages are pushed (not replied) so one event can produce several
  messages, e.g. a transcription echo followed by a prompt
- Choices become Quick Reply postback buttons
- LINE renders plain text only, so HTML tags are stripped
- LINE cannot delete sent messages: delete_messages is a no-op
"""

import logging
import re
from typing import List, Optional, Sequence

from linebot.v3.messaging import (
    ApiClient,
    Configuration,
    MessagingApi,
    PostbackAction,
    PushMessageRequest,
    QuickReply,
    QuickReplyItem,
    TextMessage,
)

from chatledger.config import LINE_CHANNEL_ACCESS_TOKEN
from chatledger.messaging.adapter import Choice, MessagingAdapter, with_cancel

logger = logging.getLogger(__name__)

# LINE platform limits
MAX_QUICK_REPLY_ITEMS = 13
MAX_LABEL_LENGTH = 20
MAX_TEXT_LENGTH = 5000

_HTML_TAG = re.compile(r"</?(b|i|u|s|code|pre|a)(\s[^>]*)?>", re.IGNORECASE)


def strip_html(text: str) -> str:
    return _HTML_TAG.sub("", text)


def _label(text: str) -> str:
    if len(text) <= MAX_LABEL_LENGTH:
        return text
    return text[: MAX_LABEL_LENGTH - 1] + "…"


class LineAdapter(MessagingAdapter):
    platform = "line"

    def __init__(self, messaging_api: Optional[MessagingApi] = None, state_store=None):
        super().__init__(state_store)
        self._messaging_api = messaging_api

    @property
    def messaging_api(self) -> MessagingApi:
        if self._messaging_api is None:
            logger.info("Initializing LINE MessagingApi")
            configuration = Configuration(access_token=LINE_CHANNEL_ACCESS_TOKEN)
            self._messaging_api = MessagingApi(ApiClient(configuration))
        return self._messaging_api

    def _push(self, chat_id: str, message: TextMessage) -> Optional[str]:
        try:
            response = self.messaging_api.push_message(
                PushMessageRequest(to=chat_id, messages=[message])
            )
        except Exception as e:
            logger.error(f"Failed to push LINE message to {chat_id}: {e}")
            return None

        sent = getattr(response, "sent_messages", None) or []
        return str(sent[0].id) if sent else None

    def send_message(self, chat_id: str, text: str) -> Optional[str]:
        return self._push(chat_id, TextMessage(text=strip_html(text)[:MAX_TEXT_LENGTH]))

    def send_choice_list(self, chat_id: str, text: str, choices: Sequence[Choice]) -> Optional[str]:
        choices = with_cancel(choices)
        if len(choices) > MAX_QUICK_REPLY_ITEMS:
            logger.warning(f"Truncating {len(choices)} choices to the LINE Quick Reply limit")
            choices = with_cancel(choices[: MAX_QUICK_REPLY_ITEMS - 1])

        items = [
            QuickReplyItem(action=PostbackAction(label=_label(c.label), data=c.id, display_text=c.label))
            for c in choices
        ]
        message = TextMessage(text=strip_html(text)[:MAX_TEXT_LENGTH], quick_reply=QuickReply(items=items))
        return self._push(chat_id, message)

    def delete_messages(self, chat_id: str, message_ids: List[str]) -> None:
        logger.debug(f"LINE cannot delete messages; keeping {len(message_ids)} in chat {chat_id}")

    def acknowledge_interaction(self, interaction_id: Optional[str], text: Optional[str] = None) -> None:
        # Postbacks carry no loading indicator to stop.
        return None
