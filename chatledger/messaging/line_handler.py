# -*- coding: utf-8 -*-
"""
LINE event handlers

Translate line-bot-sdk v3 webhook events into ConversationEngine calls.
The chat id is the group/room id for group chats and the user id otherwise.
"""

import logging

from linebot.v3.messaging import MessagingApiBlob
from linebot.v3.webhooks import AudioMessageContent, MessageEvent, PostbackEvent, TextMessageContent

from chatledger.engine.conversation import ConversationEngine

logger = logging.getLogger(__name__)

# LINE voice messages are m4a (AAC)
LINE_AUDIO_MIME = "audio/m4a"


def chat_id_of(event) -> str:
    source = event.source
    return getattr(source, "group_id", None) or getattr(source, "room_id", None) or source.user_id


def handle_text_message(event: MessageEvent, engine: ConversationEngine) -> None:
    message = event.message
    if not isinstance(message, TextMessageContent):
        return
    chat_id = chat_id_of(event)
    logger.info(f"LINE text from {chat_id}: {message.text}")
    engine.handle_text(chat_id, message.text)


def handle_postback(event: PostbackEvent, engine: ConversationEngine) -> None:
    chat_id = chat_id_of(event)
    logger.info(f"LINE postback from {chat_id}: {event.postback.data}")
    engine.handle_choice(chat_id, event.postback.data)


def handle_audio_message(event: MessageEvent, blob_api: MessagingApiBlob, engine: ConversationEngine) -> None:
    """Voice note: duration is reported in milliseconds, size is only known after download."""
    message = event.message
    if not isinstance(message, AudioMessageContent):
        return
    chat_id = chat_id_of(event)
    duration_seconds = message.duration / 1000 if message.duration else None
    logger.info(f"LINE audio from {chat_id}: {duration_seconds}s")

    engine.handle_voice(
        chat_id,
        duration_seconds,
        None,
        LINE_AUDIO_MIME,
        lambda: bytes(blob_api.get_message_content(message_id=message.id)),
    )
