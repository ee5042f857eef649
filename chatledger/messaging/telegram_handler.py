# -*- coding: utf-8 -*-
"""
Telegram update handler

Dispatches a Bot API update (already parsed from JSON) to the engine:
text messages, voice notes and inline keyboard callbacks. Anything else
(edits, stickers, channel posts) is ignored.
"""

import logging
from typing import Any, Dict

from chatledger.engine.conversation import ConversationEngine
from chatledger.messaging.telegram_adapter import TelegramAdapter

logger = logging.getLogger(__name__)


def handle_update(update: Dict[str, Any], engine: ConversationEngine, adapter: TelegramAdapter) -> None:
    callback = update.get("callback_query")
    if callback:
        message = callback.get("message") or {}
        chat_id = (message.get("chat") or {}).get("id")
        if chat_id is None:
            adapter.acknowledge_interaction(callback.get("id"))
            return
        logger.info(f"Telegram callback from {chat_id}: {callback.get('data')}")
        engine.handle_choice(str(chat_id), callback.get("data") or "", callback.get("id"))
        return

    message = update.get("message")
    if not message:
        logger.debug(f"Ignoring Telegram update {update.get('update_id')}")
        return

    chat_id = str(message["chat"]["id"])
    voice = message.get("voice") or message.get("audio")
    if voice:
        logger.info(f"Telegram voice from {chat_id}: {voice.get('duration')}s")
        engine.handle_voice(
            chat_id,
            voice.get("duration"),
            voice.get("file_size"),
            voice.get("mime_type") or "audio/ogg",
            lambda: adapter.download_file(voice["file_id"]),
        )
        return

    text = message.get("text")
    if text:
        logger.info(f"Telegram text from {chat_id}: {text}")
        engine.handle_text(chat_id, text)
