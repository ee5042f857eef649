# -*- coding: utf-8 -*-
"""
Conversation State Store

Persists one ConversationState per (platform, chat id) in Redis and
serializes the processing of a single chat with a Redis lock. Different
chats never share a lock, so they are processed in parallel.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from redis.exceptions import LockError

from chatledger.config import CHAT_LOCK_TIMEOUT, CONVERSATION_STATE_TTL
from chatledger.engine.state import ConversationState
from chatledger.errors import ChatBusyError, ErrorCode
from chatledger.services.kv_store import KVStore

logger = logging.getLogger(__name__)

STATE_KEY = "conversation:{platform}:{chat_id}"
LOCK_KEY = "chat_lock:{platform}:{chat_id}"


class ConversationStateStore:
    def __init__(self, platform: str, kv: Optional[KVStore] = None):
        self.platform = platform
        self.kv = kv or KVStore()

    def _key(self, chat_id: str) -> str:
        return STATE_KEY.format(platform=self.platform, chat_id=chat_id)

    def load(self, chat_id: str) -> ConversationState:
        """Stored state of a chat; IDLE when missing or unreadable."""
        raw = self.kv.get(self._key(chat_id))
        try:
            return ConversationState.from_dict(raw)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding corrupt conversation state for chat {chat_id}: {e}")
            return ConversationState()

    def save(self, chat_id: str, state: ConversationState) -> bool:
        saved = self.kv.set(self._key(chat_id), state.to_dict(), ttl=CONVERSATION_STATE_TTL)
        if saved:
            logger.info(f"Chat {chat_id} -> {state.step.value}")
        return saved

    def clear(self, chat_id: str) -> bool:
        return self.kv.delete(self._key(chat_id))

    @contextmanager
    def chat_lock(self, chat_id: str) -> Iterator[None]:
        """
        Hold the per-chat lock for one unit of work.

        Blocks until earlier events of the same chat finish. Raises
        ChatBusyError when the lock is still held after CHAT_LOCK_TIMEOUT
        seconds; the event is then not processed.
        """
        if not self.kv.client:
            yield
            return

        lock = self.kv.client.lock(
            LOCK_KEY.format(platform=self.platform, chat_id=chat_id),
            timeout=CHAT_LOCK_TIMEOUT,
            blocking_timeout=CHAT_LOCK_TIMEOUT,
        )
        if not lock.acquire():
            logger.warning(f"Timed out waiting for chat lock {chat_id}")
            raise ChatBusyError.from_code(ErrorCode.CHAT_BUSY)
        try:
            yield
        finally:
            try:
                lock.release()
            except LockError as e:
                # Lock expired while we were still working.
                logger.warning(f"Failed to release chat lock {chat_id}: {e}")
