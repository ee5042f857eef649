# -*- coding: utf-8 -*-
"""
AI Audit Logger

One row per inbound message that reached the NLU gateway. The row is
created once and later updated with the bot response and the final
resolution. Audit failures are logged and never interrupt the conversation.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from chatledger.ledger.repository import LedgerRepository
from chatledger.ledger.types import UserContext
from chatledger.nlu.thresholds import HIGH_CONFIDENCE
from chatledger.nlu.types import AIResponse, Intent

logger = logging.getLogger(__name__)

PENDING = "pending"
CONFIRMED = "confirmed"
CORRECTED = "corrected"
CANCELLED = "cancelled"
FALLBACK = "fallback"
UNKNOWN_IGNORED = "unknown_ignored"

_MAX_BOT_RESPONSE = 4000


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class AuditLogger:
    def __init__(self, repository: LedgerRepository, platform: str):
        self.repository = repository
        self.platform = platform

    def create(
        self,
        chat_id: str,
        original_message: str,
        ai_response: Optional[AIResponse],
        context: Optional[UserContext],
        error_message: Optional[str] = None,
    ) -> Optional[str]:
        """
        Record an inbound message and its normalized interpretation.

        Args:
            chat_id: chat the message came from
            original_message: text (or transcription) as received
            ai_response: normalized response, None when inference failed
            context: budget snapshot used for the prompt
            error_message: inference failure, stored with resolution=fallback

        Returns:
            The log id, or None when the row could not be written
        """
        if ai_response is not None:
            is_unknown = ai_response.intent == Intent.UNKNOWN
            is_low_confidence = ai_response.confidence < HIGH_CONFIDENCE
            stored_response = ai_response.to_dict()
        else:
            is_unknown = False
            is_low_confidence = True
            stored_response = None

        resolution = FALLBACK if error_message else (UNKNOWN_IGNORED if is_unknown else PENDING)

        try:
            return self.repository.create_ai_log({
                "budget_id": context.budget_id if context else None,
                "platform": self.platform,
                "chat_id": str(chat_id),
                "original_message": original_message[:2000],
                "ai_response": stored_response,
                "user_context": context.fingerprint() if context else None,
                "is_low_confidence": is_low_confidence,
                "is_unknown_intent": is_unknown,
                "resolution": resolution,
                "error_message": error_message[:1000] if error_message else None,
                "resolved_at": _utcnow() if resolution != PENDING else None,
            })
        except Exception as e:
            logger.error(f"Failed to create AI log for chat {chat_id}: {e}")
            return None

    def _update(self, log_id: Optional[str], **values: Any) -> None:
        if not log_id:
            return
        try:
            if not self.repository.update_ai_log(log_id, **values):
                logger.warning(f"AI log {log_id} not found")
        except Exception as e:
            logger.error(f"Failed to update AI log {log_id}: {e}")

    def _resolve(self, log_id: Optional[str], resolution: str, **values: Any) -> None:
        self._update(log_id, resolution=resolution, resolved_at=_utcnow(), **values)

    def mark_confirmed(self, log_id: Optional[str]) -> None:
        self._resolve(log_id, CONFIRMED)

    def mark_cancelled(self, log_id: Optional[str]) -> None:
        self._resolve(log_id, CANCELLED)

    def mark_corrected(
        self,
        log_id: Optional[str],
        corrected_intent: Optional[str] = None,
        corrected_data: Optional[Dict[str, Any]] = None,
    ) -> None:
        """The user finished the flow with a different entity than the one inferred."""
        self._resolve(
            log_id,
            CORRECTED,
            corrected_intent=corrected_intent,
            corrected_data=corrected_data,
        )

    def set_bot_response(self, log_id: Optional[str], text: str) -> None:
        self._update(log_id, bot_response=text[:_MAX_BOT_RESPONSE])
