# -*- coding: utf-8 -*-
"""
NLU Gateway

1. Build the prompt from the user's budget context (categories, sources,
   goals, accounts and this month's pending transactions)
2. Call the OpenAI Chat Completions API in JSON mode
3. Normalize the raw output into a typed AIResponse

Malformed output never raises: it degrades to UNKNOWN with confidence 0.
Service failures raise InferenceError so the caller can fall back to the
manual entry flow.
"""

from __future__ import annotations

import json
import logging
import math
import re
from datetime import datetime
from typing import Any, Optional

from openai import OpenAI

from chatledger.config import GPT_MODEL, OPENAI_API_KEY, OPENAI_TIMEOUT
from chatledger.errors import ErrorCode, InferenceError
from chatledger.ledger.types import UserContext
from chatledger.nlu.prompts import build_system_prompt
from chatledger.nlu.types import (
    AIResponse,
    ExpenseData,
    IncomeData,
    Intent,
    QueryData,
    TransferData,
)
from chatledger.shared.installments import MAX_INSTALLMENTS, MIN_INSTALLMENTS

logger = logging.getLogger(__name__)

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")

# Upper bound for a stated amount (ledger columns are 64-bit integers)
MAX_AMOUNT_MINOR_UNITS = 10 ** 12

_QUERY_TYPES = {
    Intent.QUERY_BALANCE: "balance",
    Intent.QUERY_CATEGORY: "category",
    Intent.QUERY_GOAL: "goal",
    Intent.QUERY_ACCOUNT: "account",
}


def parse_user_message(message: str, context: UserContext, client: Optional[OpenAI] = None) -> AIResponse:
    """
    Parse a chat message into a confidence-scored intent.

    Args:
        message: user text (or voice transcription)
        context: per-message budget snapshot
        client: OpenAI client (created from config when omitted)

    Returns:
        AIResponse

    Raises:
        InferenceError: the inference call failed or timed out
    """
    try:
        client = client or OpenAI(api_key=OPENAI_API_KEY, timeout=OPENAI_TIMEOUT)
        completion = client.chat.completions.create(
            model=GPT_MODEL,
            messages=[
                {"role": "system", "content": build_system_prompt(context)},
                {"role": "user", "content": message},
            ],
            response_format={"type": "json_object"},
        )
        raw_text = completion.choices[0].message.content or ""
    except Exception as e:
        logger.error(f"GPT API error in parse_user_message: {e}")
        raise InferenceError.from_code(ErrorCode.INFERENCE_FAILED) from e

    logger.info(f"GPT parse response: {raw_text}")
    return normalize_ai_response(raw_text)


def normalize_ai_response(raw_text: Optional[str]) -> AIResponse:
    """Turn raw model output into a validated AIResponse."""
    payload = _extract_json(raw_text)
    if payload is None:
        logger.warning("No JSON object found in GPT response")
        return AIResponse(intent=Intent.UNKNOWN, confidence=0.0, data=None)

    intent = _normalize_intent(payload.get("intent"))
    confidence = _clamp_confidence(payload.get("confidence"))
    data = payload.get("data")
    if not isinstance(data, dict):
        data = {}

    if intent == Intent.REGISTER_EXPENSE:
        total_installments = _normalize_installments(data.get("totalInstallments"))
        extracted = ExpenseData(
            amount=_to_minor_units(data.get("amount")),
            description=_clean(data.get("description")),
            category_hint=_clean(data.get("categoryHint")),
            account_hint=_clean(data.get("accountHint")),
            is_installment=bool(data.get("isInstallment")) and total_installments is not None,
            total_installments=total_installments if data.get("isInstallment") else None,
            date=_parse_date(data.get("date")),
        )
    elif intent == Intent.REGISTER_INCOME:
        extracted = IncomeData(
            amount=_to_minor_units(data.get("amount")),
            description=_clean(data.get("description")),
            income_source_hint=_clean(data.get("incomeSourceHint")),
            account_hint=_clean(data.get("accountHint")),
            date=_parse_date(data.get("date")),
        )
    elif intent == Intent.TRANSFER:
        extracted = TransferData(
            amount=_to_minor_units(data.get("amount")),
            from_account_hint=_clean(data.get("fromAccountHint")),
            to_account_hint=_clean(data.get("toAccountHint")),
            description=_clean(data.get("description")),
        )
    elif intent.is_query:
        extracted = QueryData(
            query_type=_clean(data.get("queryType")) or _QUERY_TYPES[intent],
            category_name=_clean(data.get("categoryName")),
            goal_name=_clean(data.get("goalName")),
            account_name=_clean(data.get("accountName")),
            period=_clean(data.get("period")) or "month",
        )
    else:
        extracted = None

    return AIResponse(intent=intent, confidence=confidence, data=extracted)


def _extract_json(raw_text: Optional[str]) -> Optional[dict]:
    if not raw_text:
        return None
    match = _JSON_BLOCK.search(raw_text)
    if not match:
        return None
    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.warning(f"Failed to parse GPT JSON response: {e}")
        return None
    return payload if isinstance(payload, dict) else None


def _normalize_intent(value: Any) -> Intent:
    if not isinstance(value, str):
        return Intent.UNKNOWN
    key = value.strip().upper().replace("-", "_")
    try:
        return Intent(key)
    except ValueError:
        logger.warning(f"Unrecognized intent from GPT: {value}")
        return Intent.UNKNOWN


def _clamp_confidence(value: Any) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(confidence):
        return 0.0
    return max(0.0, min(1.0, confidence))


def _to_minor_units(value: Any) -> Optional[int]:
    """Major units -> integer minor units; zero or missing -> None."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        value = value.replace("R$", "").strip().replace(",", ".")
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return None
    minor = amount * 100
    if not math.isfinite(minor) or minor <= 0 or minor > MAX_AMOUNT_MINOR_UNITS:
        return None
    return round(minor)


def _normalize_installments(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        count = int(value)
    except (TypeError, ValueError, OverflowError):
        # NaN, Infinity and junk are "not an installment purchase"
        return None
    if MIN_INSTALLMENTS <= count <= MAX_INSTALLMENTS:
        return count
    return None


def _parse_date(value: Any) -> Optional[datetime]:
    """'2026-03-05' -> 2026-03-05 12:00 (naive UTC)"""
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = datetime.strptime(value.strip()[:10], "%Y-%m-%d")
    except ValueError:
        return None
    return parsed.replace(hour=12)


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
