# -*- coding: utf-8 -*-
"""
Natural-language understanding gateway.

Main entry points:
- parse_user_message(message, context) -> AIResponse
- transcribe_audio(audio_bytes, mime_type) -> str

Usage:
    from chatledger.nlu import parse_user_message
    response = parse_user_message("gastei 50 no mercado", context)
"""

from .gateway import parse_user_message, normalize_ai_response
from .transcription import transcribe_audio, validate_audio
from .types import AIResponse, Intent

__all__ = [
    "parse_user_message",
    "normalize_ai_response",
    "transcribe_audio",
    "validate_audio",
    "AIResponse",
    "Intent",
]
