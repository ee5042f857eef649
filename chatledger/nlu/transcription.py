# -*- coding: utf-8 -*-
"""
Voice note transcription

Validates audio limits before calling the OpenAI transcription API, and maps
the "not understood" sentinel (or an empty transcript) to None.
"""

from __future__ import annotations

import logging
from typing import Optional

from openai import OpenAI

from chatledger.config import OPENAI_API_KEY, OPENAI_TIMEOUT, TRANSCRIBE_MODEL
from chatledger.errors import AudioValidationError, ErrorCode, InferenceError
from chatledger.nlu.prompts import AUDIO_NOT_UNDERSTOOD, TRANSCRIPTION_PROMPT

logger = logging.getLogger(__name__)

MAX_AUDIO_SECONDS = 60
MAX_AUDIO_BYTES = 10 * 1024 * 1024  # 10MB

_EXTENSIONS = {
    "audio/ogg": "ogg",
    "audio/oga": "ogg",
    "audio/opus": "ogg",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/mp4": "m4a",
    "audio/m4a": "m4a",
    "audio/x-m4a": "m4a",
    "audio/aac": "m4a",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/webm": "webm",
}


def validate_audio(duration_seconds: Optional[float], size_bytes: Optional[int]) -> None:
    """
    Reject audio outside the accepted limits.

    Raises:
        AudioValidationError: too long (or zero length), or too large
    """
    if duration_seconds is None or duration_seconds <= 0 or duration_seconds > MAX_AUDIO_SECONDS:
        raise AudioValidationError.from_code(ErrorCode.AUDIO_TOO_LONG, max_seconds=MAX_AUDIO_SECONDS)
    if size_bytes is not None and size_bytes > MAX_AUDIO_BYTES:
        raise AudioValidationError.from_code(
            ErrorCode.AUDIO_TOO_LARGE, max_mb=MAX_AUDIO_BYTES // (1024 * 1024)
        )


def transcribe_audio(audio_bytes: bytes, mime_type: str, client: Optional[OpenAI] = None) -> Optional[str]:
    """
    Transcribe a voice note in pt-BR.

    Returns:
        The transcript, or None when the audio was not understood

    Raises:
        AudioValidationError: payload larger than the size ceiling
        InferenceError: the transcription call failed
    """
    if len(audio_bytes) > MAX_AUDIO_BYTES:
        raise AudioValidationError.from_code(
            ErrorCode.AUDIO_TOO_LARGE, max_mb=MAX_AUDIO_BYTES // (1024 * 1024)
        )

    base_mime = (mime_type or "").split(";")[0].strip().lower()
    filename = f"voice.{_EXTENSIONS.get(base_mime, 'ogg')}"

    try:
        client = client or OpenAI(api_key=OPENAI_API_KEY, timeout=OPENAI_TIMEOUT)
        result = client.audio.transcriptions.create(
            model=TRANSCRIBE_MODEL,
            file=(filename, audio_bytes, base_mime or "audio/ogg"),
            language="pt",
            prompt=TRANSCRIPTION_PROMPT,
        )
    except Exception as e:
        logger.error(f"Transcription API error: {e}")
        raise InferenceError.from_code(ErrorCode.INFERENCE_FAILED) from e

    text = (getattr(result, "text", None) or "").strip()
    if not text or AUDIO_NOT_UNDERSTOOD in text:
        logger.info("Audio not understood")
        return None

    logger.info(f"Transcription: {text}")
    return text
