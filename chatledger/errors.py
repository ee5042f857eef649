# -*- coding: utf-8 -*-
"""
Error Types

Error codes, user-facing message templates and the exception hierarchy
shared by the resolution engine and the transports.
"""

from enum import Enum
from dataclasses import dataclass
from typing import Optional


class ErrorCode(Enum):
    """Resolution error codes"""

    CHAT_NOT_LINKED = "chat_not_linked"           # chat has no budget member
    NO_DEFAULT_ACCOUNT = "no_default_account"     # budget has no paying account
    INFERENCE_FAILED = "inference_failed"         # service error / timeout
    AUDIO_TOO_LONG = "audio_too_long"
    AUDIO_TOO_LARGE = "audio_too_large"
    AUDIO_NOT_UNDERSTOOD = "audio_not_understood"
    INVALID_AMOUNT = "invalid_amount"
    INVALID_INSTALLMENTS = "invalid_installments"
    INCOMPLETE_DRAFT = "incomplete_draft"
    NO_CATEGORY_GROUPS = "no_category_groups"    # budget has no category groups
    CHAT_BUSY = "chat_busy"                       # per-chat lock not acquired


# User-facing message templates (pt-BR)
ERROR_MESSAGES = {
    ErrorCode.CHAT_NOT_LINKED: (
        "Esta conversa ainda não está vinculada a um orçamento.\n\n"
        "Acesse o app e vá em Configurações > Conectar chat."
    ),
    ErrorCode.NO_DEFAULT_ACCOUNT: (
        "Você precisa configurar uma conta padrão no app primeiro.\n\n"
        "Cadastre uma conta corrente, dinheiro ou cartão e tente novamente."
    ),
    ErrorCode.INFERENCE_FAILED: "Não consegui interpretar a mensagem agora.",
    ErrorCode.AUDIO_TOO_LONG: "O áudio deve ter no máximo {max_seconds} segundos.",
    ErrorCode.AUDIO_TOO_LARGE: "O arquivo de áudio é muito grande (máximo {max_mb} MB).",
    ErrorCode.AUDIO_NOT_UNDERSTOOD: (
        "Não consegui entender o áudio.\n\n"
        "Tente falar mais perto do microfone ou envie uma mensagem de texto."
    ),
    ErrorCode.INVALID_AMOUNT: (
        "Valor inválido.\n\n"
        "Envie um valor como:\n"
        "• <code>50</code>\n"
        "• <code>35,90</code>\n"
        "• <code>50 mercado</code>"
    ),
    ErrorCode.INVALID_INSTALLMENTS: "Número de parcelas inválido: {count} (use de 2 a 24).",
    ErrorCode.INCOMPLETE_DRAFT: "Erro: dados incompletos. Tente novamente.",
    ErrorCode.NO_CATEGORY_GROUPS: (
        "Nenhum grupo de categorias configurado.\n\n"
        "Crie os grupos do orçamento no app antes de criar categorias pelo chat."
    ),
    ErrorCode.CHAT_BUSY: "Ainda estou processando sua mensagem anterior. Tente novamente em instantes.",
}


@dataclass
class ChatLedgerError(Exception):
    """Base error carrying a code and a user-facing message"""

    code: ErrorCode
    message: str
    details: Optional[dict] = None

    def __str__(self) -> str:
        return self.message

    @classmethod
    def from_code(cls, code: ErrorCode, **kwargs) -> "ChatLedgerError":
        """Build the error from its code, filling the message template"""
        template = ERROR_MESSAGES.get(code, "Erro inesperado")
        message = template.format(**kwargs) if kwargs else template
        return cls(code=code, message=message, details=kwargs if kwargs else None)


class ConfigurationError(ChatLedgerError):
    """Budget setup is incomplete; the user must fix it in the app."""


class InferenceError(ChatLedgerError):
    """The inference service failed, timed out or was unreachable."""


class AudioValidationError(ChatLedgerError):
    """Voice note rejected before or after transcription."""


class ContractError(ChatLedgerError):
    """A caller violated a component contract (programming error)."""


class ChatBusyError(ChatLedgerError):
    """Another event of the same chat still holds the chat lock."""
