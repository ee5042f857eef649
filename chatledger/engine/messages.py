# -*- coding: utf-8 -*-
"""
Chat message formatters (pt-BR).

Messages use the small HTML subset understood by Telegram (<b>, <code>);
the LINE adapter strips the tags before sending.
"""

from typing import List, Optional

from chatledger.engine.committer import CommitResult
from chatledger.engine.state import ExpenseDraft, IncomeDraft, TransferDraft
from chatledger.ledger.types import ScheduledTransaction
from chatledger.shared.formatters import format_currency
from chatledger.shared.installments import installment_amount

DEFAULT_CATEGORY_ICON = "📁"
UNDO_HINT = "Use /desfazer para remover."

HELP_MESSAGE = (
    "📚 <b>O que posso fazer:</b>\n\n"
    "<b>Registrar gastos:</b>\n"
    "\"gastei 50 no mercado\"\n"
    "\"paguei 200 de luz\"\n"
    "\"comprei uma TV de 2000 em 10x no cartão\"\n\n"
    "<b>Registrar receitas:</b>\n"
    "\"recebi 5000 de salário\"\n"
    "\"entrou 150 de freelance\"\n\n"
    "<b>Transferências:</b>\n"
    "\"transferi 500 da conta corrente para a poupança\"\n\n"
    "<b>Consultas:</b>\n"
    "\"quanto gastei esse mês?\"\n"
    "\"quanto sobrou em alimentação?\"\n"
    "\"como está minha meta de viagem?\"\n\n"
    "<b>Áudio:</b>\n"
    "Envie uma mensagem de voz!\n\n"
    "<b>Comandos:</b>\n"
    "/ajuda - Esta mensagem\n"
    "/desfazer - Desfazer último registro\n"
    "/cancelar - Cancelar operação atual"
)

GREETING_MESSAGE = (
    "Olá! 👋 Como posso ajudar?\n\n"
    "Você pode me enviar coisas como:\n"
    "\"gastei 50 no mercado\"\n"
    "\"recebi 5000 de salário\"\n"
    "\"quanto gastei esse mês?\""
)

UNKNOWN_MESSAGE = (
    "Não entendi bem. Posso ajudar com:\n\n"
    "<b>Registrar gastos:</b>\n"
    "\"gastei 50 no mercado\"\n"
    "\"paguei 200 de luz\"\n\n"
    "<b>Registrar receitas:</b>\n"
    "\"recebi 5000 de salário\"\n\n"
    "<b>Consultas:</b>\n"
    "\"quanto gastei esse mês?\"\n"
    "\"quanto sobrou em alimentação?\"\n"
    "\"como está minha meta de viagem?\""
)

UNKNOWN_COMMAND = "Comando não reconhecido. Use /ajuda para ver os comandos disponíveis."
NOTHING_TO_UNDO = "❌ Nenhuma transação recente para desfazer."
UNDO_TARGET_MISSING = "❌ Transação não encontrada ou já foi removida."
OPERATION_CANCELLED = "❌ Operação cancelada."
REGISTRATION_CANCELLED = "Registro cancelado."
SCHEDULED_ALREADY_RESOLVED = "Essa transação agendada já foi resolvida. Nada foi alterado."
TRANSCRIBING = "🎙️ Transcrevendo áudio..."

EXPENSE_AMOUNT_MISSING = (
    "Não encontrei uma despesa agendada correspondente.\n\n"
    "Por favor, informe o valor. Exemplo:\n"
    "\"paguei 200 de luz\""
)
INCOME_AMOUNT_MISSING = (
    "Não encontrei uma receita agendada correspondente.\n\n"
    "Por favor, informe o valor. Exemplo:\n"
    "\"recebi 5000 de salário\""
)
TRANSFER_AMOUNT_MISSING = "Não consegui identificar o valor da transferência."
TRANSFER_SAME_ACCOUNT = "As contas de origem e destino devem ser diferentes."
NEW_CATEGORY_NAME_PROMPT = "✏️ <b>Digite o nome da nova categoria:</b>\n\nExemplo: \"Mercado\", \"Transporte\", \"Lazer\""
SELECT_EXISTING_CATEGORY = "📁 <b>Selecione uma categoria existente:</b>"


def _value_lines(draft: ExpenseDraft) -> str:
    if draft.is_installment and draft.total_installments:
        each = installment_amount(draft.amount, draft.total_installments)
        return (
            f"Valor total: {format_currency(draft.amount)}\n"
            f"Parcelas: {draft.total_installments}x de {format_currency(each)}\n"
        )
    return f"Valor: {format_currency(draft.amount)}\n"


def _description_line(description: Optional[str]) -> str:
    return f"Descrição: {description}\n" if description else ""


def format_expense_committed(draft: ExpenseDraft, result: CommitResult, icon: Optional[str] = None) -> str:
    title = "Compra parcelada registrada!" if result.installments else "Gasto registrado!"
    message = f"✅ <b>{title}</b>\n\n"
    message += f"{icon or DEFAULT_CATEGORY_ICON} {draft.category_name}\n"
    message += _value_lines(draft)
    if draft.account_name:
        message += f"Conta: {draft.account_name}\n"
    message += _description_line(result.description)
    if result.installments:
        first = result.installments[0].date
        message += f"1ª parcela: {first.strftime('%d/%m/%Y')}\n"
    message += f"\n{UNDO_HINT}"
    return message


def format_expense_confirmation(
    draft: ExpenseDraft,
    icon: Optional[str] = None,
    has_scheduled: bool = False,
) -> str:
    message = "📝 <b>Confirmar registro?</b>\n\n"
    message += f"{icon or DEFAULT_CATEGORY_ICON} {draft.category_name}\n"
    message += _value_lines(draft)
    if draft.account_name:
        message += f"Conta: {draft.account_name}\n"
    message += _description_line(draft.description)
    if has_scheduled:
        message += "\n💡 Encontrei uma transação agendada similar que será atualizada."
    return message


def format_scheduled_expense_confirmation(tx: ScheduledTransaction) -> str:
    message = "📝 <b>Confirmar despesa?</b>\n\n"
    message += f"{tx.category_icon or DEFAULT_CATEGORY_ICON} {tx.category_name or 'Sem categoria'}\n"
    message += f"Valor: {format_currency(tx.amount)}\n"
    message += _description_line(tx.description)
    message += "\n💡 Encontrei esta despesa agendada. Deseja marcá-la como paga?"
    return message


def format_scheduled_income_confirmation(tx: ScheduledTransaction) -> str:
    message = "💵 <b>Confirmar receita?</b>\n\n"
    message += f"Fonte: {tx.income_source_name or 'Receita'}\n"
    message += f"Valor: {format_currency(tx.amount)}\n"
    message += _description_line(tx.description)
    message += "\n💡 Encontrei esta receita agendada. Deseja marcá-la como recebida?"
    return message


def format_income_committed(draft: IncomeDraft, result: CommitResult) -> str:
    message = "✅ <b>Receita registrada!</b>\n\n"
    if draft.income_source_name:
        message += f"Fonte: {draft.income_source_name}\n"
    message += f"Valor: {format_currency(result.amount)}\n"
    message += _description_line(result.description)
    message += f"\n{UNDO_HINT}"
    return message


def format_income_confirmation(draft: IncomeDraft, has_scheduled: bool = False) -> str:
    message = "💵 <b>Confirmar receita?</b>\n\n"
    if draft.income_source_name:
        message += f"Fonte: {draft.income_source_name}\n"
    message += f"Valor: {format_currency(draft.amount)}\n"
    message += _description_line(draft.description)
    if has_scheduled:
        message += "\n💡 Encontrei uma receita agendada similar que será atualizada."
    return message


def format_transfer_confirmation(draft: TransferDraft) -> str:
    message = "🔄 <b>Confirmar transferência?</b>\n\n"
    message += f"De: {draft.from_account_name}\n"
    message += f"Para: {draft.to_account_name}\n"
    message += f"Valor: {format_currency(draft.amount)}\n"
    message += _description_line(draft.description)
    return message


def format_transfer_committed(draft: TransferDraft) -> str:
    return (
        "✅ <b>Transferência realizada!</b>\n\n"
        f"De: {draft.from_account_name or 'Conta'}\n"
        f"Para: {draft.to_account_name or 'Conta'}\n"
        f"Valor: {format_currency(draft.amount)}\n\n"
        "Use /desfazer para reverter."
    )


def format_scheduled_cleared(result: CommitResult, tx_type: str) -> str:
    title = "Receita confirmada!" if tx_type == "income" else "Despesa confirmada!"
    message = f"✅ <b>{title}</b>\n\n"
    message += f"Valor: <b>{format_currency(result.amount)}</b>\n"
    message += _description_line(result.description)
    message += f"\n{UNDO_HINT}"
    return message


def format_transfer_accounts_missing(account_names: List[str]) -> str:
    return (
        "Não consegui identificar as contas.\n\n"
        "Suas contas disponíveis:\n"
        + "\n".join(f"- {name}" for name in account_names)
        + "\n\nTente: \"transferi 500 de [conta origem] para [conta destino]\""
    )


def format_registration_prompt(draft: ExpenseDraft, question: str) -> str:
    message = "💰 <b>Registrar gasto</b>\n\n"
    message += _value_lines(draft)
    if draft.account_name:
        message += f"Conta: {draft.account_name}\n"
    message += _description_line(draft.description)
    message += f"\n{question}"
    return message


def format_new_category_prompt(draft: ExpenseDraft, hint: str) -> str:
    message = "💰 <b>Registrar gasto</b>\n\n"
    message += _value_lines(draft)
    message += _description_line(draft.description)
    message += f"\nNão encontrei a categoria \"<b>{hint}</b>\".\n"
    message += "Deseja criar uma nova categoria?"
    return message


def format_group_prompt(category_name: str) -> str:
    return f"📁 <b>Criar categoria \"{category_name}\"</b>\n\nSelecione o grupo para esta categoria:"


def format_category_created(
    category_name: str,
    group_name: Optional[str],
    draft: ExpenseDraft,
    result: CommitResult,
) -> str:
    message = "✅ <b>Categoria criada e gasto registrado!</b>\n\n"
    message += f"📁 Nova categoria: <b>{category_name}</b>\n"
    message += f"📂 Grupo: {group_name or '-'}\n\n"
    message += f"💰 {_value_lines(draft)}"
    message += _description_line(result.description)
    message += "\nUse /desfazer para remover o gasto."
    return message


def format_undone(amount: int, description: Optional[str]) -> str:
    return (
        "✅ Transação desfeita!\n\n"
        f"Valor: {format_currency(amount)}\n"
        f"Descrição: {description or '(sem descrição)'}"
    )


def format_transcription(text: str) -> str:
    return f"🎙️ \"{text}\""
