# -*- coding: utf-8 -*-
"""
Conversation Engine

Drives one unit of work per inbound chat event:

1. Serialize on the chat (per-chat lock) and load its ConversationState
2. Slash commands are handled first (/ajuda, /desfazer, /cancelar)
3. Free text while a button answer is expected resets the flow to IDLE and
   the text is processed as a brand-new message
4. New messages go through the NLU gateway, entity matcher, scheduled
   resolver and confidence router; button presses advance the pending flow
5. The resulting state is written back once, at the end of the unit of work

Inference failures degrade to manual entry (amount from the text, category
from a choice list).
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, List, Optional

from chatledger.engine import messages
from chatledger.engine.committer import TransactionCommitter
from chatledger.engine.queries import QueryExecutor
from chatledger.engine.router import Outcome, route_expense, route_income
from chatledger.engine.scheduled_resolver import ScheduledTransactionResolver
from chatledger.engine.state import (
    FREE_TEXT_STEPS,
    AwaitingAccount,
    AwaitingCategory,
    AwaitingConfirmation,
    AwaitingNewCategoryConfirm,
    AwaitingNewCategoryGroup,
    AwaitingNewCategoryName,
    ConversationState,
    ExpenseDraft,
    IncomeDraft,
    NewCategoryDraft,
    TransferDraft,
)
from chatledger.errors import (
    AudioValidationError,
    ChatBusyError,
    ChatLedgerError,
    ConfigurationError,
    ErrorCode,
    InferenceError,
)
from chatledger.ledger.repository import LedgerRepository
from chatledger.ledger.types import AccountRef, ChatMember, UserContext
from chatledger.messaging.adapter import (
    ACCOUNT_PREFIX,
    CANCEL,
    CATEGORY_PREFIX,
    CONFIRM,
    GROUP_PREFIX,
    NEWCAT_ACCEPT,
    NEWCAT_EXISTING,
    NEWCAT_RENAME,
    Choice,
    MessagingAdapter,
)
from chatledger.nlu.gateway import parse_user_message
from chatledger.nlu.transcription import transcribe_audio, validate_audio
from chatledger.nlu.types import AIResponse, ExpenseData, IncomeData, Intent, TransferData
from chatledger.services.audit_logger import AuditLogger
from chatledger.shared.dates import local_today
from chatledger.shared.entity_matcher import (
    match_account,
    match_category,
    match_income_source,
    suggest_group_code,
)
from chatledger.shared.formatters import account_icon
from chatledger.shared.text_utils import capitalize_first, parse_amount, strip_amount, title_case

logger = logging.getLogger(__name__)

HELP_COMMANDS = {"/start", "/ajuda", "/help"}
UNDO_COMMANDS = {"/desfazer", "/undo"}
CANCEL_COMMANDS = {"/cancelar", "/cancel"}


def _error_message(code: ErrorCode, **kwargs) -> str:
    return ChatLedgerError.from_code(code, **kwargs).message


class ConversationEngine:
    def __init__(
        self,
        adapter: MessagingAdapter,
        repository: Optional[LedgerRepository] = None,
        parse: Callable[[str, UserContext], AIResponse] = parse_user_message,
        transcribe: Callable[[bytes, str], Optional[str]] = transcribe_audio,
    ):
        self.adapter = adapter
        self.platform = adapter.platform
        self.repository = repository or LedgerRepository()
        self.resolver = ScheduledTransactionResolver(self.repository)
        self.committer = TransactionCommitter(self.repository, source=self.platform)
        self.queries = QueryExecutor(self.repository)
        self.audit = AuditLogger(self.repository, platform=self.platform)
        self.parse = parse
        self.transcribe = transcribe

    # ==================================================================
    # Entry points (one unit of work each)
    # ==================================================================

    def handle_text(self, chat_id: str, text: str) -> None:
        """Handle a text message from a chat."""
        text = (text or "").strip()
        if not text:
            return
        self._serialized(chat_id, lambda: self._handle_text(chat_id, text))

    def handle_voice(
        self,
        chat_id: str,
        duration_seconds: Optional[float],
        size_bytes: Optional[int],
        mime_type: str,
        fetch_audio: Callable[[], bytes],
    ) -> None:
        """
        Handle a voice note.

        Args:
            chat_id: chat the note came from
            duration_seconds, size_bytes: metadata reported by the platform
            mime_type: audio mime type
            fetch_audio: downloads the audio; only called once limits pass
        """
        self._serialized(
            chat_id, lambda: self._handle_voice(chat_id, duration_seconds, size_bytes, mime_type, fetch_audio)
        )

    def handle_choice(self, chat_id: str, choice_id: str, interaction_id: Optional[str] = None) -> None:
        """Handle a button press (choice id) from a chat."""
        self.adapter.acknowledge_interaction(interaction_id)
        self._serialized(chat_id, lambda: self._handle_choice(chat_id, choice_id))

    def _serialized(self, chat_id: str, work: Callable[[], None]) -> None:
        """Run one event under the chat lock; a busy chat only gets a retry message."""
        try:
            with self.adapter.state_store.chat_lock(chat_id):
                work()
        except ChatBusyError as e:
            logger.warning(f"Dropped event for busy chat {chat_id}")
            self.adapter.send_message(chat_id, e.message)

    def _handle_text(self, chat_id: str, text: str) -> None:
        state = self.adapter.load_state(chat_id)
        if text.startswith("/"):
            new_state = self._handle_command(chat_id, text, state)
        else:
            member = self._require_member(chat_id)
            if member is None:
                return
            new_state = self._safely(chat_id, state, lambda: self._dispatch_text(chat_id, text, member, state, []))
        self.adapter.update_state(chat_id, new_state)

    def _handle_voice(
        self,
        chat_id: str,
        duration_seconds: Optional[float],
        size_bytes: Optional[int],
        mime_type: str,
        fetch_audio: Callable[[], bytes],
    ) -> None:
        member = self._require_member(chat_id)
        if member is None:
            return

        try:
            validate_audio(duration_seconds, size_bytes)
        except AudioValidationError as e:
            self.adapter.send_message(chat_id, e.message)
            return

        state = self.adapter.load_state(chat_id)
        progress_id = self.adapter.send_message(chat_id, messages.TRANSCRIBING)
        queued = [progress_id] if progress_id else []

        try:
            text = self.transcribe(fetch_audio(), mime_type)
        except AudioValidationError as e:
            self._flush(chat_id, queued)
            self.adapter.send_message(chat_id, e.message)
            return
        except Exception as e:
            logger.error(f"Voice note from chat {chat_id} could not be transcribed: {e}")
            text = None

        if not text:
            self._flush(chat_id, queued)
            self.adapter.send_message(chat_id, _error_message(ErrorCode.AUDIO_NOT_UNDERSTOOD))
            return

        echo_id = self.adapter.send_message(chat_id, messages.format_transcription(text))
        if echo_id:
            queued.append(echo_id)

        new_state = self._safely(chat_id, state, lambda: self._dispatch_text(chat_id, text, member, state, queued))
        self.adapter.update_state(chat_id, new_state)

    def _handle_choice(self, chat_id: str, choice_id: str) -> None:
        member = self._require_member(chat_id)
        if member is None:
            return

        state = self.adapter.load_state(chat_id)
        new_state = self._safely(chat_id, state, lambda: self._dispatch_choice(chat_id, choice_id, member, state))
        self.adapter.update_state(chat_id, new_state)

    # ==================================================================
    # Plumbing
    # ==================================================================

    def _require_member(self, chat_id: str) -> Optional[ChatMember]:
        member = self.repository.find_chat_member(self.platform, str(chat_id))
        if member is None:
            logger.info(f"Message from unlinked chat {chat_id}")
            self.adapter.send_message(chat_id, _error_message(ErrorCode.CHAT_NOT_LINKED))
        return member

    def _safely(self, chat_id: str, state: ConversationState, work: Callable[[], ConversationState]) -> ConversationState:
        """Run a unit of work; user-facing errors end the flow with their message."""
        try:
            return work()
        except ChatLedgerError as e:
            logger.warning(f"Flow for chat {chat_id} ended with {e.code.value}")
            self._flush(chat_id, state.messages_to_delete)
            self.adapter.send_message(chat_id, e.message)
            self.audit.mark_cancelled(state.audit_log_id)
            return state.reset()

    def _flush(self, chat_id: str, message_ids: List[str]) -> None:
        if message_ids:
            self.adapter.delete_messages(chat_id, list(message_ids))

    def _context(self, member: ChatMember) -> UserContext:
        today = local_today()
        return self.repository.load_user_context(member.budget_id, member.member_id, today.year, today.month)

    def _prompt(
        self,
        chat_id: str,
        state: ConversationState,
        queued: List[str],
        send: Callable[[], Optional[str]],
        payload,
        audit_log_id: Optional[str] = None,
    ) -> ConversationState:
        """Delete queued messages, send a new prompt and wait for its answer."""
        self._flush(chat_id, queued)
        message_id = send()
        return state.advance(payload, [message_id] if message_id else [], audit_log_id)

    def _finish(self, chat_id: str, state: ConversationState, queued: List[str], text: str, **reset) -> ConversationState:
        """Delete queued messages, send the final message and return to IDLE."""
        self._flush(chat_id, queued)
        self.adapter.send_message(chat_id, text)
        return state.reset(**reset)

    # ==================================================================
    # Commands
    # ==================================================================

    def _handle_command(self, chat_id: str, text: str, state: ConversationState) -> ConversationState:
        command = text.split()[0].split("@")[0].lower()
        logger.info(f"Command {command} from chat {chat_id}")

        if command in HELP_COMMANDS:
            if self._require_member(chat_id) is None:
                return state
            self.adapter.send_message(chat_id, messages.HELP_MESSAGE)
            return state

        if command in UNDO_COMMANDS:
            if self._require_member(chat_id) is None:
                return state
            return self._undo(chat_id, state)

        if command in CANCEL_COMMANDS:
            self.audit.mark_cancelled(state.audit_log_id)
            return self._finish(chat_id, state, state.messages_to_delete, messages.OPERATION_CANCELLED)

        self.adapter.send_message(chat_id, messages.UNKNOWN_COMMAND)
        return state

    def _undo(self, chat_id: str, state: ConversationState) -> ConversationState:
        if not state.last_transaction_id:
            self.adapter.send_message(chat_id, messages.NOTHING_TO_UNDO)
            return state

        deleted = self.committer.undo(state.last_transaction_id)
        if deleted is None:
            self.adapter.send_message(chat_id, messages.UNDO_TARGET_MISSING)
        else:
            self.adapter.send_message(chat_id, messages.format_undone(deleted.amount, deleted.description))
        return replace(state, last_transaction_id=None)

    # ==================================================================
    # Free text
    # ==================================================================

    def _dispatch_text(
        self,
        chat_id: str,
        text: str,
        member: ChatMember,
        state: ConversationState,
        queued: List[str],
    ) -> ConversationState:
        if state.step not in FREE_TEXT_STEPS:
            # The user ignored the buttons: drop the pending flow and start over.
            logger.info(f"Chat {chat_id}: free text in {state.step.value}, resetting to IDLE")
            self._flush(chat_id, state.messages_to_delete)
            self.audit.mark_cancelled(state.audit_log_id)
            state = state.reset()
        elif isinstance(state.payload, AwaitingNewCategoryName):
            return self._receive_category_name(chat_id, text, state, queued)

        return self._process_message(chat_id, text, member, state, queued)

    def _process_message(
        self,
        chat_id: str,
        text: str,
        member: ChatMember,
        state: ConversationState,
        queued: List[str],
    ) -> ConversationState:
        context = self._context(member)
        try:
            ai_response = self.parse(text, context)
        except InferenceError as e:
            return self._manual_entry(chat_id, text, context, state, queued, e)

        log_id = self.audit.create(chat_id, text, ai_response, context)
        logger.info(f"Chat {chat_id}: {ai_response.intent.value} ({ai_response.confidence:.2f})")
        intent = ai_response.intent

        if intent == Intent.REGISTER_EXPENSE and isinstance(ai_response.data, ExpenseData):
            return self._handle_expense(chat_id, ai_response, ai_response.data, context, state, queued, log_id)
        if intent == Intent.REGISTER_INCOME and isinstance(ai_response.data, IncomeData):
            return self._handle_income(chat_id, ai_response, ai_response.data, context, state, queued, log_id)
        if intent == Intent.TRANSFER and isinstance(ai_response.data, TransferData):
            return self._handle_transfer(chat_id, ai_response.data, context, state, queued, log_id)

        if intent.is_query:
            reply = self.queries.run(intent, ai_response.data, context)
            self.audit.mark_confirmed(log_id)
        elif intent == Intent.GREETING:
            reply = messages.GREETING_MESSAGE
            self.audit.mark_confirmed(log_id)
        else:
            reply = messages.UNKNOWN_MESSAGE
        self.audit.set_bot_response(log_id, reply)
        return self._finish(chat_id, state, queued, reply)

    def _manual_entry(
        self,
        chat_id: str,
        text: str,
        context: UserContext,
        state: ConversationState,
        queued: List[str],
        error: InferenceError,
    ) -> ConversationState:
        """Inference is down: take the amount from the text and ask for the category."""
        logger.warning(f"Chat {chat_id}: inference failed, falling back to manual entry")
        self.audit.create(chat_id, text, None, context, error_message=str(error.__cause__ or error))

        amount = parse_amount(text)
        if amount is None:
            return self._finish(chat_id, state, queued, _error_message(ErrorCode.INVALID_AMOUNT))

        account = self._default_account(context)
        draft = ExpenseDraft(
            amount=amount,
            description=capitalize_first(strip_amount(text)) or None,
            account_id=account.id,
            account_name=account.name,
        )
        return self._ask_category(chat_id, state, queued, draft, context)

    # ==================================================================
    # Expense
    # ==================================================================

    def _default_account(self, context: UserContext) -> AccountRef:
        account = context.find_account(context.default_account_id)
        if account is None:
            raise ConfigurationError.from_code(ErrorCode.NO_DEFAULT_ACCOUNT)
        return account

    def _paying_account(self, data: ExpenseData, context: UserContext):
        """Returns (account, matched_by_hint)."""
        match = match_account(data.account_hint, context.accounts)
        if match:
            return match.entity, True
        if data.is_installment:
            card = next((a for a in context.accounts if a.type == "credit_card"), None)
            if card:
                return card, False
        return self._default_account(context), False

    def _handle_expense(
        self,
        chat_id: str,
        ai_response: AIResponse,
        data: ExpenseData,
        context: UserContext,
        state: ConversationState,
        queued: List[str],
        log_id: Optional[str],
    ) -> ConversationState:
        account, account_matched = self._paying_account(data, context)
        category_match = match_category(data.category_hint, context.categories)
        category = category_match.entity if category_match else None

        if data.amount is None:
            scheduled = self.resolver.match_by_hint(
                context.budget_id,
                category.id if category else None,
                data.description or data.category_hint,
                context.current_year,
                context.current_month,
                "expense",
            )
            decision = route_expense(ai_response.confidence, None, category_match, data.category_hint, scheduled)
            if decision.outcome == Outcome.CONFIRM:
                tx = decision.scheduled_transaction
                draft = ExpenseDraft(
                    amount=tx.amount,
                    description=tx.description,
                    category_id=tx.category_id,
                    category_name=tx.category_name,
                    account_id=account.id,
                    account_name=account.name,
                )
                return self._prompt(
                    chat_id, state, queued,
                    lambda: self.adapter.send_confirmation(chat_id, messages.format_scheduled_expense_confirmation(tx)),
                    AwaitingConfirmation(draft, scheduled_transaction_id=tx.id),
                    log_id,
                )
            self.audit.set_bot_response(log_id, messages.EXPENSE_AMOUNT_MISSING)
            return self._finish(chat_id, state, queued, messages.EXPENSE_AMOUNT_MISSING)

        scheduled = None
        if category:
            scheduled = self.resolver.match_by_amount(
                context.budget_id, category.id, data.amount, context.current_year, context.current_month, "expense"
            )
        decision = route_expense(ai_response.confidence, data.amount, category_match, data.category_hint, scheduled)
        logger.info(f"Expense route: {decision.outcome.value} ({decision.combined_confidence:.2f})")

        draft = ExpenseDraft(
            amount=data.amount,
            description=capitalize_first(data.description),
            category_id=category.id if category else None,
            category_name=category.name if category else None,
            account_id=account.id,
            account_name=account.name,
            is_installment=data.is_installment,
            total_installments=data.total_installments if data.is_installment else None,
            date=data.date,
        )

        if decision.outcome == Outcome.AUTO_COMMIT:
            result = self.committer.commit(draft, context)
            reply = messages.format_expense_committed(draft, result, category.icon)
            self.audit.mark_confirmed(log_id)
            self.audit.set_bot_response(log_id, reply)
            return self._finish(chat_id, state, queued, reply, last_transaction_id=result.transaction_id)

        if decision.outcome == Outcome.CONFIRM:
            tx = decision.scheduled_transaction
            text = messages.format_expense_confirmation(draft, category.icon, has_scheduled=tx is not None)
            return self._prompt(
                chat_id, state, queued,
                lambda: self.adapter.send_confirmation(chat_id, text),
                AwaitingConfirmation(draft, scheduled_transaction_id=tx.id if tx else None),
                log_id,
            )

        if decision.outcome == Outcome.CREATE_CATEGORY:
            new_category = NewCategoryDraft(
                suggested_name=title_case(data.category_hint),
                suggested_group_code=suggest_group_code(data.category_hint),
            )
            text = messages.format_new_category_prompt(draft, data.category_hint)
            return self._prompt(
                chat_id, state, queued,
                lambda: self.adapter.send_new_category_prompt(chat_id, text, new_category.suggested_name),
                AwaitingNewCategoryConfirm(draft, new_category),
                log_id,
            )

        draft = replace(draft, category_id=None, category_name=None)
        if not account_matched and len(context.accounts) > 1:
            return self._ask_account(chat_id, state, queued, draft, context, log_id)
        return self._ask_category(chat_id, state, queued, draft, context, log_id)

    def _ask_account(
        self,
        chat_id: str,
        state: ConversationState,
        queued: List[str],
        draft: ExpenseDraft,
        context: UserContext,
        log_id: Optional[str] = None,
    ) -> ConversationState:
        choices = [Choice(f"{ACCOUNT_PREFIX}{a.id}", f"{account_icon(a.type)} {a.name}") for a in context.accounts]
        text = messages.format_registration_prompt(replace(draft, account_name=None), "Qual conta foi usada?")
        return self._prompt(
            chat_id, state, queued,
            lambda: self.adapter.send_choice_list(chat_id, text, choices),
            AwaitingAccount(draft),
            log_id,
        )

    def _ask_category(
        self,
        chat_id: str,
        state: ConversationState,
        queued: List[str],
        draft: ExpenseDraft,
        context: UserContext,
        log_id: Optional[str] = None,
        title: Optional[str] = None,
    ) -> ConversationState:
        choices = [Choice(f"{CATEGORY_PREFIX}{c.id}", f"{c.icon or '📁'} {c.name}") for c in context.categories]
        text = title or messages.format_registration_prompt(draft, "Selecione a categoria:")
        return self._prompt(
            chat_id, state, queued,
            lambda: self.adapter.send_choice_list(chat_id, text, choices),
            AwaitingCategory(draft),
            log_id,
        )

    # ==================================================================
    # Income / transfer
    # ==================================================================

    def _handle_income(
        self,
        chat_id: str,
        ai_response: AIResponse,
        data: IncomeData,
        context: UserContext,
        state: ConversationState,
        queued: List[str],
        log_id: Optional[str],
    ) -> ConversationState:
        account_match = match_account(data.account_hint, context.accounts)
        account = account_match.entity if account_match else self._default_account(context)
        source_match = match_income_source(data.income_source_hint, context.income_sources)
        source = source_match.entity if source_match else None

        if data.amount is None:
            scheduled = self.resolver.match_by_hint(
                context.budget_id,
                source.id if source else None,
                data.description or data.income_source_hint,
                context.current_year,
                context.current_month,
                "income",
            )
            decision = route_income(ai_response.confidence, None, source_match, scheduled)
            if decision.outcome == Outcome.CONFIRM:
                tx = decision.scheduled_transaction
                draft = IncomeDraft(
                    amount=tx.amount,
                    description=tx.description,
                    income_source_id=tx.income_source_id,
                    income_source_name=tx.income_source_name,
                    account_id=account.id,
                    account_name=account.name,
                )
                return self._prompt(
                    chat_id, state, queued,
                    lambda: self.adapter.send_confirmation(chat_id, messages.format_scheduled_income_confirmation(tx)),
                    AwaitingConfirmation(draft, scheduled_transaction_id=tx.id),
                    log_id,
                )
            self.audit.set_bot_response(log_id, messages.INCOME_AMOUNT_MISSING)
            return self._finish(chat_id, state, queued, messages.INCOME_AMOUNT_MISSING)

        scheduled = None
        if source:
            scheduled = self.resolver.match_by_amount(
                context.budget_id, source.id, data.amount, context.current_year, context.current_month, "income"
            )
        decision = route_income(ai_response.confidence, data.amount, source_match, scheduled)
        logger.info(f"Income route: {decision.outcome.value} ({decision.combined_confidence:.2f})")

        draft = IncomeDraft(
            amount=data.amount,
            description=capitalize_first(data.description),
            income_source_id=source.id if source else None,
            income_source_name=source.name if source else None,
            account_id=account.id,
            account_name=account.name,
            date=data.date,
        )

        if decision.outcome == Outcome.AUTO_COMMIT:
            result = self.committer.commit(draft, context)
            reply = messages.format_income_committed(draft, result)
            self.audit.mark_confirmed(log_id)
            self.audit.set_bot_response(log_id, reply)
            return self._finish(chat_id, state, queued, reply, last_transaction_id=result.transaction_id)

        tx = decision.scheduled_transaction
        text = messages.format_income_confirmation(draft, has_scheduled=tx is not None)
        return self._prompt(
            chat_id, state, queued,
            lambda: self.adapter.send_confirmation(chat_id, text),
            AwaitingConfirmation(draft, scheduled_transaction_id=tx.id if tx else None),
            log_id,
        )

    def _handle_transfer(
        self,
        chat_id: str,
        data: TransferData,
        context: UserContext,
        state: ConversationState,
        queued: List[str],
        log_id: Optional[str],
    ) -> ConversationState:
        if data.amount is None:
            self.audit.set_bot_response(log_id, messages.TRANSFER_AMOUNT_MISSING)
            return self._finish(chat_id, state, queued, messages.TRANSFER_AMOUNT_MISSING)

        from_match = match_account(data.from_account_hint, context.accounts)
        to_match = match_account(data.to_account_hint, context.accounts)
        if from_match is None or to_match is None:
            reply = messages.format_transfer_accounts_missing([a.name for a in context.accounts])
            self.audit.set_bot_response(log_id, reply)
            return self._finish(chat_id, state, queued, reply)

        if from_match.entity.id == to_match.entity.id:
            self.audit.set_bot_response(log_id, messages.TRANSFER_SAME_ACCOUNT)
            return self._finish(chat_id, state, queued, messages.TRANSFER_SAME_ACCOUNT)

        draft = TransferDraft(
            amount=data.amount,
            from_account_id=from_match.entity.id,
            to_account_id=to_match.entity.id,
            from_account_name=from_match.entity.name,
            to_account_name=to_match.entity.name,
            description=capitalize_first(data.description),
        )
        return self._prompt(
            chat_id, state, queued,
            lambda: self.adapter.send_confirmation(chat_id, messages.format_transfer_confirmation(draft)),
            AwaitingConfirmation(draft),
            log_id,
        )

    # ==================================================================
    # Button presses
    # ==================================================================

    def _dispatch_choice(
        self, chat_id: str, choice_id: str, member: ChatMember, state: ConversationState
    ) -> ConversationState:
        logger.info(f"Chat {chat_id}: choice {choice_id} in {state.step.value}")
        payload = state.payload

        if choice_id == CANCEL:
            self.audit.mark_cancelled(state.audit_log_id)
            return self._finish(chat_id, state, state.messages_to_delete, messages.REGISTRATION_CANCELLED)

        if choice_id == CONFIRM and isinstance(payload, AwaitingConfirmation):
            return self._confirm(chat_id, member, state, payload)

        if choice_id.startswith(ACCOUNT_PREFIX) and isinstance(payload, AwaitingAccount):
            return self._choose_account(chat_id, choice_id[len(ACCOUNT_PREFIX):], member, state, payload)

        if choice_id.startswith(CATEGORY_PREFIX) and isinstance(payload, AwaitingCategory):
            return self._choose_category(chat_id, choice_id[len(CATEGORY_PREFIX):], member, state, payload)

        if isinstance(payload, AwaitingNewCategoryConfirm):
            if choice_id == NEWCAT_ACCEPT:
                return self._ask_group(chat_id, state, payload.expense, payload.new_category)
            if choice_id == NEWCAT_RENAME:
                return self._prompt(
                    chat_id, state, state.messages_to_delete,
                    lambda: self.adapter.send_message(chat_id, messages.NEW_CATEGORY_NAME_PROMPT),
                    AwaitingNewCategoryName(payload.expense, payload.new_category),
                )
            if choice_id == NEWCAT_EXISTING:
                return self._ask_category(
                    chat_id, state, state.messages_to_delete, payload.expense,
                    self._context(member), title=messages.SELECT_EXISTING_CATEGORY,
                )

        if choice_id.startswith(GROUP_PREFIX) and isinstance(payload, AwaitingNewCategoryGroup):
            return self._create_category(chat_id, choice_id[len(GROUP_PREFIX):], member, state, payload)

        # Stale button from a flow that already ended (or was reset).
        logger.warning(f"Chat {chat_id}: choice {choice_id} does not fit {state.step.value}")
        self.audit.mark_cancelled(state.audit_log_id)
        return self._finish(chat_id, state, state.messages_to_delete, _error_message(ErrorCode.INCOMPLETE_DRAFT))

    def _confirm(
        self, chat_id: str, member: ChatMember, state: ConversationState, payload: AwaitingConfirmation
    ) -> ConversationState:
        context = self._context(member)
        draft = payload.draft
        result = self.committer.commit(draft, context, payload.scheduled_transaction_id)
        if result is None:
            self.audit.mark_cancelled(state.audit_log_id)
            return self._finish(chat_id, state, state.messages_to_delete, messages.SCHEDULED_ALREADY_RESOLVED)

        if result.cleared_scheduled:
            reply = messages.format_scheduled_cleared(result, draft.kind)
        elif isinstance(draft, ExpenseDraft):
            category = context.find_category(draft.category_id)
            reply = messages.format_expense_committed(draft, result, category.icon if category else None)
        elif isinstance(draft, IncomeDraft):
            reply = messages.format_income_committed(draft, result)
        else:
            reply = messages.format_transfer_committed(draft)

        if payload.corrected:
            self.audit.mark_corrected(
                state.audit_log_id,
                corrected_intent=Intent.REGISTER_EXPENSE.value,
                corrected_data={
                    "amount": draft.amount,
                    "category_id": getattr(draft, "category_id", None),
                    "account_id": getattr(draft, "account_id", None),
                },
            )
        else:
            self.audit.mark_confirmed(state.audit_log_id)
        self.audit.set_bot_response(state.audit_log_id, reply)
        return self._finish(chat_id, state, state.messages_to_delete, reply, last_transaction_id=result.transaction_id)

    def _choose_account(
        self,
        chat_id: str,
        account_id: str,
        member: ChatMember,
        state: ConversationState,
        payload: AwaitingAccount,
    ) -> ConversationState:
        context = self._context(member)
        account = context.find_account(account_id)
        if account is None:
            self.audit.mark_cancelled(state.audit_log_id)
            return self._finish(chat_id, state, state.messages_to_delete, _error_message(ErrorCode.INCOMPLETE_DRAFT))

        draft = replace(payload.expense, account_id=account.id, account_name=account.name)
        return self._ask_category(chat_id, state, state.messages_to_delete, draft, context)

    def _choose_category(
        self,
        chat_id: str,
        category_id: str,
        member: ChatMember,
        state: ConversationState,
        payload: AwaitingCategory,
    ) -> ConversationState:
        context = self._context(member)
        category = context.find_category(category_id)
        if category is None:
            self.audit.mark_cancelled(state.audit_log_id)
            return self._finish(chat_id, state, state.messages_to_delete, _error_message(ErrorCode.INCOMPLETE_DRAFT))

        draft = replace(payload.expense, category_id=category.id, category_name=category.name)
        text = messages.format_expense_confirmation(draft, category.icon)
        return self._prompt(
            chat_id, state, state.messages_to_delete,
            lambda: self.adapter.send_confirmation(chat_id, text),
            AwaitingConfirmation(draft, corrected=True),
        )

    # ==================================================================
    # New category
    # ==================================================================

    def _ask_group(
        self,
        chat_id: str,
        state: ConversationState,
        draft: ExpenseDraft,
        new_category: NewCategoryDraft,
        queued: Optional[List[str]] = None,
    ) -> ConversationState:
        groups = self.repository.list_groups()
        if not groups:
            raise ConfigurationError.from_code(ErrorCode.NO_CATEGORY_GROUPS)

        # Suggested group first.
        groups.sort(key=lambda g: g.code != new_category.suggested_group_code)
        choices = [
            Choice(f"{GROUP_PREFIX}{g.id}", f"⭐ {g.name}" if g.code == new_category.suggested_group_code else g.name)
            for g in groups
        ]
        text = messages.format_group_prompt(new_category.name)
        return self._prompt(
            chat_id, state, state.messages_to_delete if queued is None else queued,
            lambda: self.adapter.send_group_list(chat_id, text, choices),
            AwaitingNewCategoryGroup(draft, new_category),
        )

    def _receive_category_name(
        self,
        chat_id: str,
        text: str,
        state: ConversationState,
        queued: List[str],
    ) -> ConversationState:
        payload = state.payload
        name = capitalize_first(text.strip())
        new_category = replace(payload.new_category, custom_name=name)
        return self._ask_group(chat_id, state, payload.expense, new_category, queued=state.messages_to_delete + queued)

    def _create_category(
        self,
        chat_id: str,
        group_id: str,
        member: ChatMember,
        state: ConversationState,
        payload: AwaitingNewCategoryGroup,
    ) -> ConversationState:
        context = self._context(member)
        group = next((g for g in self.repository.list_groups() if g.id == group_id), None)
        if group is None:
            self.audit.mark_cancelled(state.audit_log_id)
            return self._finish(chat_id, state, state.messages_to_delete, _error_message(ErrorCode.INCOMPLETE_DRAFT))

        category = self.repository.create_category(context.budget_id, group.id, payload.new_category.name)
        logger.info(f"Category created from chat {chat_id}: {category.name} ({group.code})")

        draft = replace(payload.expense, category_id=category.id, category_name=category.name)
        result = self.committer.commit(draft, context)
        reply = messages.format_category_created(category.name, group.name, draft, result)

        self.audit.mark_corrected(
            state.audit_log_id,
            corrected_intent=Intent.REGISTER_EXPENSE.value,
            corrected_data={"amount": draft.amount, "category_id": category.id, "new_category": category.name},
        )
        self.audit.set_bot_response(state.audit_log_id, reply)
        return self._finish(chat_id, state, state.messages_to_delete, reply, last_transaction_id=result.transaction_id)
