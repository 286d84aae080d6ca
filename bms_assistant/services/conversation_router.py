"""Conversation router for inbound WhatsApp messages.

`ConversationRouter.handle` runs one dispatch per inbound message and turns
the returned `RouteOutcome` into exactly one reply and exactly one audit row,
whichever branch was taken and even when a downstream call raised.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from bms_assistant.config import Settings
from bms_assistant.logging_config import get_logger, mask_phone
from bms_assistant.services import replies
from bms_assistant.services.audit_service import AuditEntry, AuditLogger
from bms_assistant.services.bridge_service import BridgeContext, BridgeRequest, ExecutionBridge
from bms_assistant.services.draft_service import (
    clear_draft,
    get_active_draft,
    prompt_for_missing_fields,
    save_draft,
)
from bms_assistant.services.intent_parser import IntentParser, ParseContext, ParsedIntent
from bms_assistant.services.intent_service import (
    Confidence,
    Intent,
    get_missing_fields,
    merge_entities,
)
from bms_assistant.services.pending_action_service import (
    claim_pending_action,
    create_pending_action,
    find_active_pending_action,
)
from bms_assistant.services.sender_service import (
    find_sender_mapping,
    is_valid_phone,
    normalize_sender,
    touch_last_used,
)
from bms_assistant.services.usage_service import check_and_increment_usage

logger = get_logger("conversation_router")

HELP_COMMANDS = {"help", "hi", "hello", "menu", "?", "start", "hey"}
CANCEL_COMMANDS = {
    "cancel",
    "reset",
    "start over",
    "stop",
    "quit",
    "exit",
    "clear",
    "nevermind",
    "nvm",
    "forget it",
    "scratch that",
}
YES_REPLIES = {"yes", "y", "yeah", "yep", "ok", "okay", "confirm"}
NO_REPLIES = {"no", "n", "nope"}

UNREGISTERED_AUDIT_LIMIT = 500


class RouteState(str, Enum):
    INVALID_INPUT = "invalid_input"
    UNREGISTERED = "unregistered"
    INACTIVE = "inactive"
    QUOTA_EXCEEDED = "quota_exceeded"
    HELP = "help"
    CANCELLED_DRAFT = "cancelled_draft"
    CONFIRMATION_EXECUTED = "confirmation_executed"
    CONFIRMATION_DECLINED = "confirmation_declined"
    PARSE_FAILED = "parse_failed"
    CLARIFICATION = "clarification"
    AWAITING_DETAILS = "awaiting_details"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    EXECUTED = "executed"
    ERROR = "error"


@dataclass
class InboundMessage:
    from_number: Optional[str]
    body: Optional[str]
    message_sid: Optional[str] = None


@dataclass
class RouteOutcome:
    state: RouteState
    reply: str
    success: bool
    intent: Optional[str] = None
    media_url: Optional[str] = None
    error_message: Optional[str] = None


@dataclass
class SenderIdentity:
    """Plain copy of the mapping fields needed for auditing and execution."""

    tenant_id: UUID
    user_id: Optional[UUID]
    role: str
    display_name: Optional[str]


@dataclass
class Turn:
    inbound: InboundMessage
    phone: str = ""
    body: str = ""
    sender: Optional[SenderIdentity] = None
    started_at: float = field(default_factory=time.monotonic)


def is_yes(text: str) -> bool:
    return text.strip().lower() in YES_REPLIES


def is_no(text: str) -> bool:
    return text.strip().lower() in NO_REPLIES


def _format_amount(amount) -> str:
    if isinstance(amount, (int, float)):
        return f"{amount:,}"
    return str(amount or 0)


def confirmation_message(intent: str, entities: dict) -> str:
    """Human-readable restatement of an action awaiting confirmation."""
    amount = _format_amount(entities.get("amount"))
    if intent == Intent.RECORD_SALE.value:
        quantity = entities.get("quantity") or 1
        product = entities.get("product") or "item"
        customer = entities.get("customer_name") or "Walk-in Customer"
        question = f"Record sale of {quantity}x {product} for K{amount} to {customer}?"
    elif intent == Intent.RECORD_EXPENSE.value:
        question = f"Record expense of K{amount} for {entities.get('description') or 'expense'}?"
    elif intent == Intent.GENERATE_INVOICE.value:
        question = f"Create an invoice for {entities.get('customer_name') or 'this customer'}?"
    else:
        question = f"Proceed with {intent}?"
    return f"{question}\n\n{replies.CONFIRM_PROMPT}"


def needs_confirmation(parsed: ParsedIntent, settings: Settings) -> bool:
    if parsed.requires_confirmation:
        return True
    amount = parsed.entities.get("amount")
    amount = amount if isinstance(amount, (int, float)) else 0
    if parsed.intent == Intent.RECORD_SALE.value:
        return amount >= settings.sale_confirmation_threshold
    if parsed.intent == Intent.RECORD_EXPENSE.value:
        return amount >= settings.expense_confirmation_threshold
    return parsed.intent == Intent.GENERATE_INVOICE.value


class ConversationRouter:
    def __init__(
        self,
        db: Session,
        settings: Settings,
        parser: IntentParser,
        bridge: ExecutionBridge,
        audit_logger: AuditLogger,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.db = db
        self.settings = settings
        self.parser = parser
        self.bridge = bridge
        self.audit_logger = audit_logger
        self.clock = clock

    def handle(self, inbound: InboundMessage) -> RouteOutcome:
        turn = Turn(inbound=inbound)
        try:
            outcome = self._dispatch(turn)
            self.db.commit()
        except Exception as e:
            logger.exception(
                "Conversation routing failed",
                extra={"context": {"phone": mask_phone(turn.phone), "message_sid": inbound.message_sid}},
            )
            self.db.rollback()
            outcome = RouteOutcome(
                state=RouteState.ERROR,
                reply=replies.ERROR_MESSAGE,
                success=False,
                error_message=str(e) or e.__class__.__name__,
            )

        self.audit_logger.record_best_effort(self._audit_entry(turn, outcome))
        logger.info(
            "Message routed",
            extra={
                "context": {
                    "phone": mask_phone(turn.phone),
                    "state": outcome.state.value,
                    "intent": outcome.intent,
                    "success": outcome.success,
                }
            },
        )
        return outcome

    def _audit_entry(self, turn: Turn, outcome: RouteOutcome) -> AuditEntry:
        sender = turn.sender
        original = turn.body
        if outcome.state == RouteState.UNREGISTERED:
            original = original[:UNREGISTERED_AUDIT_LIMIT]
        return AuditEntry(
            whatsapp_number=turn.phone,
            original_message=original,
            response_message=outcome.reply,
            success=outcome.success,
            tenant_id=sender.tenant_id if sender else None,
            user_id=sender.user_id if sender else None,
            display_name=sender.display_name if sender else None,
            intent=outcome.intent,
            error_message=outcome.error_message,
            execution_time_ms=int((time.monotonic() - turn.started_at) * 1000),
        )

    def _dispatch(self, turn: Turn) -> RouteOutcome:
        turn.phone = normalize_sender(turn.inbound.from_number)
        turn.body = (turn.inbound.body or "").strip()

        if not is_valid_phone(turn.phone):
            return RouteOutcome(RouteState.INVALID_INPUT, replies.INVALID_PHONE_MESSAGE, False, error_message="Invalid phone number")
        if len(turn.body) > self.settings.max_message_length:
            return RouteOutcome(RouteState.INVALID_INPUT, replies.MESSAGE_TOO_LONG, False, error_message="Message too long")
        if not turn.body:
            return RouteOutcome(RouteState.INVALID_INPUT, replies.EMPTY_MESSAGE, False, error_message="Empty message")

        mapping = find_sender_mapping(self.db, turn.phone)
        if mapping is None:
            return RouteOutcome(RouteState.UNREGISTERED, replies.UNREGISTERED_MESSAGE, False, error_message="Unregistered number")

        turn.sender = SenderIdentity(
            tenant_id=mapping.tenant_id,
            user_id=mapping.user_id,
            role=mapping.role,
            display_name=mapping.display_name,
        )
        if not mapping.is_active:
            return RouteOutcome(RouteState.INACTIVE, replies.INACTIVE_MESSAGE, False, error_message="Inactive user")

        now = self.clock()
        touch_last_used(self.db, mapping, now)

        usage = check_and_increment_usage(
            self.db, mapping.tenant_id, self.settings.default_whatsapp_monthly_limit, now
        )
        # sender touch and usage count survive a failed turn
        self.db.commit()
        if not usage.allowed:
            reply = replies.QUOTA_EXCEEDED_MESSAGE.format(used=usage.used, limit=usage.limit)
            return RouteOutcome(RouteState.QUOTA_EXCEEDED, reply, False, error_message="Usage limit exceeded")

        command = turn.body.lower()
        if command in HELP_COMMANDS:
            clear_draft(self.db, mapping.tenant_id, turn.phone)
            return RouteOutcome(RouteState.HELP, replies.HELP_MESSAGE, True, intent=Intent.HELP.value)

        if command in CANCEL_COMMANDS:
            clear_draft(self.db, mapping.tenant_id, turn.phone)
            return RouteOutcome(RouteState.CANCELLED_DRAFT, replies.DRAFT_CANCELLED_MESSAGE, True, intent="cancel")

        if is_yes(command) or is_no(command):
            outcome = self._resolve_pending_action(turn, confirmed=is_yes(command), now=now)
            if outcome is not None:
                return outcome

        draft = get_active_draft(self.db, mapping.tenant_id, turn.phone, now)
        if draft is not None:
            return self._continue_draft(turn, draft, now)
        return self._fresh_parse(turn, now)

    def _resolve_pending_action(self, turn: Turn, confirmed: bool, now: datetime) -> Optional[RouteOutcome]:
        """Consume the sender's pending action; None when there is nothing to consume."""
        pending = find_active_pending_action(self.db, turn.phone, now)
        if pending is None or not claim_pending_action(self.db, pending.id, now):
            return None

        if not confirmed:
            return RouteOutcome(
                RouteState.CONFIRMATION_DECLINED, replies.CONFIRMATION_DECLINED_MESSAGE, True, intent=pending.intent
            )

        outcome = self._execute(turn, pending.intent, dict(pending.intent_data or {}), pending.message_sid)
        outcome.state = RouteState.CONFIRMATION_EXECUTED
        return outcome

    def _continue_draft(self, turn: Turn, draft, now: datetime) -> RouteOutcome:
        sender = turn.sender
        existing = dict(draft.entities or {})
        context = ParseContext(
            role=sender.role,
            is_followup=True,
            existing_intent=draft.intent,
            existing_entities=existing,
            missing_fields=get_missing_fields(draft.intent, existing),
            last_prompt=draft.last_prompt,
        )
        result = self.parser.parse(turn.body, context)
        if not result.ok:
            return self._parse_failed(result.error, result.error_code)

        followup = result.value
        if followup.has_unreadable_numbers:
            return RouteOutcome(RouteState.CLARIFICATION, replies.UNREADABLE_NUMBER_MESSAGE, True, intent=draft.intent)

        merged = merge_entities(existing, followup.entities)
        missing = get_missing_fields(draft.intent, merged)
        if missing:
            prompt = prompt_for_missing_fields(draft.intent, missing, merged)
            save_draft(
                self.db,
                tenant_id=sender.tenant_id,
                whatsapp_number=turn.phone,
                user_id=sender.user_id,
                intent=draft.intent,
                entities=merged,
                last_prompt=prompt,
                ttl_minutes=self.settings.draft_ttl_minutes,
                now=now,
            )
            return RouteOutcome(RouteState.AWAITING_DETAILS, prompt, True, intent=draft.intent)

        clear_draft(self.db, sender.tenant_id, turn.phone)
        parsed = ParsedIntent(intent=draft.intent, confidence=Confidence.HIGH.value, entities=merged)
        return self._confirm_or_execute(turn, parsed, now)

    def _fresh_parse(self, turn: Turn, now: datetime) -> RouteOutcome:
        sender = turn.sender
        result = self.parser.parse(turn.body, ParseContext(role=sender.role))
        if not result.ok:
            return self._parse_failed(result.error, result.error_code)

        parsed = result.value
        if parsed.intent == Intent.HELP.value:
            return RouteOutcome(RouteState.HELP, replies.HELP_MESSAGE, True, intent=Intent.HELP.value)

        if parsed.has_unreadable_numbers:
            return RouteOutcome(RouteState.CLARIFICATION, replies.UNREADABLE_NUMBER_MESSAGE, True, intent=parsed.intent)

        if parsed.confidence == Confidence.LOW.value or parsed.clarification_needed:
            reply = parsed.clarification_needed or replies.CLARIFICATION_MESSAGE
            return RouteOutcome(RouteState.CLARIFICATION, reply, True, intent=parsed.intent)

        missing = get_missing_fields(parsed.intent, parsed.entities)
        if missing:
            prompt = prompt_for_missing_fields(parsed.intent, missing, parsed.entities)
            save_draft(
                self.db,
                tenant_id=sender.tenant_id,
                whatsapp_number=turn.phone,
                user_id=sender.user_id,
                intent=parsed.intent,
                entities=parsed.entities,
                last_prompt=prompt,
                ttl_minutes=self.settings.draft_ttl_minutes,
                now=now,
            )
            return RouteOutcome(RouteState.AWAITING_DETAILS, prompt, True, intent=parsed.intent)

        return self._confirm_or_execute(turn, parsed, now)

    def _parse_failed(self, error: Optional[str], code: Optional[str]) -> RouteOutcome:
        logger.warning("Intent parser failed", extra={"context": {"error": error, "code": code}})
        return RouteOutcome(
            RouteState.PARSE_FAILED,
            replies.PARSE_FAILED_MESSAGE,
            False,
            error_message=f"Intent parser failed: {code}: {error}",
        )

    def _confirm_or_execute(self, turn: Turn, parsed: ParsedIntent, now: datetime) -> RouteOutcome:
        sender = turn.sender
        if needs_confirmation(parsed, self.settings):
            create_pending_action(
                self.db,
                tenant_id=sender.tenant_id,
                whatsapp_number=turn.phone,
                user_id=sender.user_id,
                message_sid=turn.inbound.message_sid,
                intent=parsed.intent,
                intent_data=parsed.entities,
                confirmation_message=turn.body,
                ttl_minutes=self.settings.pending_action_ttl_minutes,
                now=now,
            )
            reply = confirmation_message(parsed.intent, parsed.entities)
            return RouteOutcome(RouteState.AWAITING_CONFIRMATION, reply, True, intent=parsed.intent)

        return self._execute(turn, parsed.intent, parsed.entities, turn.inbound.message_sid)

    def _execute(self, turn: Turn, intent: str, entities: dict, message_id: Optional[str]) -> RouteOutcome:
        sender = turn.sender
        result = self.bridge.execute(
            BridgeRequest(
                intent=intent,
                entities=entities,
                context=BridgeContext(
                    tenant_id=sender.tenant_id,
                    user_id=sender.user_id,
                    role=sender.role,
                    display_name=sender.display_name,
                ),
                message_id=message_id,
            )
        )
        reply = result.message or (replies.DONE_MESSAGE if result.success else replies.FAILED_MESSAGE)
        return RouteOutcome(
            RouteState.EXECUTED,
            reply,
            result.success,
            intent=intent,
            media_url=result.media_url,
            error_message=None if result.success else result.error,
        )
