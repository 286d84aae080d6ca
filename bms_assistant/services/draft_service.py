from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from bms_assistant.models import ConversationDraft
from bms_assistant.services.intent_service import Intent


def get_active_draft(
    db: Session, tenant_id: UUID, whatsapp_number: str, now: Optional[datetime] = None
) -> Optional[ConversationDraft]:
    now = now or datetime.now(timezone.utc)
    return (
        db.query(ConversationDraft)
        .filter(
            ConversationDraft.tenant_id == tenant_id,
            ConversationDraft.whatsapp_number == whatsapp_number,
            ConversationDraft.expires_at > now,
        )
        .first()
    )


def save_draft(
    db: Session,
    *,
    tenant_id: UUID,
    whatsapp_number: str,
    user_id: Optional[UUID],
    intent: str,
    entities: dict,
    last_prompt: str,
    ttl_minutes: int,
    now: Optional[datetime] = None,
) -> ConversationDraft:
    """Create or replace the single draft kept per tenant and phone number."""
    now = now or datetime.now(timezone.utc)
    draft = (
        db.query(ConversationDraft)
        .filter(ConversationDraft.tenant_id == tenant_id, ConversationDraft.whatsapp_number == whatsapp_number)
        .first()
    )
    if not draft:
        draft = ConversationDraft(tenant_id=tenant_id, whatsapp_number=whatsapp_number, created_at=now)
        db.add(draft)

    draft.user_id = user_id
    draft.intent = intent
    draft.entities = dict(entities)
    draft.last_prompt = last_prompt
    draft.updated_at = now
    draft.expires_at = now + timedelta(minutes=ttl_minutes)
    db.flush()
    return draft


def clear_draft(db: Session, tenant_id: UUID, whatsapp_number: str) -> int:
    deleted = (
        db.query(ConversationDraft)
        .filter(ConversationDraft.tenant_id == tenant_id, ConversationDraft.whatsapp_number == whatsapp_number)
        .delete(synchronize_session=False)
    )
    db.flush()
    return deleted


def _format_amount(amount) -> str:
    if isinstance(amount, (int, float)):
        return f"{amount:,}"
    return str(amount)


def summarize_entities(entities: dict) -> str:
    have = []
    if entities.get("product"):
        quantity = entities.get("quantity")
        prefix = f"{quantity} " if isinstance(quantity, (int, float)) and quantity > 1 else ""
        have.append(f"{prefix}{entities['product']}")
    if entities.get("customer_name"):
        have.append(f"to {entities['customer_name']}")
    if entities.get("amount"):
        have.append(f"for K{_format_amount(entities['amount'])}")
    if entities.get("payment_method"):
        have.append(f"by {entities['payment_method']}")
    if entities.get("description"):
        have.append(str(entities["description"]))
    return ", ".join(have)


def prompt_for_missing_fields(intent: str, missing_fields: list[str], entities: dict) -> str:
    """Conversational question for the fields still needed, plus what we already have."""
    summary = summarize_entities(entities)
    suffix = f"\n\nGot it: {summary}." if summary else ""
    missing = set(missing_fields)

    if intent == Intent.RECORD_SALE.value:
        if {"product", "amount"} <= missing:
            return f"What did you sell and for how much?{suffix}"
        if "product" in missing:
            return f"What did you sell?{suffix}"
        if "amount" in missing:
            return f"How much was it?{suffix}"

    if intent == Intent.RECORD_EXPENSE.value:
        if {"description", "amount"} <= missing:
            return f"What did you spend on and how much?{suffix}"
        if "description" in missing:
            return f"What was it for?{suffix}"
        if "amount" in missing:
            return f"How much did you spend?{suffix}"

    if intent == Intent.CHECK_CUSTOMER.value:
        return f"Which customer are you looking for?{suffix}"

    if intent == Intent.GENERATE_INVOICE.value and "customer_name" in missing:
        return f"Who should I create the invoice for?{suffix}"

    field_names = " and ".join(field.replace("_", " ") for field in missing_fields)
    return f"Just need the {field_names} to continue.{suffix}"
