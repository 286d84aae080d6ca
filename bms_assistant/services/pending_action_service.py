"""Durable store for intents awaiting a yes/no reply.

Only the most recent unprocessed, unexpired action for a phone number is
eligible. Older ones are never cancelled; they simply stop being visible.
Expiry is enforced when reading, there is no sweeper.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from bms_assistant.logging_config import get_logger, mask_phone
from bms_assistant.models import PendingAction

logger = get_logger("pending_action_service")


def create_pending_action(
    db: Session,
    *,
    tenant_id: UUID,
    whatsapp_number: str,
    user_id: Optional[UUID],
    message_sid: Optional[str],
    intent: str,
    intent_data: dict,
    confirmation_message: Optional[str],
    ttl_minutes: int,
    now: Optional[datetime] = None,
) -> PendingAction:
    now = now or datetime.now(timezone.utc)
    action = PendingAction(
        tenant_id=tenant_id,
        whatsapp_number=whatsapp_number,
        user_id=user_id,
        message_sid=message_sid,
        intent=intent,
        intent_data=dict(intent_data),
        confirmation_message=confirmation_message,
        created_at=now,
        expires_at=now + timedelta(minutes=ttl_minutes),
    )
    db.add(action)
    db.flush()

    logger.info(
        "Pending action created",
        extra={"context": {"phone": mask_phone(whatsapp_number), "intent": intent, "action_id": str(action.id)}},
    )
    return action


def find_active_pending_action(
    db: Session, whatsapp_number: str, now: Optional[datetime] = None
) -> Optional[PendingAction]:
    now = now or datetime.now(timezone.utc)
    return (
        db.query(PendingAction)
        .filter(
            PendingAction.whatsapp_number == whatsapp_number,
            PendingAction.processed_at.is_(None),
            PendingAction.expires_at > now,
        )
        .order_by(PendingAction.created_at.desc())
        .first()
    )


def claim_pending_action(db: Session, action_id: UUID, now: Optional[datetime] = None) -> bool:
    """Stamp `processed_at` only if nobody did it first.

    Returns True for exactly one caller per action.
    """
    now = now or datetime.now(timezone.utc)
    result = db.execute(
        update(PendingAction)
        .where(PendingAction.id == action_id, PendingAction.processed_at.is_(None))
        .values(processed_at=now)
        .execution_options(synchronize_session=False)
    )
    claimed = result.rowcount == 1
    if not claimed:
        logger.info("Pending action already claimed", extra={"context": {"action_id": str(action_id)}})
    return claimed
