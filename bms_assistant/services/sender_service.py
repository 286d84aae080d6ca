import re
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from bms_assistant.logging_config import get_logger, mask_phone
from bms_assistant.models import WhatsAppUserMapping

logger = get_logger("sender_service")

WHATSAPP_PREFIX = "whatsapp:"
E164_RE = re.compile(r"^\+[1-9]\d{6,14}$")


def normalize_sender(raw_from: Optional[str]) -> str:
    """Strip the channel prefix from an inbound `From` value."""
    value = (raw_from or "").strip()
    if value.lower().startswith(WHATSAPP_PREFIX):
        value = value[len(WHATSAPP_PREFIX):]
    return value.strip()


def is_valid_phone(phone: str) -> bool:
    return bool(E164_RE.match(phone or ""))


def find_sender_mapping(db: Session, phone: str) -> Optional[WhatsAppUserMapping]:
    """Resolve a phone number to its mapping.

    Lookup is by phone number alone. When the number is mapped more than once
    (possibly under different tenants), active mappings win, then the most
    recently used one, and the ambiguity is logged.
    """
    mappings = (
        db.query(WhatsAppUserMapping)
        .filter(WhatsAppUserMapping.whatsapp_number == phone)
        .order_by(
            WhatsAppUserMapping.is_active.desc(),
            WhatsAppUserMapping.last_used_at.desc().nulls_last(),
            WhatsAppUserMapping.created_at.desc().nulls_last(),
        )
        .all()
    )
    if not mappings:
        return None

    if len(mappings) > 1:
        logger.warning(
            "Phone number has multiple mappings",
            extra={
                "context": {
                    "phone": mask_phone(phone),
                    "count": len(mappings),
                    "tenants": sorted({str(m.tenant_id) for m in mappings}),
                }
            },
        )

    return mappings[0]


def touch_last_used(db: Session, mapping: WhatsAppUserMapping, now: Optional[datetime] = None) -> None:
    mapping.last_used_at = now or datetime.now(timezone.utc)
    db.flush()
