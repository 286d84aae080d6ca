from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from bms_assistant.logging_config import get_logger, mask_phone
from bms_assistant.models import AuditLog

logger = get_logger("audit_service")


@dataclass
class AuditEntry:
    whatsapp_number: str
    original_message: Optional[str]
    response_message: str
    success: bool
    tenant_id: Optional[UUID] = None
    user_id: Optional[UUID] = None
    display_name: Optional[str] = None
    intent: Optional[str] = None
    error_message: Optional[str] = None
    execution_time_ms: Optional[int] = None


class AuditLogger:
    """Append-only audit trail of inbound messages.

    Writes go through their own session so a rolled back business transaction
    never takes the audit row with it. A failed write is logged and dropped:
    the reply to the user must not depend on it.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def record(self, entry: AuditEntry) -> AuditLog:
        db = self.session_factory()
        try:
            row = AuditLog(
                tenant_id=entry.tenant_id,
                whatsapp_number=entry.whatsapp_number,
                user_id=entry.user_id,
                display_name=entry.display_name,
                intent=entry.intent,
                original_message=entry.original_message,
                response_message=entry.response_message,
                success=entry.success,
                error_message=entry.error_message,
                execution_time_ms=entry.execution_time_ms,
                created_at=datetime.now(timezone.utc),
            )
            db.add(row)
            db.commit()
            return row
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def record_best_effort(self, entry: AuditEntry) -> bool:
        try:
            self.record(entry)
            return True
        except Exception as e:
            logger.error(
                f"Failed to write audit log: {e}",
                extra={"context": {"phone": mask_phone(entry.whatsapp_number), "intent": entry.intent}},
            )
            return False
