import uuid

from sqlalchemy import Boolean, Column, DateTime, Integer, Text, Uuid

from bms_assistant.database import Base


class AuditLog(Base):
    __tablename__ = "whatsapp_audit_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid)
    whatsapp_number = Column(Text, nullable=False)
    user_id = Column(Uuid)
    display_name = Column(Text)
    intent = Column(Text)
    original_message = Column(Text)
    response_message = Column(Text)
    success = Column(Boolean, nullable=False)
    error_message = Column(Text)
    execution_time_ms = Column(Integer)
    created_at = Column(DateTime(timezone=True), nullable=False)
