import uuid

from sqlalchemy import JSON, Column, DateTime, Text, Uuid

from bms_assistant.database import Base


class PendingAction(Base):
    __tablename__ = "whatsapp_pending_actions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid)
    whatsapp_number = Column(Text, nullable=False, index=True)
    user_id = Column(Uuid)
    message_sid = Column(Text)
    intent = Column(Text, nullable=False)
    intent_data = Column(JSON, nullable=False, default=dict)
    confirmation_message = Column(Text)  # inbound text that produced the action
    created_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    processed_at = Column(DateTime(timezone=True))
