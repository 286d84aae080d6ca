import uuid

from sqlalchemy import JSON, Column, DateTime, Text, UniqueConstraint, Uuid

from bms_assistant.database import Base


class ConversationDraft(Base):
    __tablename__ = "whatsapp_conversation_drafts"
    __table_args__ = (UniqueConstraint("tenant_id", "whatsapp_number"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, nullable=False)
    whatsapp_number = Column(Text, nullable=False)
    user_id = Column(Uuid)
    intent = Column(Text, nullable=False)
    entities = Column(JSON, nullable=False, default=dict)
    last_prompt = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
