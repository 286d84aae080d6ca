import uuid

from sqlalchemy import Boolean, Column, DateTime, Text, Uuid

from bms_assistant.database import Base


class WhatsAppUserMapping(Base):
    __tablename__ = "whatsapp_user_mappings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, nullable=False)
    whatsapp_number = Column(Text, nullable=False, index=True)
    user_id = Column(Uuid)
    role = Column(Text, nullable=False)  # admin, manager, accountant, cashier, viewer
    display_name = Column(Text, nullable=False)
    is_active = Column(Boolean, default=True)
    employee_id = Column(Uuid)
    branch_id = Column(Uuid)
    created_at = Column(DateTime(timezone=True))
    last_used_at = Column(DateTime(timezone=True))
