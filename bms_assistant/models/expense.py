import uuid

from sqlalchemy import Column, Date, DateTime, Float, Text, UniqueConstraint, Uuid

from bms_assistant.database import Base


class Expense(Base):
    __tablename__ = "expenses"
    __table_args__ = (UniqueConstraint("tenant_id", "source_message_id"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, nullable=False)
    vendor_name = Column(Text, nullable=False)
    amount_zmw = Column(Float, nullable=False)
    category = Column(Text, nullable=False, default="General")
    date_incurred = Column(Date, nullable=False)
    recorded_by = Column(Uuid)
    source_message_id = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False)
