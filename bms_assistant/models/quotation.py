import uuid

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, Text, Uuid
from sqlalchemy.orm import relationship

from bms_assistant.database import Base


class Quotation(Base):
    __tablename__ = "quotations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, nullable=False)
    quotation_number = Column(Text, nullable=False)
    client_name = Column(Text, nullable=False)
    quotation_date = Column(DateTime(timezone=True), nullable=False)
    status = Column(Text, nullable=False, default="draft")
    total_amount = Column(Float, nullable=False, default=0)
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False)

    items = relationship("QuotationItem", back_populates="quotation")


class QuotationItem(Base):
    __tablename__ = "quotation_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    quotation_id = Column(Uuid, ForeignKey("quotations.id"), nullable=False)
    description = Column(Text, nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Float, nullable=False, default=0)
    amount = Column(Float, nullable=False, default=0)

    quotation = relationship("Quotation", back_populates="items")
