import uuid

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, Text, Uuid
from sqlalchemy.orm import relationship

from bms_assistant.database import Base


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, nullable=False)
    invoice_number = Column(Text, nullable=False)
    client_name = Column(Text, nullable=False)
    invoice_date = Column(DateTime(timezone=True), nullable=False)
    status = Column(Text, nullable=False, default="draft")
    total_amount = Column(Float, nullable=False, default=0)
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False)

    items = relationship("InvoiceItem", back_populates="invoice")


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    invoice_id = Column(Uuid, ForeignKey("invoices.id"), nullable=False)
    description = Column(Text, nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Float, nullable=False, default=0)
    amount = Column(Float, nullable=False, default=0)

    invoice = relationship("Invoice", back_populates="items")
