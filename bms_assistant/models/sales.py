import uuid

from sqlalchemy import Column, DateTime, Float, Integer, Text, UniqueConstraint, Uuid

from bms_assistant.database import Base


class SalesTransaction(Base):
    __tablename__ = "sales_transactions"
    __table_args__ = (UniqueConstraint("tenant_id", "source_message_id"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, nullable=False)
    receipt_number = Column(Text, index=True)
    product_id = Column(Uuid)
    product_name = Column(Text, nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price_zmw = Column(Float, nullable=False, default=0)
    total_amount_zmw = Column(Float, nullable=False, default=0)
    liters_impact = Column(Float, nullable=False, default=0)
    customer_name = Column(Text)
    payment_method = Column(Text)
    notes = Column(Text)
    recorded_by = Column(Uuid)
    source_message_id = Column(Text)  # inbound message id, guards duplicate mutations
    created_at = Column(DateTime(timezone=True), nullable=False)


class PaymentReceipt(Base):
    __tablename__ = "payment_receipts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, nullable=False)
    receipt_number = Column(Text, nullable=False)
    invoice_id = Column(Uuid)
    client_name = Column(Text, nullable=False)
    payment_date = Column(DateTime(timezone=True), nullable=False)
    amount_paid = Column(Float, nullable=False)
    payment_method = Column(Text)
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False)
