import uuid

from sqlalchemy import Column, Float, Integer, Text, Uuid

from bms_assistant.database import Base


class InventoryItem(Base):
    __tablename__ = "inventory"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, nullable=False)
    name = Column(Text, nullable=False)
    sku = Column(Text)
    current_stock = Column(Integer, nullable=False, default=0)
    reorder_level = Column(Integer, nullable=False, default=0)
    unit_price = Column(Float, nullable=False, default=0)
    liters_per_unit = Column(Float, nullable=False, default=0)
