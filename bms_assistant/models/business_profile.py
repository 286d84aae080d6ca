import uuid

from sqlalchemy import Boolean, Column, Date, Integer, Text, Uuid

from bms_assistant.database import Base


class BusinessProfile(Base):
    __tablename__ = "business_profiles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, nullable=False, unique=True)
    company_name = Column(Text)
    company_address = Column(Text)
    company_phone = Column(Text)
    company_email = Column(Text)
    logo_url = Column(Text)
    billing_plan = Column(Text, nullable=False, default="starter")
    impact_enabled = Column(Boolean, default=False)
    impact_unit_label = Column(Text)  # e.g. "Liters of Clean Water"
    whatsapp_messages_used = Column(Integer, default=0)
    whatsapp_usage_reset_date = Column(Date)


class BillingPlanConfig(Base):
    __tablename__ = "billing_plan_configs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    plan_key = Column(Text, nullable=False)
    is_active = Column(Boolean, default=True)
    whatsapp_monthly_limit = Column(Integer)
    whatsapp_limit_enabled = Column(Boolean, default=True)
