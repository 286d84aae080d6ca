from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from bms_assistant.logging_config import get_logger
from bms_assistant.models import BillingPlanConfig, BusinessProfile

logger = get_logger("usage_service")


@dataclass
class UsageCheck:
    allowed: bool
    used: int
    limit: int


def _same_month(a: date, b: date) -> bool:
    return a.year == b.year and a.month == b.month


def check_and_increment_usage(
    db: Session, tenant_id: UUID, default_limit: int, now: Optional[datetime] = None
) -> UsageCheck:
    """Count one inbound message against the tenant's monthly allowance."""
    today = (now or datetime.now(timezone.utc)).date()

    profile = db.query(BusinessProfile).filter(BusinessProfile.tenant_id == tenant_id).first()
    if not profile:
        return UsageCheck(allowed=True, used=0, limit=0)

    plan = (
        db.query(BillingPlanConfig)
        .filter(BillingPlanConfig.plan_key == profile.billing_plan, BillingPlanConfig.is_active.is_(True))
        .first()
    )
    limit_enabled = True if plan is None or plan.whatsapp_limit_enabled is None else plan.whatsapp_limit_enabled
    monthly_limit = default_limit if plan is None or plan.whatsapp_monthly_limit is None else plan.whatsapp_monthly_limit

    used = profile.whatsapp_messages_used or 0
    if not limit_enabled or monthly_limit == 0:
        return UsageCheck(allowed=True, used=used, limit=monthly_limit)

    if profile.whatsapp_usage_reset_date and not _same_month(profile.whatsapp_usage_reset_date, today):
        used = 0
        profile.whatsapp_messages_used = 0
        profile.whatsapp_usage_reset_date = today

    if used >= monthly_limit:
        db.flush()
        logger.info(
            "Monthly message limit reached",
            extra={"context": {"tenant_id": str(tenant_id), "used": used, "limit": monthly_limit}},
        )
        return UsageCheck(allowed=False, used=used, limit=monthly_limit)

    profile.whatsapp_messages_used = used + 1
    if not profile.whatsapp_usage_reset_date:
        profile.whatsapp_usage_reset_date = today
    db.flush()
    return UsageCheck(allowed=True, used=used + 1, limit=monthly_limit)
