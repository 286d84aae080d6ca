from datetime import datetime, timedelta, timezone

from bms_assistant.models import PendingAction
from bms_assistant.services.pending_action_service import (
    claim_pending_action,
    create_pending_action,
    find_active_pending_action,
)
from tests.conftest import PHONE, TENANT_ID, USER_ID

NOW = datetime(2025, 3, 14, 9, 30, tzinfo=timezone.utc)


def _create(db, intent="record_sale", now=NOW, ttl=10, phone=PHONE):
    return create_pending_action(
        db,
        tenant_id=TENANT_ID,
        whatsapp_number=phone,
        user_id=USER_ID,
        message_sid="SM1",
        intent=intent,
        intent_data={"product": "cement", "amount": 12000},
        confirmation_message="sold cement 12k",
        ttl_minutes=ttl,
        now=now,
    )


class TestCreate:
    def test_sets_expiry_from_ttl(self, db_session):
        action = _create(db_session, ttl=10)
        assert action.expires_at == NOW + timedelta(minutes=10)
        assert action.processed_at is None


class TestFindActive:
    def test_returns_most_recent(self, db_session):
        _create(db_session, intent="record_sale", now=NOW)
        newer = _create(db_session, intent="record_expense", now=NOW + timedelta(minutes=1))

        found = find_active_pending_action(db_session, PHONE, NOW + timedelta(minutes=2))
        assert found.id == newer.id

    def test_expired_action_is_invisible(self, db_session):
        _create(db_session, ttl=10)
        assert find_active_pending_action(db_session, PHONE, NOW + timedelta(minutes=11)) is None

    def test_processed_action_is_invisible(self, db_session):
        action = _create(db_session)
        assert claim_pending_action(db_session, action.id, NOW) is True
        assert find_active_pending_action(db_session, PHONE, NOW) is None

    def test_other_numbers_are_ignored(self, db_session):
        _create(db_session, phone="+260970000000")
        assert find_active_pending_action(db_session, PHONE, NOW) is None


class TestClaim:
    def test_only_first_claim_wins(self, db_session):
        action = _create(db_session)

        assert claim_pending_action(db_session, action.id, NOW) is True
        assert claim_pending_action(db_session, action.id, NOW + timedelta(seconds=1)) is False

    def test_claim_stamps_processed_at(self, db_session):
        action = _create(db_session)
        claim_pending_action(db_session, action.id, NOW)
        db_session.commit()

        stored = db_session.query(PendingAction).filter(PendingAction.id == action.id).first()
        assert stored.processed_at is not None
