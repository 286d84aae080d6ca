from datetime import datetime, timedelta, timezone
from uuid import UUID
from unittest.mock import Mock

import pytest

from bms_assistant.models import AuditLog, BusinessProfile, ConversationDraft, InventoryItem, PendingAction, SalesTransaction, WhatsAppUserMapping
from bms_assistant.services import replies
from bms_assistant.services.audit_service import AuditLogger
from bms_assistant.services.bridge_service import BridgeResult, BusinessBridge, ExecutionBridge
from bms_assistant.services.conversation_router import (
    ConversationRouter,
    InboundMessage,
    RouteState,
    confirmation_message,
)
from bms_assistant.services.intent_parser import IntentParser
from bms_assistant.services.llm.base import LLMHTTPError
from tests.conftest import PHONE, TENANT_ID

NOW = datetime(2025, 3, 14, 9, 30, tzinfo=timezone.utc)
OTHER_TENANT_ID = UUID("33333333-3333-3333-3333-333333333333")

BIG_SALE = {
    "intent": "record_sale",
    "confidence": "high",
    "entities": {"product": "cement bags", "quantity": 5, "customer_name": "John", "amount": 12000, "payment_method": "cash"},
    "requires_confirmation": False,
}
SMALL_SALE = {
    "intent": "record_sale",
    "confidence": "high",
    "entities": {"product": "cement", "quantity": 1, "amount": 500},
    "requires_confirmation": False,
}


def inbound(body, phone=PHONE, sid="SM100"):
    return InboundMessage(from_number=f"whatsapp:{phone}", body=body, message_sid=sid)


@pytest.fixture
def clock():
    return Mock(return_value=NOW)


@pytest.fixture
def bridge():
    bridge = Mock(spec=ExecutionBridge)
    bridge.execute.return_value = BridgeResult.ok("✅ Sale recorded!")
    return bridge


@pytest.fixture
def router(db_session, settings, fake_llm, bridge, session_factory, clock):
    return ConversationRouter(
        db_session,
        settings,
        IntentParser(settings, fake_llm),
        bridge,
        AuditLogger(session_factory),
        clock=clock,
    )


def audit_rows(db_session):
    return db_session.query(AuditLog).all()


class TestInputValidation:
    @pytest.mark.parametrize(
        "message,expected",
        [
            (InboundMessage(from_number="whatsapp:0971234567", body="hi"), replies.INVALID_PHONE_MESSAGE),
            (inbound("x" * 1001), replies.MESSAGE_TOO_LONG),
            (inbound("   "), replies.EMPTY_MESSAGE),
        ],
    )
    def test_rejected_with_fixed_reply(self, router, db_session, fake_llm, message, expected):
        outcome = router.handle(message)

        assert outcome.state == RouteState.INVALID_INPUT
        assert outcome.reply == expected
        assert fake_llm.calls == []
        assert len(audit_rows(db_session)) == 1


class TestSenderResolution:
    def test_unregistered_number(self, router, db_session, fake_llm):
        outcome = router.handle(inbound("sold 5 cement"))

        assert outcome.reply == replies.UNREGISTERED_MESSAGE
        rows = audit_rows(db_session)
        assert len(rows) == 1
        assert rows[0].success is False
        assert rows[0].tenant_id is None
        assert fake_llm.calls == []

    def test_unregistered_audit_truncates_message(self, router, db_session):
        router.handle(inbound("y" * 900))
        assert len(audit_rows(db_session)[0].original_message) == 500

    def test_inactive_mapping(self, router, db_session, fake_llm, seed_mapping):
        seed_mapping(is_active=False)

        outcome = router.handle(inbound("sold 5 cement"))

        assert outcome.state == RouteState.INACTIVE
        assert outcome.reply == replies.INACTIVE_MESSAGE
        assert fake_llm.calls == []
        rows = audit_rows(db_session)
        assert len(rows) == 1
        assert rows[0].success is False
        assert rows[0].tenant_id == TENANT_ID

    def test_last_used_is_touched(self, router, db_session, seed_mapping):
        seed_mapping()
        router.handle(inbound("help"))

        mapping = db_session.query(WhatsAppUserMapping).first()
        assert mapping.last_used_at.replace(tzinfo=None) == NOW.replace(tzinfo=None)

    def test_active_mapping_wins_over_inactive_duplicate(self, router, seed_mapping):
        seed_mapping(is_active=False, tenant_id=TENANT_ID)
        seed_mapping(is_active=True, tenant_id=OTHER_TENANT_ID)

        outcome = router.handle(inbound("help"))
        assert outcome.state == RouteState.HELP


class TestHelp:
    @pytest.mark.parametrize("body", ["help", "Help", "HI", "hello"])
    def test_help_equivalence(self, router, db_session, fake_llm, seed_mapping, body):
        seed_mapping()

        outcome = router.handle(inbound(body))

        assert outcome.reply == replies.HELP_MESSAGE
        assert outcome.success is True
        assert fake_llm.calls == []
        assert len(audit_rows(db_session)) == 1

    def test_parsed_help_intent(self, router, fake_llm, seed_mapping):
        seed_mapping()
        fake_llm.queue({"intent": "help", "confidence": "high", "entities": {}})

        outcome = router.handle(inbound("what can you do"))
        assert outcome.reply == replies.HELP_MESSAGE


class TestConfirmation:
    def test_large_sale_asks_for_confirmation(self, router, db_session, fake_llm, bridge, seed_mapping):
        seed_mapping()
        fake_llm.queue(BIG_SALE)

        outcome = router.handle(inbound("sold 5 bags cement to john 12k cash"))

        assert outcome.state == RouteState.AWAITING_CONFIRMATION
        assert "Record sale of 5x cement bags for K12,000 to John?" in outcome.reply
        assert outcome.reply.endswith(replies.CONFIRM_PROMPT)
        bridge.execute.assert_not_called()
        assert db_session.query(PendingAction).count() == 1

    def test_yes_executes_once_with_original_entities(self, router, db_session, fake_llm, bridge, seed_mapping):
        seed_mapping()
        fake_llm.queue(BIG_SALE)
        router.handle(inbound("sold 5 bags cement to john 12k cash", sid="SM1"))

        outcome = router.handle(inbound("YES", sid="SM2"))

        assert outcome.state == RouteState.CONFIRMATION_EXECUTED
        assert outcome.reply == "✅ Sale recorded!"
        bridge.execute.assert_called_once()
        request = bridge.execute.call_args[0][0]
        assert request.intent == "record_sale"
        assert request.entities == {
            "product": "cement bags",
            "quantity": 5,
            "customer_name": "John",
            "amount": 12000,
            "payment_method": "Cash",
        }
        assert request.message_id == "SM1"
        assert len(fake_llm.calls) == 1
        assert len(audit_rows(db_session)) == 2

    def test_no_cancels_without_execution(self, router, fake_llm, bridge, seed_mapping):
        seed_mapping()
        fake_llm.queue(BIG_SALE)
        router.handle(inbound("sold 5 bags cement to john 12k cash"))

        outcome = router.handle(inbound("no"))

        assert outcome.state == RouteState.CONFIRMATION_DECLINED
        assert "cancelled" in outcome.reply
        bridge.execute.assert_not_called()

    def test_second_yes_does_not_execute_again(self, router, fake_llm, bridge, seed_mapping):
        seed_mapping()
        fake_llm.queue(BIG_SALE)
        router.handle(inbound("sold 5 bags cement to john 12k cash"))
        router.handle(inbound("yes"))
        fake_llm.queue({"intent": "help", "confidence": "low", "entities": {}})

        outcome = router.handle(inbound("yes"))

        assert outcome.state == RouteState.HELP
        assert bridge.execute.call_count == 1

    def test_yes_without_pending_action_is_parsed(self, router, fake_llm, bridge, seed_mapping):
        seed_mapping()
        fake_llm.queue({"intent": "record_sale", "confidence": "low", "entities": {}})

        outcome = router.handle(inbound("y"))

        assert outcome.state == RouteState.CLARIFICATION
        assert len(fake_llm.calls) == 1
        bridge.execute.assert_not_called()

    def test_expense_threshold(self, router, fake_llm, seed_mapping):
        seed_mapping()
        fake_llm.queue(
            {"intent": "record_expense", "confidence": "high", "entities": {"description": "fuel", "amount": 5000}}
        )
        outcome = router.handle(inbound("spent 5k fuel"))
        assert outcome.state == RouteState.AWAITING_CONFIRMATION

    def test_invoice_always_confirms(self, router, fake_llm, seed_mapping):
        seed_mapping()
        fake_llm.queue({"intent": "generate_invoice", "confidence": "high", "entities": {"customer_name": "ABC"}})
        outcome = router.handle(inbound("invoice ABC"))
        assert outcome.state == RouteState.AWAITING_CONFIRMATION
        assert "Create an invoice for ABC?" in outcome.reply

    def test_parser_requested_confirmation(self, router, fake_llm, seed_mapping):
        seed_mapping()
        fake_llm.queue({"intent": "check_stock", "confidence": "high", "entities": {}, "requires_confirmation": True})
        outcome = router.handle(inbound("check all stock"))
        assert outcome.reply.startswith("Proceed with check_stock?")


class TestExpiry:
    def test_yes_after_expiry_never_executes(
        self, db_session, settings, fake_llm, session_factory, clock, seed_mapping, seed_inventory
    ):
        seed_mapping()
        seed_inventory(name="Cement", current_stock=100)
        router = ConversationRouter(
            db_session,
            settings,
            IntentParser(settings, fake_llm),
            BusinessBridge(db_session),
            AuditLogger(session_factory),
            clock=clock,
        )
        fake_llm.queue({"intent": "record_sale", "confidence": "high", "entities": {"product": "cement", "quantity": 30, "amount": 15000}})
        router.handle(inbound("sold 30 cement 15k"))

        clock.return_value = NOW + timedelta(minutes=settings.pending_action_ttl_minutes + 1)
        fake_llm.queue({"intent": "help", "confidence": "low", "entities": {}})
        outcome = router.handle(inbound("yes"))

        assert "Done!" not in outcome.reply
        assert "Sale recorded" not in outcome.reply
        assert db_session.query(SalesTransaction).count() == 0
        assert db_session.query(InventoryItem).first().current_stock == 100


class TestFreshParse:
    def test_parser_failure(self, router, db_session, fake_llm, seed_mapping):
        seed_mapping()
        fake_llm.queue(LLMHTTPError(429))

        outcome = router.handle(inbound("sold cement"))

        assert outcome.state == RouteState.PARSE_FAILED
        assert outcome.reply == replies.PARSE_FAILED_MESSAGE
        row = audit_rows(db_session)[0]
        assert row.success is False
        assert "rate_limited" in row.error_message

    def test_low_confidence_is_a_successful_clarification(self, router, db_session, fake_llm, seed_mapping):
        seed_mapping()
        fake_llm.queue({"intent": "check_stock", "confidence": "low", "entities": {}})

        outcome = router.handle(inbound("hmm"))

        assert outcome.reply == replies.CLARIFICATION_MESSAGE
        assert audit_rows(db_session)[0].success is True

    def test_model_clarification_text(self, router, fake_llm, seed_mapping):
        seed_mapping()
        fake_llm.queue(
            {"intent": "check_stock", "confidence": "medium", "entities": {}, "clarification_needed": "Which product?"}
        )
        assert router.handle(inbound("stock?")).reply == "Which product?"

    def test_unreadable_amount_asks_again(self, router, fake_llm, bridge, seed_mapping):
        seed_mapping()
        fake_llm.queue({"intent": "record_sale", "confidence": "high", "entities": {"product": "cement", "amount": "plenty"}})

        outcome = router.handle(inbound("sold cement for plenty"))

        assert outcome.state == RouteState.CLARIFICATION
        assert outcome.reply == replies.UNREADABLE_NUMBER_MESSAGE
        bridge.execute.assert_not_called()

    def test_infinite_amount_asks_again(self, router, fake_llm, bridge, seed_mapping):
        seed_mapping()
        fake_llm.queue({"intent": "record_sale", "confidence": "high", "entities": {"product": "cement", "amount": "1e999"}})

        outcome = router.handle(inbound("sold cement for 1e999"))

        assert outcome.reply == replies.UNREADABLE_NUMBER_MESSAGE
        bridge.execute.assert_not_called()

    def test_confident_small_sale_executes_directly(self, router, fake_llm, bridge, seed_mapping):
        seed_mapping()
        bridge.execute.return_value = BridgeResult.ok("✅ Sale recorded!", media_url="https://files.test/r.pdf")
        fake_llm.queue(SMALL_SALE)

        outcome = router.handle(inbound("sold 1 cement 500", sid="SM9"))

        assert outcome.state == RouteState.EXECUTED
        assert outcome.media_url == "https://files.test/r.pdf"
        request = bridge.execute.call_args[0][0]
        assert request.context.role == "admin"
        assert request.message_id == "SM9"

    def test_bridge_failure_is_audited(self, router, db_session, fake_llm, bridge, seed_mapping):
        seed_mapping()
        bridge.execute.return_value = BridgeResult.fail('Product "cement" not found in inventory.')
        fake_llm.queue(SMALL_SALE)

        outcome = router.handle(inbound("sold 1 cement 500"))

        assert outcome.reply == 'Product "cement" not found in inventory.'
        row = audit_rows(db_session)[0]
        assert row.success is False
        assert row.error_message == 'Product "cement" not found in inventory.'


class TestDrafts:
    def test_missing_amount_then_followup(self, router, db_session, fake_llm, bridge, seed_mapping):
        seed_mapping()
        fake_llm.queue({"intent": "record_sale", "confidence": "high", "entities": {"product": "cement", "quantity": 5}})

        first = router.handle(inbound("sold 5 cement"))

        assert first.state == RouteState.AWAITING_DETAILS
        assert first.reply.startswith("How much was it?")
        assert "5 cement" in first.reply
        assert db_session.query(ConversationDraft).count() == 1

        fake_llm.queue({"intent": "record_sale", "confidence": "high", "entities": {"amount": 2500}})
        second = router.handle(inbound("2500"))

        assert second.state == RouteState.EXECUTED
        assert bridge.execute.call_args[0][0].entities == {"product": "cement", "quantity": 5, "amount": 2500}
        assert db_session.query(ConversationDraft).count() == 0
        followup_prompt = fake_llm.calls[1]["messages"][1]["content"]
        assert '["amount"]' in followup_prompt

    def test_cancel_clears_draft_only(self, router, db_session, fake_llm, seed_mapping):
        seed_mapping()
        fake_llm.queue(BIG_SALE)
        router.handle(inbound("sold 5 bags cement to john 12k cash"))
        fake_llm.queue({"intent": "record_expense", "confidence": "high", "entities": {"description": "fuel"}})
        router.handle(inbound("spent on fuel"))

        outcome = router.handle(inbound("cancel"))

        assert outcome.state == RouteState.CANCELLED_DRAFT
        assert db_session.query(ConversationDraft).count() == 0
        assert db_session.query(PendingAction).filter(PendingAction.processed_at.is_(None)).count() == 1


class TestFailureSafety:
    def test_bridge_exception_gives_safe_reply(self, router, db_session, fake_llm, bridge, seed_mapping):
        seed_mapping()
        bridge.execute.side_effect = RuntimeError("connection reset")
        fake_llm.queue(SMALL_SALE)

        outcome = router.handle(inbound("sold 1 cement 500"))

        assert outcome.state == RouteState.ERROR
        assert outcome.reply == replies.ERROR_MESSAGE
        rows = audit_rows(db_session)
        assert len(rows) == 1
        assert rows[0].success is False
        assert rows[0].tenant_id == TENANT_ID
        assert "connection reset" in rows[0].error_message

    def test_touch_and_usage_survive_bridge_exception(self, router, db_session, fake_llm, bridge, seed_mapping, seed_profile):
        seed_mapping()
        seed_profile(whatsapp_messages_used=3, whatsapp_usage_reset_date=NOW.date())
        bridge.execute.side_effect = RuntimeError("boom")
        fake_llm.queue({"intent": "check_stock", "confidence": "high", "entities": {}})

        outcome = router.handle(inbound("check stock"))

        assert outcome.state == RouteState.ERROR
        mapping = db_session.query(WhatsAppUserMapping).one()
        assert mapping.last_used_at.replace(tzinfo=None) == NOW.replace(tzinfo=None)
        assert db_session.query(BusinessProfile).one().whatsapp_messages_used == 4

    def test_audit_failure_does_not_block_reply(self, db_session, settings, fake_llm, bridge, seed_mapping):
        seed_mapping()
        broken_factory = Mock(side_effect=RuntimeError("audit db down"))
        router = ConversationRouter(db_session, settings, IntentParser(settings, fake_llm), bridge, AuditLogger(broken_factory))

        outcome = router.handle(inbound("help"))

        assert outcome.reply == replies.HELP_MESSAGE


class TestQuota:
    def test_over_limit_sender(self, router, db_session, fake_llm, seed_mapping, seed_profile):
        seed_mapping()
        seed_profile(whatsapp_messages_used=100, whatsapp_usage_reset_date=NOW.date())

        outcome = router.handle(inbound("sold cement"))

        assert outcome.state == RouteState.QUOTA_EXCEEDED
        assert "100/100" in outcome.reply
        assert fake_llm.calls == []
        assert audit_rows(db_session)[0].success is False


class TestConfirmationMessage:
    def test_sale_defaults(self):
        text = confirmation_message("record_sale", {"product": "cement", "amount": 15000})
        assert text.startswith("Record sale of 1x cement for K15,000 to Walk-in Customer?")

    def test_unknown_intent(self):
        assert confirmation_message("check_customer", {}).startswith("Proceed with check_customer?")
