import json
import os
import uuid
from datetime import datetime, timezone

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import bms_assistant.models  # noqa: F401
from bms_assistant.config import Settings
from bms_assistant.database import Base
from bms_assistant.models import BusinessProfile, InventoryItem, WhatsAppUserMapping
from bms_assistant.services.llm.base import LLMHTTPError, LLMProvider, LLMResponse
from bms_assistant.services.storage import DocumentStorage, DocumentStorageError

TENANT_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")
USER_ID = uuid.UUID("22222222-2222-2222-2222-222222222222")
PHONE = "+260971234567"


class FakeLLMProvider(LLMProvider):
    """Returns queued replies; a queued LLMHTTPError is raised instead."""

    def __init__(self, replies=None):
        self.replies = list(replies or [])
        self.calls = []

    def queue(self, reply):
        if isinstance(reply, dict):
            reply = json.dumps(reply)
        self.replies.append(reply)

    def generate(self, messages, model=None, temperature=0.1, max_tokens=1000, json_mode=False, timeout_seconds=None):
        self.calls.append({"messages": messages, "temperature": temperature, "json_mode": json_mode})
        reply = self.replies.pop(0) if self.replies else "{}"
        if isinstance(reply, Exception):
            raise reply
        return LLMResponse(content=reply, model=model or "fake")


class FakeStorage(DocumentStorage):
    def __init__(self, fail=False):
        self.fail = fail
        self.uploads = {}

    def upload(self, filename, content, content_type="application/pdf"):
        if self.fail:
            raise DocumentStorageError("bucket unavailable")
        self.uploads[filename] = content
        return f"https://files.test/{filename}"


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url="sqlite://",
        llm_api_key="test-key",
        storage_backend="local",
        storage_local_dir=str(tmp_path / "documents"),
        public_base_url="https://files.test",
    )


@pytest.fixture
def fake_llm():
    return FakeLLMProvider()


@pytest.fixture
def fake_storage():
    return FakeStorage()


@pytest.fixture
def rate_limited_error():
    return LLMHTTPError(429, "slow down")


@pytest.fixture
def seed_mapping(db_session):
    def _seed(phone=PHONE, role="admin", is_active=True, tenant_id=TENANT_ID, last_used_at=None):
        mapping = WhatsAppUserMapping(
            tenant_id=tenant_id,
            whatsapp_number=phone,
            user_id=USER_ID,
            role=role,
            display_name="Mutale",
            is_active=is_active,
            created_at=datetime.now(timezone.utc),
            last_used_at=last_used_at,
        )
        db_session.add(mapping)
        db_session.commit()
        return mapping

    return _seed


@pytest.fixture
def seed_inventory(db_session):
    def _seed(name="Cement", current_stock=100, unit_price=500, liters_per_unit=0, tenant_id=TENANT_ID):
        item = InventoryItem(
            tenant_id=tenant_id,
            name=name,
            current_stock=current_stock,
            reorder_level=10,
            unit_price=unit_price,
            liters_per_unit=liters_per_unit,
        )
        db_session.add(item)
        db_session.commit()
        return item

    return _seed


@pytest.fixture
def seed_profile(db_session):
    def _seed(tenant_id=TENANT_ID, **fields):
        profile = BusinessProfile(tenant_id=tenant_id, company_name="Mwila Hardware", **fields)
        db_session.add(profile)
        db_session.commit()
        return profile

    return _seed
