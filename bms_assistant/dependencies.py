"""FastAPI dependency wiring. Tests replace these through `app.dependency_overrides`."""

from typing import Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from bms_assistant.config import Settings, get_settings
from bms_assistant.database import SessionLocal, get_db
from bms_assistant.services.audit_service import AuditLogger
from bms_assistant.services.bridge_service import BusinessBridge, ExecutionBridge
from bms_assistant.services.conversation_router import ConversationRouter
from bms_assistant.services.document_service import DocumentGenerator
from bms_assistant.services.intent_parser import IntentParser
from bms_assistant.services.llm import LLMProvider, OpenAICompatibleProvider
from bms_assistant.services.storage import DocumentStorage, build_storage


def get_llm_provider(settings: Settings = Depends(get_settings)) -> Optional[LLMProvider]:
    if not settings.llm_api_key:
        return None
    return OpenAICompatibleProvider(
        api_key=settings.llm_api_key,
        base_url=settings.llm_base_url,
        default_model=settings.llm_model,
        timeout_seconds=settings.llm_timeout_seconds,
    )


def get_intent_parser(
    settings: Settings = Depends(get_settings),
    provider: Optional[LLMProvider] = Depends(get_llm_provider),
) -> IntentParser:
    return IntentParser(settings, provider)


def get_document_storage(settings: Settings = Depends(get_settings)) -> DocumentStorage:
    return build_storage(settings)


def get_document_generator(
    settings: Settings = Depends(get_settings),
    storage: DocumentStorage = Depends(get_document_storage),
) -> DocumentGenerator:
    return DocumentGenerator(settings, storage)


def get_bridge(
    db: Session = Depends(get_db),
    generator: DocumentGenerator = Depends(get_document_generator),
) -> ExecutionBridge:
    return BusinessBridge(db, generator)


def get_audit_logger() -> AuditLogger:
    return AuditLogger(SessionLocal)


def get_conversation_router(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    parser: IntentParser = Depends(get_intent_parser),
    bridge: ExecutionBridge = Depends(get_bridge),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> ConversationRouter:
    return ConversationRouter(db, settings, parser, bridge, audit_logger)
