from typing import Any, Optional

from pydantic import BaseModel


class IntentContext(BaseModel):
    role: Optional[str] = None
    is_followup: bool = False
    existing_intent: Optional[str] = None
    existing_entities: Optional[dict[str, Any]] = None
    missing_fields: Optional[list[str]] = None
    last_prompt: Optional[str] = None


class IntentParseRequest(BaseModel):
    message: Optional[str] = None
    context: Optional[IntentContext] = None


class IntentParseResponse(BaseModel):
    intent: str
    confidence: str
    entities: dict[str, Any]
    requires_confirmation: bool = False
    clarification_needed: Optional[str] = None
    execution_time_ms: int
