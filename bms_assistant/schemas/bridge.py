from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel


class BridgeContextSchema(BaseModel):
    tenant_id: Optional[UUID] = None
    user_id: Optional[UUID] = None
    role: Optional[str] = None
    display_name: Optional[str] = None


class BridgeExecuteRequest(BaseModel):
    intent: Optional[str] = None
    entities: dict[str, Any] = {}
    context: Optional[BridgeContextSchema] = None
    message_id: Optional[str] = None


class BridgeExecuteResponse(BaseModel):
    success: bool
    message: str
    error: Optional[str] = None
    media_url: Optional[str] = None
    data: Any = None
    execution_time_ms: int
