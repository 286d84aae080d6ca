from typing import Optional

from pydantic import BaseModel


class DocumentGenerateRequest(BaseModel):
    document_type: Optional[str] = None
    document_id: Optional[str] = None
    document_number: Optional[str] = None
    tenant_id: Optional[str] = None


class DocumentGenerateResponse(BaseModel):
    success: bool
    document_type: str
    document_number: str
    url: str
    filename: str
