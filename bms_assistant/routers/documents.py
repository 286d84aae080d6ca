from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from bms_assistant.database import get_db
from bms_assistant.dependencies import get_document_generator
from bms_assistant.logging_config import get_logger
from bms_assistant.schemas.document import DocumentGenerateRequest, DocumentGenerateResponse
from bms_assistant.services.document_service import (
    DocumentGenerator,
    DocumentNotFoundError,
    DocumentRequest,
    InvalidDocumentRequestError,
)
from bms_assistant.services.storage import DocumentStorageError

logger = get_logger("documents_router")

router = APIRouter()


@router.post("/documents/generate", response_model=DocumentGenerateResponse)
def generate_document(
    request: DocumentGenerateRequest,
    db: Session = Depends(get_db),
    generator: DocumentGenerator = Depends(get_document_generator),
):
    """Render a receipt, invoice or quotation and return its public URL."""
    try:
        artifact = generator.generate(
            db,
            DocumentRequest(
                document_type=request.document_type,
                tenant_id=request.tenant_id,
                document_id=request.document_id,
                document_number=request.document_number,
            ),
        )
    except InvalidDocumentRequestError as e:
        return JSONResponse(status_code=400, content={"error": e.message})
    except DocumentNotFoundError as e:
        return JSONResponse(status_code=404, content={"error": e.message, "details": e.details})
    except DocumentStorageError as e:
        return JSONResponse(status_code=500, content={"error": "Failed to upload document", "details": e.message})

    return DocumentGenerateResponse(
        success=True,
        document_type=artifact.document_type,
        document_number=artifact.document_number,
        url=artifact.url,
        filename=artifact.filename,
    )
