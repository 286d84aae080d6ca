import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from bms_assistant.database import get_db
from bms_assistant.dependencies import get_bridge
from bms_assistant.schemas.bridge import BridgeExecuteRequest, BridgeExecuteResponse
from bms_assistant.services.bridge_service import BridgeContext, BridgeRequest, ExecutionBridge

router = APIRouter()

ERROR_CODE_STATUS = {"invalid_request": 400, "forbidden": 403}


@router.post("/bridge/execute", response_model=BridgeExecuteResponse)
def execute_intent(
    request: BridgeExecuteRequest,
    db: Session = Depends(get_db),
    bridge: ExecutionBridge = Depends(get_bridge),
):
    ctx = request.context
    if not request.intent or not ctx or not ctx.tenant_id or not ctx.user_id or not ctx.role:
        return JSONResponse(status_code=400, content={"success": False, "error": "Missing required parameters"})

    start = time.monotonic()
    result = bridge.execute(
        BridgeRequest(
            intent=request.intent,
            entities=request.entities,
            context=BridgeContext(
                tenant_id=ctx.tenant_id,
                user_id=ctx.user_id,
                role=ctx.role,
                display_name=ctx.display_name,
            ),
            message_id=request.message_id,
        )
    )
    status_code = ERROR_CODE_STATUS.get(result.error_code or "")
    if status_code:
        db.rollback()
        return JSONResponse(status_code=status_code, content={"success": False, "error": result.error})

    db.commit()
    return BridgeExecuteResponse(
        success=result.success,
        message=result.message,
        error=result.error,
        media_url=result.media_url,
        data=result.data,
        execution_time_ms=int((time.monotonic() - start) * 1000),
    )
