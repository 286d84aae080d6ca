import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from bms_assistant.dependencies import get_intent_parser
from bms_assistant.schemas.intent import IntentParseRequest, IntentParseResponse
from bms_assistant.services.intent_parser import IntentParser, ParseContext

router = APIRouter()


@router.post("/intent/parse", response_model=IntentParseResponse)
def parse_intent(request: IntentParseRequest, parser: IntentParser = Depends(get_intent_parser)):
    start = time.monotonic()
    context = ParseContext.from_dict(request.context.model_dump() if request.context else None)

    result = parser.parse(request.message, context)
    if not result.ok:
        return JSONResponse(status_code=result.status_code, content={"error": result.error})

    return IntentParseResponse(
        **result.value.to_response(),
        execution_time_ms=int((time.monotonic() - start) * 1000),
    )
