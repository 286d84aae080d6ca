from typing import Optional

from fastapi import APIRouter, Depends, Form, Response

from bms_assistant.dependencies import get_conversation_router
from bms_assistant.services.conversation_router import ConversationRouter, InboundMessage
from bms_assistant.services.twiml import build_twiml_response

router = APIRouter()


@router.post("/webhooks/whatsapp")
def whatsapp_webhook(
    from_number: Optional[str] = Form(None, alias="From"),
    body: Optional[str] = Form(None, alias="Body"),
    message_sid: Optional[str] = Form(None, alias="MessageSid"),
    conversation_router: ConversationRouter = Depends(get_conversation_router),
):
    """Inbound WhatsApp message from the telephony provider. Always answers with TwiML."""
    outcome = conversation_router.handle(InboundMessage(from_number=from_number, body=body, message_sid=message_sid))
    return Response(content=build_twiml_response(outcome.reply, outcome.media_url), media_type="text/xml")
