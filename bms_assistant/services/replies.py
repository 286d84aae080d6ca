"""Fixed user-facing texts for the WhatsApp assistant."""

HELP_MESSAGE = """Hi! I'm your business assistant.

Here's what I can help with:

*Sales & Stock*
Just tell me what you sold, like "sold 5 cement 2500 cash" or ask "check stock cement"

*Documents*
Need a receipt or invoice? Just ask - "last receipt" or "send invoice"

*Expenses*
Log spending with "spent 200 on transport"

*Reports*
Ask "sales today" or "sales this month"

Just chat naturally - I understand broken English and shortcuts! Say "cancel" anytime to start fresh."""

UNREGISTERED_MESSAGE = """Hi! I don't recognize this number yet.

To get started, ask your admin to add your WhatsApp number in the system under Settings → WhatsApp."""

INACTIVE_MESSAGE = "Your access has been paused. Please check with your admin to get it sorted!"

QUOTA_EXCEEDED_MESSAGE = """You've hit the monthly message limit ({used}/{limit}).

Your admin can upgrade the plan to keep chatting, or it'll reset next month."""

INVALID_PHONE_MESSAGE = "Invalid phone number."
EMPTY_MESSAGE = "Please send a text message."
MESSAGE_TOO_LONG = "Message too long."

DRAFT_CANCELLED_MESSAGE = "No problem, cancelled! What would you like to do instead?"
CONFIRMATION_DECLINED_MESSAGE = "No worries, cancelled! Let me know what else you need."

PARSE_FAILED_MESSAGE = (
    "I'm not sure what you mean. Try telling me in simpler words, or say \"help\" to see examples!"
)
CLARIFICATION_MESSAGE = (
    "Hmm, I didn't quite get that. Can you try saying it differently, or say \"help\" to see what I can do?"
)
UNREADABLE_NUMBER_MESSAGE = "I couldn't read the amount or quantity. Can you send the number again, like \"K2500\" or \"5 bags\"?"

CONFIRM_PROMPT = "Reply YES to confirm or NO to cancel"

DONE_MESSAGE = "✅ Done!"
FAILED_MESSAGE = "❌ Failed."
ERROR_MESSAGE = "Oops, something went wrong on my end. Give it another try in a moment!"
