from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bms_assistant.config import get_settings
from bms_assistant.database import init_db
from bms_assistant.logging_config import get_logger, setup_logging
from bms_assistant.routers import bridge, documents, intent_parser, webhook

setup_logging(get_settings().log_level)
logger = get_logger("main")

app = FastAPI(
    title="BMS WhatsApp Assistant",
    description="WhatsApp command pipeline for the business management system",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(webhook.router)
app.include_router(intent_parser.router)
app.include_router(documents.router)
app.include_router(bridge.router)


@app.on_event("startup")
def create_tables() -> None:
    init_db()
    logger.info("Database ready")


@app.get("/health")
async def health():
    return {"status": "ok"}
