from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./bms_assistant.db"
    log_level: str = "INFO"

    # LLM gateway (OpenAI-compatible chat completions)
    llm_api_key: Optional[str] = None
    llm_base_url: str = "https://ai.gateway.lovable.dev/v1/chat/completions"
    llm_model: str = "google/gemini-2.5-pro"
    llm_timeout_seconds: float = 30.0

    # Document storage
    storage_backend: str = "local"  # local, supabase
    storage_url: Optional[str] = None
    storage_api_key: Optional[str] = None
    storage_bucket: str = "whatsapp-documents"
    storage_local_dir: str = "./documents"
    public_base_url: str = "http://localhost:8000/documents"

    # Conversation policy
    pending_action_ttl_minutes: int = 10
    draft_ttl_minutes: int = 15
    max_message_length: int = 1000
    sale_confirmation_threshold: float = 10000
    expense_confirmation_threshold: float = 5000
    default_whatsapp_monthly_limit: int = 100

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    return Settings()
