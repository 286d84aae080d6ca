from bms_assistant.services.llm.base import LLMHTTPError, LLMProvider, LLMResponse
from bms_assistant.services.llm.openai_provider import OpenAICompatibleProvider

__all__ = ["LLMHTTPError", "LLMProvider", "LLMResponse", "OpenAICompatibleProvider"]
