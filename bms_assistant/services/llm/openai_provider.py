from typing import List, Optional

import httpx

from bms_assistant.logging_config import get_logger
from bms_assistant.services.llm.base import LLMHTTPError, LLMProvider, LLMResponse

logger = get_logger("llm.openai")


class OpenAICompatibleProvider(LLMProvider):
    """Chat-completions provider for any OpenAI-compatible gateway."""

    def __init__(self, api_key: str, base_url: str, default_model: str, timeout_seconds: float = 30.0):
        self.api_key = api_key
        self.base_url = base_url
        self.default_model = default_model
        self.timeout_seconds = timeout_seconds

    def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: int = 1000,
        json_mode: bool = False,
        timeout_seconds: Optional[float] = None,
    ) -> LLMResponse:
        model = model or self.default_model
        timeout = timeout_seconds if timeout_seconds is not None else self.timeout_seconds

        payload = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        logger.debug(f"LLM request: model={model}, messages_count={len(messages)}")

        with httpx.Client(timeout=timeout) as client:
            response = client.post(
                self.base_url,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
            )

        logger.debug(f"LLM response status: {response.status_code}")

        if response.status_code != 200:
            logger.error(
                "LLM gateway error",
                extra={"context": {"status_code": response.status_code, "body": response.text[:500]}},
            )
            raise LLMHTTPError(response.status_code, response.text)

        data = response.json()

        content = ""
        if data.get("choices"):
            message = data["choices"][0].get("message", {})
            content = message.get("content") or ""

        return LLMResponse(
            content=content,
            model=data.get("model", model),
            usage=data.get("usage"),
        )
