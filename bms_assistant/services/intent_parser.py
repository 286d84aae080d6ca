import json
import re
from dataclasses import dataclass, field
from typing import Any, Optional

from bms_assistant.config import Settings
from bms_assistant.logging_config import get_logger
from bms_assistant.services.intent_service import (
    Confidence,
    Intent,
    has_unreadable_numbers,
    is_unreadable_number,
    normalize_entities,
    parse_confidence,
    parse_intent_name,
)
from bms_assistant.services.llm.base import LLMHTTPError, LLMProvider
from bms_assistant.services.prompts import build_followup_messages, build_fresh_messages
from bms_assistant.services.result import Result

logger = get_logger("intent_parser")

PARSE_TEMPERATURE = 0.1
PARSE_MAX_TOKENS = 1000

CODE_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)


@dataclass
class ParseContext:
    role: Optional[str] = None
    is_followup: bool = False
    existing_intent: Optional[str] = None
    existing_entities: dict = field(default_factory=dict)
    missing_fields: list = field(default_factory=list)
    last_prompt: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "ParseContext":
        data = data or {}
        return cls(
            role=data.get("role"),
            is_followup=bool(data.get("is_followup")),
            existing_intent=data.get("existing_intent"),
            existing_entities=data.get("existing_entities") or {},
            missing_fields=data.get("missing_fields") or [],
            last_prompt=data.get("last_prompt"),
        )


@dataclass
class ParsedIntent:
    intent: str
    confidence: str = Confidence.LOW.value
    entities: dict = field(default_factory=dict)
    requires_confirmation: bool = False
    clarification_needed: Optional[str] = None

    @property
    def has_unreadable_numbers(self) -> bool:
        return has_unreadable_numbers(self.entities)

    def to_response(self) -> dict:
        """JSON-safe view: unreadable numbers become null and confidence drops to low."""
        entities = {key: (None if is_unreadable_number(value) else value) for key, value in self.entities.items()}
        confidence = Confidence.LOW.value if self.has_unreadable_numbers else self.confidence
        return {
            "intent": self.intent,
            "confidence": confidence,
            "entities": entities,
            "requires_confirmation": self.requires_confirmation,
            "clarification_needed": self.clarification_needed,
        }


def strip_code_fences(content: str) -> str:
    return CODE_FENCE_RE.sub("", content).replace("```", "").strip()


def fallback_intent(context: Optional[ParseContext] = None) -> ParsedIntent:
    existing = context.existing_intent if context else None
    return ParsedIntent(intent=existing or Intent.HELP.value, confidence=Confidence.LOW.value)


def interpret_model_output(content: str, context: Optional[ParseContext] = None) -> ParsedIntent:
    """Decode and normalize raw model output. Never raises."""
    try:
        data = json.loads(strip_code_fences(content))
    except (ValueError, TypeError):
        logger.warning("Malformed model output", extra={"context": {"content": content[:200]}})
        return fallback_intent(context)

    if not isinstance(data, dict):
        logger.warning("Model output is not an object", extra={"context": {"content": content[:200]}})
        return fallback_intent(context)

    intent = parse_intent_name(data.get("intent"))
    if intent is None:
        logger.warning("Model named unknown intent", extra={"context": {"intent": data.get("intent")}})
        return fallback_intent(context)

    entities = data.get("entities")
    if not isinstance(entities, dict):
        entities = {}

    clarification = data.get("clarification_needed")
    return ParsedIntent(
        intent=intent.value,
        confidence=parse_confidence(data.get("confidence")).value,
        entities=normalize_entities(entities),
        requires_confirmation=bool(data.get("requires_confirmation")),
        clarification_needed=str(clarification) if clarification else None,
    )


class IntentParser:
    """Turn a free-text message into a structured intent via the LLM gateway."""

    def __init__(self, settings: Settings, provider: Optional[LLMProvider]):
        self.settings = settings
        self.provider = provider

    def build_messages(self, message: str, context: Optional[ParseContext]) -> list[dict]:
        if context and context.is_followup and context.existing_intent:
            return build_followup_messages(
                message,
                existing_intent=context.existing_intent,
                existing_entities=context.existing_entities,
                missing_fields=context.missing_fields,
                last_prompt=context.last_prompt,
            )
        return build_fresh_messages(message, role=context.role if context else None)

    def parse(self, message: Any, context: Optional[ParseContext] = None) -> Result[ParsedIntent]:
        if not message or not str(message).strip():
            return Result.failure("Message is required", "missing_input")

        if self.provider is None or not self.settings.llm_api_key:
            logger.error("LLM API key not configured")
            return Result.failure("AI service not configured", "not_configured")

        messages = self.build_messages(str(message), context)

        try:
            response = self.provider.generate(
                messages,
                model=self.settings.llm_model,
                temperature=PARSE_TEMPERATURE,
                max_tokens=PARSE_MAX_TOKENS,
                json_mode=True,
                timeout_seconds=self.settings.llm_timeout_seconds,
            )
        except LLMHTTPError as e:
            if e.status_code == 429:
                return Result.failure("Rate limit exceeded. Please try again later.", "rate_limited")
            if e.status_code == 402:
                return Result.failure("Service quota exceeded. Please contact support.", "quota_exceeded")
            return Result.failure("AI service error", "upstream_error")
        except Exception as e:
            logger.error(f"LLM call failed: {e}")
            return Result.failure("AI service error", "upstream_error")

        if not response.content:
            logger.error("No content in LLM response")
            return Result.failure("Invalid AI response", "upstream_error")

        parsed = interpret_model_output(response.content, context)
        logger.info(
            "Parsed intent",
            extra={
                "context": {
                    "intent": parsed.intent,
                    "confidence": parsed.confidence,
                    "followup": bool(context and context.is_followup),
                }
            },
        )
        return Result.success(parsed)
