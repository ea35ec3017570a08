"""Infrastructure layer: Claude-backed intent classifier.

One call per message, no retry loop. Whatever comes back is validated
against ``ClassifierResponse``; every failure path ends in an unknown intent
so the deterministic resolvers keep the conversation moving.
"""
import json
import logging
from typing import Any, Dict, Optional

import anthropic
from pydantic import ValidationError

from app.domain.intent_classifier import (
    Intent,
    IntentClassifier,
    ParsedIntent,
    enforce_required_slots,
)
from app.schemas import CLASSIFIER_TOOL_SCHEMA, ClassifierResponse

logger = logging.getLogger(__name__)

TOOL_NAME = "classify_birthday_message"

SYSTEM_PROMPT = (
    "You classify WhatsApp messages sent to a birthday reminder assistant.\n\n"
    "INTENTS:\n"
    "- save: the user gives a person's name and a birthday date to remember\n"
    "- update: the user wants to change the date of an existing birthday\n"
    "- delete: the user wants to remove one or more birthdays\n"
    "- list_all: the user wants to see every saved birthday\n"
    "- list_month: the user wants the birthdays of one month\n"
    "- search: the user asks about a specific person or date (put it in query)\n"
    "- help: the user asks how to use the assistant\n"
    "- unknown: anything else\n\n"
    "RULES:\n"
    "- Only fill name, day, month and query from words actually in the message\n"
    "- day is a number 1-31, month is a month name or number\n"
    "- If the request is about birthdays but too vague to act on, set "
    "needs_clarification to true and write one short clarification_question\n"
    "- Always answer by calling the " + TOOL_NAME + " tool"
)


def _extract_json_text(text: str) -> Optional[Dict[str, Any]]:
    start = text.find("{")
    end = text.rfind("}") + 1
    if start == -1 or end <= start:
        return None
    return json.loads(text[start:end])


def _to_parsed_intent(response: ClassifierResponse) -> ParsedIntent:
    parsed = ParsedIntent(
        intent=Intent(response.intent),
        name=response.name,
        day=response.day,
        month=response.month,
        query=response.query,
        needs_clarification=response.needs_clarification,
        clarification_question=response.clarification_question,
    )
    return enforce_required_slots(parsed)


class AnthropicIntentClassifier(IntentClassifier):
    """Intent classification through a forced Claude tool call."""

    def __init__(self, api_key: Optional[str] = None, model: str = "claude-3-5-haiku-20241022",
                 client=None, max_tokens: int = 300):
        self.model = model
        self.max_tokens = max_tokens
        self.client = client or anthropic.AsyncAnthropic(api_key=api_key, max_retries=0)
        self.tool = {
            "name": TOOL_NAME,
            "description": "Record the intent and slots of a birthday assistant message.",
            "input_schema": CLASSIFIER_TOOL_SCHEMA,
        }

    async def classify(self, message: str) -> ParsedIntent:
        if not message or not message.strip():
            return ParsedIntent.unknown()
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=0,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": message}],
                tools=[self.tool],
                tool_choice={"type": "tool", "name": TOOL_NAME},
            )
            payload = self._payload_from_response(response)
            if payload is None:
                logger.warning(f"[CLASSIFIER] No tool input or JSON in response for: {message[:50]}")
                return ParsedIntent.unknown()
            validated = ClassifierResponse.model_validate(payload)
            parsed = _to_parsed_intent(validated)
            logger.info(
                f"[CLASSIFIER] intent={parsed.intent.value} rejected={getattr(parsed.rejected_intent, 'value', None)} "
                f"clarify={parsed.wants_clarification}"
            )
            return parsed
        except (anthropic.APIError, json.JSONDecodeError, ValidationError) as e:
            logger.error(f"[CLASSIFIER] {type(e).__name__}: {e}")
            return ParsedIntent.unknown()
        except Exception as e:
            logger.error(f"[CLASSIFIER] Unexpected failure: {e}", exc_info=True)
            return ParsedIntent.unknown()

    @staticmethod
    def _payload_from_response(response) -> Optional[Dict[str, Any]]:
        text_parts = []
        for content_block in getattr(response, "content", None) or []:
            block_type = getattr(content_block, "type", None)
            if block_type == "tool_use" and getattr(content_block, "name", TOOL_NAME) == TOOL_NAME:
                return dict(content_block.input or {})
            if block_type == "text":
                text_parts.append(content_block.text)
        if text_parts:
            return _extract_json_text("\n".join(text_parts))
        return None
