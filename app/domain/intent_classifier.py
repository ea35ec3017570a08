"""Domain layer: Intent classification using Strategy pattern."""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple


class Intent(str, Enum):
    SAVE = "save"
    UPDATE = "update"
    DELETE = "delete"
    LIST_ALL = "list_all"
    LIST_MONTH = "list_month"
    SEARCH = "search"
    HELP = "help"
    UNKNOWN = "unknown"


# Slots an intent cannot be acted on without
REQUIRED_SLOTS: Dict[Intent, Tuple[str, ...]] = {
    Intent.SAVE: ("name", "day", "month"),
    Intent.UPDATE: ("name", "day", "month"),
    Intent.DELETE: ("name",),
    Intent.SEARCH: ("query",),
}


@dataclass(frozen=True)
class ParsedIntent:
    """Validated classifier output.

    Only ever built from checked data. When the classifier names an intent
    but leaves a required slot empty, ``intent`` is UNKNOWN and
    ``rejected_intent`` keeps the claimed label so the caller can ask for
    the missing piece.
    """
    intent: Intent = Intent.UNKNOWN
    name: Optional[str] = None
    day: Optional[int] = None
    month: Optional[str] = None
    query: Optional[str] = None
    needs_clarification: bool = False
    clarification_question: Optional[str] = None
    rejected_intent: Optional[Intent] = None

    @classmethod
    def unknown(cls) -> "ParsedIntent":
        return cls()

    @property
    def wants_clarification(self) -> bool:
        return self.needs_clarification and bool(self.clarification_question)

    def missing_slots(self, intent: Optional[Intent] = None) -> Tuple[str, ...]:
        required = REQUIRED_SLOTS.get(intent or self.intent, ())
        return tuple(slot for slot in required if getattr(self, slot) in (None, ""))


def enforce_required_slots(parsed: ParsedIntent) -> ParsedIntent:
    """Downgrade an intent with missing required slots to UNKNOWN."""
    if parsed.intent is Intent.UNKNOWN or not parsed.missing_slots():
        return parsed
    return ParsedIntent(
        intent=Intent.UNKNOWN,
        needs_clarification=parsed.needs_clarification,
        clarification_question=parsed.clarification_question,
        rejected_intent=parsed.intent,
    )


class IntentClassifier(ABC):
    """Strategy interface for classifying user intents."""

    @abstractmethod
    async def classify(self, message: str) -> ParsedIntent:
        """Classify a raw message. Must never raise."""
        pass


class NullIntentClassifier(IntentClassifier):
    """Used when no LLM is configured; deterministic resolvers do the work."""

    async def classify(self, message: str) -> ParsedIntent:
        return ParsedIntent.unknown()
