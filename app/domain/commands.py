"""Domain layer: Command pattern for resolved user actions."""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional, Tuple

from app.domain.events import DomainEvent


class ActionKind(str, Enum):
    BATCH_SAVE = "batch_save"
    SAVE = "save"
    UPDATE = "update"
    RENAME = "rename"
    DELETE = "delete"
    LIST_ALL = "list_all"
    LIST_MONTH = "list_month"
    SEARCH_NAME = "search_name"
    SEARCH_DATE = "search_date"
    UPCOMING = "upcoming"
    FUZZY_LOOKUP = "fuzzy_lookup"
    HELP = "help"
    CLARIFY = "clarify"
    FALLBACK = "fallback"


class Outcome(str, Enum):
    SAVED = "saved"
    DUPLICATE = "duplicate"
    UPDATED = "updated"
    RENAMED = "renamed"
    DELETED = "deleted"
    PARTIAL = "partial"
    NOT_FOUND = "not_found"
    LISTED = "listed"
    EMPTY = "empty"
    CLARIFY = "clarify"
    HELP = "help"
    FALLBACK = "fallback"
    NO_MATCH = "no_match"


@dataclass(frozen=True)
class ResolvedAction:
    """A decision about what to do with one message; carries no side effects."""
    kind: ActionKind
    name: Optional[str] = None
    new_name: Optional[str] = None
    day: Optional[int] = None
    month: Optional[str] = None
    month_offset: int = 0
    names: Tuple[str, ...] = ()
    lines: Tuple[str, ...] = ()
    query: Optional[str] = None
    horizon_days: Optional[int] = None
    question: Optional[str] = None
    source: str = ""

    def with_source(self, source: str) -> "ResolvedAction":
        return replace(self, source=source)


@dataclass(frozen=True)
class Reply:
    text: str
    rewrite: bool = True


@dataclass
class HandlerResult:
    """Outcome of one dispatched action.

    ``events`` are the post-dispatch effects, applied only after the action
    has completed. ``handled=False`` sends the turn to the terminal fallback.
    """
    outcome: Outcome
    reply: Optional[Reply] = None
    handled: bool = True
    events: List[DomainEvent] = field(default_factory=list)


class CommandHandler(ABC):
    """Handler interface for executing one resolved action."""

    @abstractmethod
    async def handle(self, action: ResolvedAction, owner_id: str) -> HandlerResult:
        """Handle the action for the given owner."""
        pass
