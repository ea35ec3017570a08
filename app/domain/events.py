"""Domain layer: Domain events and event dispatcher."""
from abc import ABC
from dataclasses import dataclass
from typing import Dict, List, Protocol


@dataclass
class DomainEvent(ABC):
    """Base class for domain events."""
    owner_id: str


@dataclass
class BirthdaySaved(DomainEvent):
    """Event fired when a new birthday record is written."""
    name: str
    day: int
    month: str


@dataclass
class BirthdayUpdated(DomainEvent):
    """Event fired when a birthday's date changes."""
    name: str
    day: int
    month: str


@dataclass
class BirthdayRenamed(DomainEvent):
    old_name: str
    new_name: str


@dataclass
class BirthdayDeleted(DomainEvent):
    name: str


class EventHandler(Protocol):
    """Interface for event handlers."""

    async def handle(self, event: DomainEvent) -> None:
        """Handle the domain event."""
        pass


class EventDispatcher:
    """Simple event dispatcher for domain events."""

    def __init__(self):
        self._handlers: Dict[type, List[EventHandler]] = {}

    def register_handler(self, event_type: type, handler: EventHandler) -> None:
        """Register an event handler for a specific event type."""
        if event_type not in self._handlers:
            self._handlers[event_type] = []
        self._handlers[event_type].append(handler)

    async def dispatch(self, event: DomainEvent) -> None:
        """Dispatch an event to every handler registered for its type or a base type."""
        for event_type in type(event).__mro__:
            for handler in self._handlers.get(event_type, []):
                await handler.handle(event)
