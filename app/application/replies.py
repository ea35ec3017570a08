"""User-facing reply texts."""
from typing import Iterable

from app.domain.intent_classifier import Intent

WELCOME_MESSAGE = (
    "Hi! 👋 Welcome to the Birthday Bot 🎂\n\n"
    "I help you remember birthdays and remind you on the day.\n\n"
    "To save a birthday, just send the name and date, like:\n"
    "• Papa, 29 Aug\n"
    "• Tanni, 9 Feb\n\n"
    "You can send many birthdays at once, one per line.\n\n"
    "To see everything you've saved, send \"Complete list\"."
)

HELP_MESSAGE = (
    "Here's what I can do 🎂\n\n"
    "• Save: \"Papa, 29 Aug\" (one per line for many)\n"
    "• See all: \"Complete list\"\n"
    "• One month: \"Birthdays in March\" or \"This month\"\n"
    "• Coming up: \"Upcoming birthdays\" or \"This week\"\n"
    "• Find: \"When is Papa's birthday?\" or \"Birthdays on 9 Feb\"\n"
    "• Change: \"Update Papa to 30 Aug\" or \"Rename Papa to Dad\"\n"
    "• Remove: \"Delete Papa\""
)

FALLBACK_MESSAGE = "I can only help with saving and managing birthdays 😊"

CLARIFY_SAVE = "Whose birthday and which date should I save?"
CLARIFY_UPDATE = "Whose birthday should I update and what's the new date?"
CLARIFY_DELETE = "Whose birthday should I delete?"
CLARIFY_SEARCH = "What should I search for?"
CLARIFY_RENAME = "Whose name should I change, and to what?"

CLARIFICATION_BY_INTENT = {
    Intent.SAVE: CLARIFY_SAVE,
    Intent.UPDATE: CLARIFY_UPDATE,
    Intent.DELETE: CLARIFY_DELETE,
    Intent.SEARCH: CLARIFY_SEARCH,
}


def short_date(day: int, month: str) -> str:
    return f"{month} {day}"


def saved(name: str, day: int, month: str) -> str:
    return f"I've saved {name}'s birthday on {short_date(day, month)}. 🎂"


def duplicate(name: str, day: int, month: str) -> str:
    return f"I already have {name}'s birthday saved on {short_date(day, month)}."


def updated(name: str, day: int, month: str) -> str:
    return f"I've updated {name}'s birthday to {short_date(day, month)}."


def update_not_found(name: str) -> str:
    return f"I couldn't find {name}'s birthday to update."


def renamed(old_name: str, new_name: str) -> str:
    return f"I've changed {old_name}'s name to {new_name}."


def rename_not_found(name: str) -> str:
    return f"I couldn't find {name}'s birthday to rename."


DELETE_NOT_FOUND = "I could not find this birthday. Please try again."


def deleted(names: Iterable[str]) -> str:
    names = list(names)
    if len(names) == 1:
        return f"I've removed {names[0]}'s birthday."
    return f"I've removed {len(names)} birthdays: {', '.join(names)}."


def delete_partial(removed: Iterable[str], missing: Iterable[str]) -> str:
    missing = list(missing)
    return f"{deleted(removed)}\nI could not find: {', '.join(missing)}."


def delete_ambiguous(query: str, records) -> str:
    lines = "\n".join(f"• {r.name} – {short_date(r.day, r.month)}" for r in records)
    return f"More than one birthday matches {query}:\n{lines}\nPlease send the full name to delete."


NO_BIRTHDAYS = "I have not saved any birthdays yet."


def month_empty(month_name: str) -> str:
    return f"I don't have any birthdays saved for {month_name}."


def date_empty(day: int, month: str) -> str:
    return f"No birthdays on {short_date(day, month)}."


def date_single(name: str, day: int, month: str) -> str:
    return f"{name}'s birthday is on {short_date(day, month)}."


def date_many(names: Iterable[str], day: int, month: str) -> str:
    return f"Birthdays on {short_date(day, month)}: {', '.join(names)}"


def upcoming_empty(horizon_days: int) -> str:
    return f"No upcoming birthdays in the next {horizon_days} days."


def lookup_single(name: str, day: int, month: str) -> str:
    return f"{name}'s birthday is on {short_date(day, month)}. 🎂"


def name_not_found(query: str) -> str:
    return f"I couldn't find a birthday for {query}."
