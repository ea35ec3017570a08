"""Application layer: multi-record reply formatting."""
from itertools import groupby
from typing import Iterable, List, Sequence, Tuple

from app.domain.months import full_month_name, month_order, normalize_month


def sort_chronologically(records: Iterable) -> List:
    """Calendar order: canonical month, then day, then name."""
    return sorted(records, key=lambda r: (month_order(r.month), r.day, r.name.casefold()))


def format_birthdays_chronologically(records: Iterable) -> str:
    """Grouped listing with one full-month header per month present.

    🎂 BIRTHDAYS 🎂

    February
    • 9 – Tanni

    August
    • 29 – Papa
    """
    ordered = sort_chronologically(records)
    if not ordered:
        return ""

    sections = []
    for month, group in groupby(ordered, key=lambda r: normalize_month(r.month) or r.month):
        lines = [full_month_name(month)]
        lines.extend(f"• {r.day} – {r.name}" for r in group)
        sections.append("\n".join(lines))
    return "🎂 BIRTHDAYS 🎂\n\n" + "\n\n".join(sections)


def format_month_listing(month_name: str, records: Sequence) -> str:
    body = "\n".join(f"• {r.name} - {r.month} {r.day}" for r in records)
    return f"Here are the birthdays in {month_name}:\n\n{body}"


def format_upcoming(records: Sequence) -> str:
    body = "\n".join(f"• {r.day} {r.month} – {r.name}" for r in records)
    return f"Here are the upcoming birthdays:\n\n{body}"


def format_matches(records: Sequence) -> str:
    body = "\n".join(f"• {r.name} – {r.month} {r.day}" for r in records)
    return f"I found these matches:\n\n{body}"


def format_batch_summary(saved: Sequence[Tuple[str, int, str]],
                         duplicates: Sequence[Tuple[str, int, str]],
                         unparsed: Sequence[str],
                         total_lines: int) -> str:
    """One consolidated reply for a multi-line save.

    ``saved`` and ``duplicates`` hold (name, day, month) triples; ``unparsed``
    holds the raw lines that yielded no birthday.
    """
    parts = []
    if saved:
        block = "I've saved:\n" + "\n".join(f"• {name} – {month} {day}" for name, day, month in saved)
        if len(saved) == total_lines:
            block += "\n🎂"
        parts.append(block)

    skipped = [f"• {name} – already saved on {month} {day}" for name, day, month in duplicates]
    skipped.extend(f"• {line}" for line in unparsed)
    if skipped:
        parts.append("I couldn't understand:\n" + "\n".join(skipped))

    return "\n\n".join(parts)
