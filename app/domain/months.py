"""Domain layer: month normalization and ordering.

Every stored birthday uses one of the twelve canonical short forms below.
Normalization happens when a record is written, never when it is read.
"""
import re
from typing import Optional

MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
          "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

FULL_MONTH_NAMES = ("January", "February", "March", "April", "May", "June",
                    "July", "August", "September", "October", "November", "December")

# Shared by every parser that looks for a month word inside free text
MONTH_WORD_PATTERN = (
    r"jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|jun(?:e)?|jul(?:y)?"
    r"|aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?"
)
MONTH_WORD_RE = re.compile(rf"\b({MONTH_WORD_PATTERN})\b", re.IGNORECASE)

_ALIASES = {"sept": "Sep"}
for _short, _full in zip(MONTHS, FULL_MONTH_NAMES):
    _ALIASES[_short.lower()] = _short
    _ALIASES[_full.lower()] = _short


def normalize_month(token) -> Optional[str]:
    """Return the canonical short form for a month token, or None.

    Accepts numbers 1-12 (as int or string, leading zero allowed),
    abbreviations and full names in any case.
    """
    if token is None:
        return None
    raw = str(token).strip().lower()
    if not raw:
        return None
    if raw.isdigit():
        if len(raw) > 2:
            return None
        return month_from_number(int(raw))
    return _ALIASES.get(raw)


def month_from_number(number: int) -> Optional[str]:
    if 1 <= number <= 12:
        return MONTHS[number - 1]
    return None


def month_number(month: str) -> Optional[int]:
    canonical = normalize_month(month)
    if canonical is None:
        return None
    return MONTHS.index(canonical) + 1


def month_order(month: str) -> int:
    """Calendar position used for sorting; unknown values sort last."""
    return month_number(month) or 99


def full_month_name(month: str) -> str:
    number = month_number(month)
    if number is None:
        return month or ""
    return FULL_MONTH_NAMES[number - 1]


def extract_month_from_text(message: str) -> Optional[str]:
    """Find the first month mentioned in a message.

    Month words win over numbers; a standalone number only counts when it is
    a valid month (1-12).
    """
    if not message or not message.strip():
        return None
    word = MONTH_WORD_RE.search(message)
    if word:
        return normalize_month(word.group(1))
    numeric = re.search(r"\b(\d{1,2})\b", message)
    if numeric:
        return month_from_number(int(numeric.group(1)))
    return None
