"""Domain layer: deterministic extraction of (name, day, month) from free text.

Supported shapes include "Papa 29 Aug", "29/08 Papa", "Tanni, 9 Feb",
"Mom 14th December" and the legacy "Name Month Day" form.
"""
import re
from typing import List, NamedTuple, Optional, Tuple

from app.domain.months import MONTH_WORD_PATTERN, MONTH_WORD_RE, month_from_number, normalize_month


class ParsedBirthday(NamedTuple):
    name: str
    day: int
    month: str


_NUMERIC_DATE_RE = re.compile(r"\b(\d{1,2})[/-](\d{1,2})\b")
_DAY_RE = re.compile(r"\b(\d{1,2})(st|nd|rd|th)?\b", re.IGNORECASE)
_LEGACY_RE = re.compile(r"^(.+?)\s+([A-Za-z]+)\s+(\d+)$")
_DATE_LIKE_RE = re.compile(r"\d{1,2}[/-]\d{1,2}|\d{1,2}(?:st|nd|rd|th)\b", re.IGNORECASE)

_NAME_PREFIX_RE = re.compile(r"^(?:the\s+)?birthday\s+(?:of|for)\s+", re.IGNORECASE)
_NAME_SUFFIX_RE = re.compile(
    r"(?:'s|’s)?\s*\bbirthday\b(?:\s+(?:is|on|was|falls\s+on))?$|\s+(?:is|on)$",
    re.IGNORECASE,
)
_EDGE_PUNCTUATION = " ,:;.!?–—-"


def _cut(text: str, match: "re.Match") -> str:
    return text[:match.start()] + " " + text[match.end():]


def extract_date(text: str) -> Optional[Tuple[int, str, str]]:
    """Pull one day and one month out of text.

    Returns (day, month, residual_text) or None when either part is missing.
    Precedence: numeric D/M or D-M pair, then a month word, then a standalone
    day number with optional ordinal suffix. Only the first occurrence of
    each pattern class is consumed.
    """
    if not text or not text.strip():
        return None

    working = text
    day: Optional[int] = None
    month: Optional[str] = None

    numeric = _NUMERIC_DATE_RE.search(working)
    if numeric:
        d, m = int(numeric.group(1)), int(numeric.group(2))
        if 1 <= d <= 31 and 1 <= m <= 12:
            day, month = d, month_from_number(m)
            working = _cut(working, numeric)

    if month is None:
        word = MONTH_WORD_RE.search(working)
        if word:
            month = normalize_month(word.group(1))
            working = _cut(working, word)

    if day is None:
        day_match = _DAY_RE.search(working)
        if day_match and 1 <= int(day_match.group(1)) <= 31:
            day = int(day_match.group(1))
            working = _cut(working, day_match)

    if day is None or month is None:
        return None
    return day, month, working


def parse_name_and_date(text: str) -> Optional[ParsedBirthday]:
    """Flexible extractor: whatever is left after the date is the name."""
    extracted = extract_date(text)
    if extracted is None:
        return None
    day, month, residual = extracted
    name = re.sub(r"\s+", " ", residual.replace(",", " ")).strip()
    if not name:
        return None
    return ParsedBirthday(name, day, month)


def parse_legacy_pattern(text: str) -> Optional[ParsedBirthday]:
    """Anchored "<name> <month-word> <day>" match over the whole string."""
    if not text:
        return None
    match = _LEGACY_RE.match(text.strip())
    if not match:
        return None
    name, month_token, day_token = match.groups()
    month = normalize_month(month_token)
    day = int(day_token)
    if month is None or not 1 <= day <= 31:
        return None
    return ParsedBirthday(name.strip(), day, month)


def clean_name(name: str) -> str:
    """Strip the birthday phrasing people wrap around a name."""
    cleaned = (name or "").strip(_EDGE_PUNCTUATION)
    previous = None
    while cleaned and cleaned != previous:
        previous = cleaned
        cleaned = _NAME_PREFIX_RE.sub("", cleaned)
        cleaned = _NAME_SUFFIX_RE.sub("", cleaned).strip(_EDGE_PUNCTUATION)
    return re.sub(r"\s+", " ", cleaned)


def parse_birthday(text: str) -> Optional[ParsedBirthday]:
    """Flexible extractor first, legacy pattern second, name cleaned."""
    parsed = parse_name_and_date(text) or parse_legacy_pattern(text)
    if parsed is None:
        return None
    name = clean_name(parsed.name)
    if not name:
        return None
    return ParsedBirthday(name, parsed.day, parsed.month)


def extract_names_from_delete_input(text: str) -> List[str]:
    """Names to delete, with any date fragments stripped.

    "21 – Abcd Bcda, Jun 2, Kpcd, Jan 3" -> ["Abcd Bcda", "Kpcd"]
    """
    if not text or not text.strip():
        return []

    cleaned = text.strip()
    cleaned = re.sub(r"\d{1,2}\s*[–-]\s*", "", cleaned)
    cleaned = re.sub(r"\b\d{1,2}\s*[/-]\s*\d{1,2}\b", "", cleaned)
    cleaned = re.sub(rf"\b(?:{MONTH_WORD_PATTERN})\s+\d{{1,2}}(?:st|nd|rd|th)?\b", "", cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(rf"\b\d{{1,2}}(?:st|nd|rd|th)?\s+(?:{MONTH_WORD_PATTERN})\b", "", cleaned, flags=re.IGNORECASE)

    names = []
    for part in cleaned.split(","):
        part = re.sub(r"\b\d{1,2}\b", "", part)
        part = re.sub(r"\s+", " ", part).strip()
        if part:
            names.append(part)
    return names


def looks_like_date(text: str) -> bool:
    return bool(text and _DATE_LIKE_RE.search(text))
