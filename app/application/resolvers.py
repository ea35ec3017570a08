"""Application layer: ordered resolver strategies.

Each resolver is a pure function ``text -> Optional[ResolvedAction]``. The
processor tries ``PRE_CLASSIFIER_RESOLVERS`` before asking the classifier and
``FALLBACK_RESOLVERS`` after it; the first resolver that returns an action
wins. Nothing in here touches storage.
"""
import re
from typing import Callable, Optional, Tuple

from app.application import replies
from app.domain.commands import ActionKind, ResolvedAction
from app.domain.date_parser import (
    clean_name,
    extract_date,
    extract_names_from_delete_input,
    looks_like_date,
    parse_birthday,
)
from app.domain.intent_classifier import Intent, ParsedIntent
from app.domain.months import MONTH_WORD_PATTERN, MONTH_WORD_RE, extract_month_from_text, normalize_month
from app.domain.upcoming import MONTH_HORIZON_DAYS, WEEK_HORIZON_DAYS

Resolver = Callable[[str], Optional[ResolvedAction]]

DEFAULT_FUZZY_MAX_QUERY_LENGTH = 50

_FLAGS = re.IGNORECASE

COMMAND_VERB_RE = re.compile(
    r"\b(?:delete|remove|forget|erase|update|change|move|edit|correct|fix|rename|search|find|"
    r"look\s*up|check|show|list|when|who|whose|what|which|upcoming|help)\b",
    _FLAGS,
)
_LEADING_SAVE_VERB_RE = re.compile(r"^\s*(?:please\s+)?(?:save|add|remember|store|note)\b[\s:,-]*", _FLAGS)

_LIST_ALL_RE = re.compile(
    r"\b(?:all|complete|full|whole|entire|every)\s+(?:my\s+|the\s+)?(?:birthdays?|bdays?|list)\b"
    r"|\blist\s+(?:all|everything|my\s+birthdays|birthdays)\b"
    r"|^\s*(?:show\s+(?:me\s+)?)?(?:my\s+)?(?:birthdays|list)\s*[?.!]*\s*$"
    r"|^\s*show\s+(?:me\s+)?(?:all|everything)\s*[?.!]*\s*$",
    _FLAGS,
)
_THIS_MONTH_RE = re.compile(r"\bthis\s+month\b", _FLAGS)
_NEXT_MONTH_RE = re.compile(r"\bnext\s+month\b", _FLAGS)
_MONTH_PHRASE_RE = re.compile(
    rf"\b(?:birthdays?|bdays?)\s+(?:in|for|during|of)\s+({MONTH_WORD_PATTERN})\b"
    rf"|\b({MONTH_WORD_PATTERN})\s+(?:birthdays|bdays)\b",
    _FLAGS,
)
_DATE_QUESTION_RE = re.compile(
    r"^\s*(?:who|whose)\b.*\b(?:birthdays?|bdays?)\b"
    r"|^\s*(?:any\s+)?(?:birthdays?|bdays?)\s+(?:on|for)\b"
    r"|^\s*(?:is\s+there\s+)?(?:any|anyone|anybody)\b.*\b(?:birthdays?|bdays?)\b"
    r"|^\s*(?:do|does|did|is|are|was|were|has|have|any|anyone|anybody|someone|somebody)\b"
    r"|\?\s*$",
    _FLAGS,
)
# Words that never belong in a person's name on a save
_QUESTION_NAME_RE = re.compile(
    r"\b(?:do|does|did|is|are|any|anyone|anybody|someone|somebody|who|whose|what|when|which|how|"
    r"birthdays?|bdays?|born)\b|\?",
    _FLAGS,
)

_RENAME_RES = (
    re.compile(r"^\s*rename\s+(?P<old>.+?)\s+(?:to|as)\s+(?P<new>.+?)\s*[.!?]*\s*$", _FLAGS),
    re.compile(r"^\s*change\s+(?:the\s+)?name\s+(?:of\s+)?(?P<old>.+?)\s+to\s+(?P<new>.+?)\s*[.!?]*\s*$", _FLAGS),
    re.compile(r"^\s*change\s+(?P<old>.+?)(?:'s|’s)\s+name\s+to\s+(?P<new>.+?)\s*[.!?]*\s*$", _FLAGS),
)
_RENAME_VERB_RE = re.compile(r"^\s*(?:rename\b|change\s+(?:the\s+)?name\b)", _FLAGS)
_UPDATE_VERB_RE = re.compile(r"^\s*(?:please\s+)?(?:update|change|move|edit|correct|fix)\b\s*(?P<rest>.*)$", _FLAGS | re.DOTALL)
_DELETE_VERB_RE = re.compile(r"^\s*(?:please\s+)?(?:delete|remove|forget|erase)\b\s*(?P<rest>.*)$", _FLAGS | re.DOTALL)
_SAVE_VERB_RE = re.compile(r"^\s*(?:please\s+)?(?:save|add|remember|store|note)\b\s*(?P<rest>.*)$", _FLAGS | re.DOTALL)
_SEARCH_NAME_RES = (
    re.compile(r"^\s*(?:when\s+is|when's|when\s+was)\s+(?P<query>.+)$", _FLAGS),
    re.compile(r"^\s*(?:search(?:\s+for)?|find|look\s*up|check|show(?:\s+me)?)\s+(?P<query>.+)$", _FLAGS),
    re.compile(r"^\s*(?:what\s+is|what's|which\s+day\s+is|whose)\s+(?P<query>.*\b(?:birthday|bday)\b.*)$", _FLAGS),
)
_SEARCH_HINT_RE = re.compile(r"\b(?:who|whose|search|find|look\s*up|check|show|any|which)\b", _FLAGS)
_UPCOMING_RE = re.compile(
    r"\b(?:upcoming|coming\s+up|soon|this\s+week|next\s+week|next\s+(?P<days>\d{1,3})\s+days?)\b",
    _FLAGS,
)
_WEEK_RE = re.compile(r"\b(?:this\s+week|next\s+week)\b", _FLAGS)

_FILLER_RE = re.compile(
    r"\b(?:birthdays?|bdays?|the|date|of|on|in|for|during|to|is|are|was|any|anyone|anybody|there|me|my|"
    r"show|list|who|whose|which|what|when|search|find|look\s*up|check|has|have|a|please)\b|[?.!,:;]",
    _FLAGS,
)
_POSSESSIVE_RE = re.compile(r"(?:'s|’s)\b", _FLAGS)


def _strip_filler(text: str) -> str:
    return re.sub(r"\s+", " ", _FILLER_RE.sub(" ", _POSSESSIVE_RE.sub("", text))).strip()


def _query_from(text: str) -> str:
    query = _POSSESSIVE_RE.sub("", text)
    query = re.sub(r"\b(?:the\s+)?(?:birthday|bday|date\s+of\s+birth)\b(?:\s+of)?", " ", query, flags=_FLAGS)
    query = re.sub(r"\b(?:is|on)\b\s*$", " ", query.strip(" ?.!"), flags=_FLAGS)
    return re.sub(r"\s+", " ", query).strip(" ?.!,:;")


def _clarify(question: str) -> ResolvedAction:
    return ResolvedAction(kind=ActionKind.CLARIFY, question=question)


# --- Pre-classifier resolvers ---

def resolve_batch_save(text: str) -> Optional[ResolvedAction]:
    lines = tuple(line.strip() for line in (text or "").splitlines() if line.strip())
    if len(lines) <= 1:
        return None
    return ResolvedAction(kind=ActionKind.BATCH_SAVE, lines=lines)


def resolve_help_keyword(text: str) -> Optional[ResolvedAction]:
    if "help" in (text or "").lower():
        return ResolvedAction(kind=ActionKind.HELP)
    return None


def resolve_list_keywords(text: str) -> Optional[ResolvedAction]:
    if not text:
        return None
    if _LIST_ALL_RE.search(text):
        return ResolvedAction(kind=ActionKind.LIST_ALL)
    if _UPCOMING_RE.search(text):
        return None
    if _THIS_MONTH_RE.search(text):
        return ResolvedAction(kind=ActionKind.LIST_MONTH)
    if _NEXT_MONTH_RE.search(text):
        return ResolvedAction(kind=ActionKind.LIST_MONTH, month_offset=1)
    # A day number means a date, not a whole month
    if re.search(r"\d", text):
        return None
    phrase = _MONTH_PHRASE_RE.search(text)
    if phrase:
        return ResolvedAction(kind=ActionKind.LIST_MONTH, month=normalize_month(phrase.group(1) or phrase.group(2)))
    return None


def resolve_date_keywords(text: str) -> Optional[ResolvedAction]:
    if not text or not _DATE_QUESTION_RE.search(text):
        return None
    extracted = extract_date(text)
    if extracted is None:
        return None
    day, month, _ = extracted
    return ResolvedAction(kind=ActionKind.SEARCH_DATE, day=day, month=month)


def resolve_deterministic_save(text: str) -> Optional[ResolvedAction]:
    if not text or COMMAND_VERB_RE.search(text):
        return None
    candidate = _LEADING_SAVE_VERB_RE.sub("", text)
    parsed = parse_birthday(candidate)
    if parsed is None or _QUESTION_NAME_RE.search(parsed.name):
        return None
    return ResolvedAction(kind=ActionKind.SAVE, name=parsed.name, day=parsed.day, month=parsed.month)


# --- Classifier output ---

def action_from_intent(parsed: ParsedIntent, text: str) -> Optional[ResolvedAction]:
    """Turn validated classifier output into an action, or None to keep going."""
    if parsed.wants_clarification:
        return _clarify(parsed.clarification_question)

    if parsed.intent is Intent.UNKNOWN:
        question = replies.CLARIFICATION_BY_INTENT.get(parsed.rejected_intent)
        return _clarify(question) if question else None

    if parsed.intent is Intent.SAVE:
        name = clean_name(parsed.name)
        if not name:
            return _clarify(replies.CLARIFY_SAVE)
        return ResolvedAction(kind=ActionKind.SAVE, name=name, day=parsed.day, month=parsed.month)

    if parsed.intent is Intent.UPDATE:
        name = clean_name(parsed.name)
        if not name:
            return _clarify(replies.CLARIFY_UPDATE)
        return ResolvedAction(kind=ActionKind.UPDATE, name=name, day=parsed.day, month=parsed.month)

    if parsed.intent is Intent.DELETE:
        names = tuple(clean_name(n) for n in extract_names_from_delete_input(parsed.name))
        names = tuple(n for n in names if n)
        if not names:
            return _clarify(replies.CLARIFY_DELETE)
        return ResolvedAction(kind=ActionKind.DELETE, names=names)

    if parsed.intent is Intent.LIST_ALL:
        return ResolvedAction(kind=ActionKind.LIST_ALL)

    if parsed.intent is Intent.LIST_MONTH:
        month = normalize_month(parsed.month) or extract_month_from_text(text)
        return ResolvedAction(kind=ActionKind.LIST_MONTH, month=month)

    if parsed.intent is Intent.SEARCH:
        query = parsed.query.strip()
        if looks_like_date(query):
            return None
        return ResolvedAction(kind=ActionKind.SEARCH_NAME, query=query)

    if parsed.intent is Intent.HELP:
        return ResolvedAction(kind=ActionKind.HELP)
    return None


# --- Fallback resolvers ---

def resolve_regex_rename(text: str) -> Optional[ResolvedAction]:
    if not text or not _RENAME_VERB_RE.search(text) and not re.search(r"\bname\s+to\b", text, _FLAGS):
        return None
    for pattern in _RENAME_RES:
        match = pattern.match(text)
        if not match:
            continue
        old_name, new_name = clean_name(match.group("old")), clean_name(match.group("new"))
        if old_name and new_name and not extract_date(new_name):
            return ResolvedAction(kind=ActionKind.RENAME, name=old_name, new_name=new_name)
    if _RENAME_VERB_RE.search(text):
        return _clarify(replies.CLARIFY_RENAME)
    return None


def resolve_regex_update(text: str) -> Optional[ResolvedAction]:
    match = _UPDATE_VERB_RE.match(text or "")
    if not match:
        return None
    extracted = extract_date(match.group("rest"))
    if extracted is None:
        return _clarify(replies.CLARIFY_UPDATE)
    day, month, residual = extracted
    residual = re.sub(r"\b(?:to|the|date|of|birthday|bday|from)\b", " ", residual, flags=_FLAGS)
    name = clean_name(_POSSESSIVE_RE.sub("", residual))
    if not name:
        return _clarify(replies.CLARIFY_UPDATE)
    return ResolvedAction(kind=ActionKind.UPDATE, name=name, day=day, month=month)


def resolve_regex_delete(text: str) -> Optional[ResolvedAction]:
    match = _DELETE_VERB_RE.match(text or "")
    if not match:
        return None
    rest = re.sub(r"\b(?:the\s+)?(?:birthdays?|bdays?)\s+(?:of|for)\b", " ", match.group("rest"), flags=_FLAGS)
    rest = re.sub(r"\s+(?:and|&)\s+", ", ", rest, flags=_FLAGS)
    names = tuple(n for n in (clean_name(_POSSESSIVE_RE.sub("", part)) for part in extract_names_from_delete_input(rest)) if n)
    if not names:
        return _clarify(replies.CLARIFY_DELETE)
    return ResolvedAction(kind=ActionKind.DELETE, names=names)


def resolve_regex_save(text: str) -> Optional[ResolvedAction]:
    match = _SAVE_VERB_RE.match(text or "")
    if not match:
        return None
    parsed = parse_birthday(match.group("rest"))
    if parsed is None:
        return _clarify(replies.CLARIFY_SAVE)
    return ResolvedAction(kind=ActionKind.SAVE, name=parsed.name, day=parsed.day, month=parsed.month)


def resolve_regex_search_date(text: str) -> Optional[ResolvedAction]:
    extracted = extract_date(text or "")
    if extracted is None:
        return None
    day, month, residual = extracted
    if _SEARCH_HINT_RE.search(text) or not _strip_filler(residual):
        return ResolvedAction(kind=ActionKind.SEARCH_DATE, day=day, month=month)
    return None


def resolve_regex_search_name(text: str) -> Optional[ResolvedAction]:
    if not text or _UPCOMING_RE.search(text):
        return None
    for pattern in _SEARCH_NAME_RES:
        match = pattern.match(text.strip())
        if not match:
            continue
        query = _query_from(match.group("query"))
        if not query:
            return _clarify(replies.CLARIFY_SEARCH)
        if normalize_month(query) or looks_like_date(query):
            return None
        return ResolvedAction(kind=ActionKind.SEARCH_NAME, query=query)
    return None


def resolve_regex_month(text: str) -> Optional[ResolvedAction]:
    if not text or re.search(r"\d", text):
        return None
    word = MONTH_WORD_RE.search(text)
    if not word:
        return None
    residual = text[:word.start()] + " " + text[word.end():]
    if _strip_filler(residual):
        return None
    return ResolvedAction(kind=ActionKind.LIST_MONTH, month=normalize_month(word.group(1)))


def resolve_regex_upcoming(text: str) -> Optional[ResolvedAction]:
    match = _UPCOMING_RE.search(text or "")
    if not match:
        return None
    if match.group("days"):
        horizon = max(1, min(int(match.group("days")), 365))
    elif _WEEK_RE.search(text):
        horizon = WEEK_HORIZON_DAYS
    else:
        horizon = MONTH_HORIZON_DAYS
    return ResolvedAction(kind=ActionKind.UPCOMING, horizon_days=horizon)


def fuzzy_lookup_resolver(max_query_length: int = DEFAULT_FUZZY_MAX_QUERY_LENGTH) -> Resolver:
    """Build the last-chance name lookup for short, command-free text."""

    def resolve_fuzzy_lookup(text: str) -> Optional[ResolvedAction]:
        if not text or len(text.strip()) > max_query_length:
            return None
        if looks_like_date(text) or COMMAND_VERB_RE.search(text):
            return None
        query = _query_from(text)
        if not query:
            return None
        return ResolvedAction(kind=ActionKind.FUZZY_LOOKUP, query=query)

    return resolve_fuzzy_lookup


PRE_CLASSIFIER_RESOLVERS: Tuple[Tuple[str, Resolver], ...] = (
    ("batch_save", resolve_batch_save),
    ("help_keyword", resolve_help_keyword),
    ("list_keywords", resolve_list_keywords),
    ("date_keywords", resolve_date_keywords),
    ("deterministic_save", resolve_deterministic_save),
)


def build_fallback_resolvers(max_query_length: int = DEFAULT_FUZZY_MAX_QUERY_LENGTH) -> Tuple[Tuple[str, Resolver], ...]:
    return (
        ("regex_rename", resolve_regex_rename),
        ("regex_update", resolve_regex_update),
        ("regex_delete", resolve_regex_delete),
        ("regex_save", resolve_regex_save),
        ("regex_search_date", resolve_regex_search_date),
        ("regex_search_name", resolve_regex_search_name),
        ("regex_month", resolve_regex_month),
        ("regex_upcoming", resolve_regex_upcoming),
        ("fuzzy_lookup", fuzzy_lookup_resolver(max_query_length)),
    )


FALLBACK_RESOLVERS = build_fallback_resolvers()


def run_resolvers(resolvers, text: str) -> Optional[ResolvedAction]:
    """First action produced by an ordered resolver list, tagged with its source."""
    for name, resolver in resolvers:
        action = resolver(text)
        if action is not None:
            return action.with_source(name)
    return None
