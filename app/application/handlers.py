"""Application layer: Command handlers implementing business logic.

One handler per action kind. Each does a single storage operation and
composes a single reply; side effects beyond the write itself are returned
as domain events for the processor to apply afterwards.
"""
import logging
from datetime import date
from typing import Dict, List, Optional

from app.application import replies
from app.application.formatters import (
    format_batch_summary,
    format_birthdays_chronologically,
    format_matches,
    format_month_listing,
    format_upcoming,
)
from app.domain.commands import ActionKind, CommandHandler, HandlerResult, Outcome, Reply, ResolvedAction
from app.domain.date_parser import parse_birthday
from app.domain.events import BirthdayDeleted, BirthdayRenamed, BirthdaySaved, BirthdayUpdated
from app.domain.fuzzy_match import DEFAULT_MIN_SCORE, find_fuzzy_matches
from app.domain.months import MONTHS, full_month_name, normalize_month
from app.domain.upcoming import MONTH_HORIZON_DAYS, upcoming_birthdays
from app.infrastructure.repositories import AmbiguousNameError, BirthdayRepository, DuplicateBirthdayError

logger = logging.getLogger(__name__)


def _valid_date(day: Optional[int], month: Optional[str]) -> bool:
    return day is not None and 1 <= day <= 31 and normalize_month(month) is not None


class SaveBirthdayHandler(CommandHandler):
    """Handler for saving a single birthday."""

    def __init__(self, birthdays: BirthdayRepository):
        self.birthdays = birthdays

    async def handle(self, action: ResolvedAction, owner_id: str) -> HandlerResult:
        if not action.name or not _valid_date(action.day, action.month):
            return HandlerResult(Outcome.CLARIFY, Reply(replies.CLARIFY_SAVE))
        month = normalize_month(action.month)

        if self.birthdays.exists(owner_id, action.name, action.day, month):
            logger.info(f"[SAVE] Duplicate for owner={owner_id}: {action.name} {month} {action.day}")
            return HandlerResult(Outcome.DUPLICATE, Reply(replies.duplicate(action.name, action.day, month)))

        try:
            self.birthdays.save(owner_id, action.name, action.day, month)
        except DuplicateBirthdayError:
            logger.info(f"[SAVE] Constraint reported duplicate for owner={owner_id}: {action.name}")
            return HandlerResult(Outcome.DUPLICATE, Reply(replies.duplicate(action.name, action.day, month)))

        logger.info(f"[SAVE] ✅ Saved {action.name} {month} {action.day} for owner={owner_id}")
        return HandlerResult(
            Outcome.SAVED,
            Reply(replies.saved(action.name, action.day, month)),
            events=[BirthdaySaved(owner_id, action.name, action.day, month)],
        )


class BatchSaveHandler(CommandHandler):
    """Handler for multi-line messages, one birthday per line."""

    def __init__(self, birthdays: BirthdayRepository):
        self.birthdays = birthdays

    async def handle(self, action: ResolvedAction, owner_id: str) -> HandlerResult:
        saved, duplicates, unparsed, events = [], [], [], []

        for line in action.lines:
            parsed = parse_birthday(line)
            if parsed is None:
                unparsed.append(line)
                continue
            triple = (parsed.name, parsed.day, parsed.month)
            if self.birthdays.exists(owner_id, *triple):
                duplicates.append(triple)
                continue
            try:
                self.birthdays.save(owner_id, *triple)
            except DuplicateBirthdayError:
                duplicates.append(triple)
                continue
            saved.append(triple)
            events.append(BirthdaySaved(owner_id, *triple))

        logger.info(
            f"[BATCH] owner={owner_id} lines={len(action.lines)} saved={len(saved)} "
            f"duplicates={len(duplicates)} unparsed={len(unparsed)}"
        )
        summary = format_batch_summary(saved, duplicates, unparsed, total_lines=len(action.lines))

        if saved and not (duplicates or unparsed):
            outcome = Outcome.SAVED
        elif saved:
            outcome = Outcome.PARTIAL
        elif duplicates and not unparsed:
            outcome = Outcome.DUPLICATE
        else:
            outcome = Outcome.NO_MATCH
        return HandlerResult(outcome, Reply(summary, rewrite=False), events=events)


class UpdateBirthdayHandler(CommandHandler):
    def __init__(self, birthdays: BirthdayRepository):
        self.birthdays = birthdays

    async def handle(self, action: ResolvedAction, owner_id: str) -> HandlerResult:
        if not action.name or not _valid_date(action.day, action.month):
            return HandlerResult(Outcome.CLARIFY, Reply(replies.CLARIFY_UPDATE))
        month = normalize_month(action.month)

        if self.birthdays.exists(owner_id, action.name, action.day, month):
            return HandlerResult(Outcome.DUPLICATE, Reply(replies.duplicate(action.name, action.day, month)))

        try:
            changed = self.birthdays.update_date(owner_id, action.name, action.day, month)
        except DuplicateBirthdayError:
            return HandlerResult(Outcome.DUPLICATE, Reply(replies.duplicate(action.name, action.day, month)))
        if not changed:
            logger.info(f"[UPDATE] No record named '{action.name}' for owner={owner_id}")
            return HandlerResult(Outcome.NOT_FOUND, Reply(replies.update_not_found(action.name)))

        return HandlerResult(
            Outcome.UPDATED,
            Reply(replies.updated(action.name, action.day, month)),
            events=[BirthdayUpdated(owner_id, action.name, action.day, month)],
        )


class RenameBirthdayHandler(CommandHandler):
    def __init__(self, birthdays: BirthdayRepository):
        self.birthdays = birthdays

    async def handle(self, action: ResolvedAction, owner_id: str) -> HandlerResult:
        if not action.name or not action.new_name:
            return HandlerResult(Outcome.CLARIFY, Reply(replies.CLARIFY_RENAME))
        try:
            changed = self.birthdays.update_name(owner_id, action.name, action.new_name)
        except DuplicateBirthdayError:
            record = self.birthdays.find_by_name(owner_id, action.new_name)
            first = record[0] if record else None
            text = replies.duplicate(action.new_name, first.day, first.month) if first else replies.rename_not_found(action.name)
            return HandlerResult(Outcome.DUPLICATE, Reply(text))
        if not changed:
            return HandlerResult(Outcome.NOT_FOUND, Reply(replies.rename_not_found(action.name)))
        return HandlerResult(
            Outcome.RENAMED,
            Reply(replies.renamed(action.name, action.new_name)),
            events=[BirthdayRenamed(owner_id, action.name, action.new_name)],
        )


class DeleteBirthdayHandler(CommandHandler):
    """Handler for deleting one or more birthdays by name."""

    def __init__(self, birthdays: BirthdayRepository):
        self.birthdays = birthdays

    async def handle(self, action: ResolvedAction, owner_id: str) -> HandlerResult:
        names = list(action.names) or ([action.name] if action.name else [])
        if not names:
            return HandlerResult(Outcome.CLARIFY, Reply(replies.CLARIFY_DELETE))

        removed: List[str] = []
        missing: List[str] = []
        ambiguous: List[str] = []
        for name in names:
            try:
                deleted = self.birthdays.delete_by_name(owner_id, name)
            except AmbiguousNameError as e:
                ambiguous.append(replies.delete_ambiguous(name, e.candidates))
                continue
            if deleted:
                removed.extend(deleted)
            else:
                missing.append(name)

        events = [BirthdayDeleted(owner_id, name) for name in removed]
        if ambiguous:
            parts = []
            if removed:
                parts.append(replies.deleted(removed))
            if missing:
                parts.append(f"I could not find: {', '.join(missing)}.")
            parts.extend(ambiguous)
            outcome = Outcome.PARTIAL if removed else Outcome.CLARIFY
            return HandlerResult(outcome, Reply("\n\n".join(parts), rewrite=False), events=events)
        if not removed:
            return HandlerResult(Outcome.NOT_FOUND, Reply(replies.DELETE_NOT_FOUND))
        if missing:
            return HandlerResult(Outcome.PARTIAL, Reply(replies.delete_partial(removed, missing)), events=events)
        return HandlerResult(Outcome.DELETED, Reply(replies.deleted(removed)), events=events)


class ListAllHandler(CommandHandler):
    def __init__(self, birthdays: BirthdayRepository):
        self.birthdays = birthdays

    async def handle(self, action: ResolvedAction, owner_id: str) -> HandlerResult:
        records = self.birthdays.list_all(owner_id)
        if not records:
            return HandlerResult(Outcome.EMPTY, Reply(replies.NO_BIRTHDAYS))
        return HandlerResult(Outcome.LISTED, Reply(format_birthdays_chronologically(records), rewrite=False))


class ListMonthHandler(CommandHandler):
    """Birthdays of one month; no month means the current one in the owner's timezone."""

    def __init__(self, birthdays: BirthdayRepository, today: date):
        self.birthdays = birthdays
        self.today = today

    def _target_month(self, action: ResolvedAction) -> str:
        month = normalize_month(action.month)
        if month:
            return month
        index = (self.today.month - 1 + action.month_offset) % 12
        return MONTHS[index]

    async def handle(self, action: ResolvedAction, owner_id: str) -> HandlerResult:
        month = self._target_month(action)
        month_name = full_month_name(month)
        records = self.birthdays.find_by_month(owner_id, month)
        if not records:
            return HandlerResult(Outcome.EMPTY, Reply(replies.month_empty(month_name)))
        return HandlerResult(Outcome.LISTED, Reply(format_month_listing(month_name, records), rewrite=False))


class SearchByDateHandler(CommandHandler):
    def __init__(self, birthdays: BirthdayRepository):
        self.birthdays = birthdays

    async def handle(self, action: ResolvedAction, owner_id: str) -> HandlerResult:
        month = normalize_month(action.month)
        if not _valid_date(action.day, month):
            return HandlerResult(Outcome.CLARIFY, Reply(replies.CLARIFY_SEARCH))
        records = self.birthdays.find_by_date(owner_id, action.day, month)
        if not records:
            return HandlerResult(Outcome.EMPTY, Reply(replies.date_empty(action.day, month)))
        if len(records) == 1:
            return HandlerResult(Outcome.LISTED, Reply(replies.date_single(records[0].name, action.day, month)))
        return HandlerResult(Outcome.LISTED, Reply(replies.date_many([r.name for r in records], action.day, month)))


def _matches_reply(records) -> Reply:
    if len(records) == 1:
        record = records[0]
        return Reply(replies.lookup_single(record.name, record.day, record.month))
    return Reply(format_matches(records), rewrite=False)


class SearchByNameHandler(CommandHandler):
    """Substring search first, fuzzy ranking second."""

    def __init__(self, birthdays: BirthdayRepository, min_score: float = DEFAULT_MIN_SCORE):
        self.birthdays = birthdays
        self.min_score = min_score

    async def handle(self, action: ResolvedAction, owner_id: str) -> HandlerResult:
        query = (action.query or "").strip()
        if not query:
            return HandlerResult(Outcome.CLARIFY, Reply(replies.CLARIFY_SEARCH))

        records = self.birthdays.find_by_name(owner_id, query)
        if not records:
            candidates = find_fuzzy_matches(query, self.birthdays.list_all(owner_id), self.min_score)
            records = [c.record for c in candidates]
        if not records:
            return HandlerResult(Outcome.NOT_FOUND, Reply(replies.name_not_found(query)))
        return HandlerResult(Outcome.LISTED, _matches_reply(records))


class FuzzyLookupHandler(CommandHandler):
    """Last-chance lookup; zero matches leaves the turn unhandled."""

    def __init__(self, birthdays: BirthdayRepository, min_score: float = DEFAULT_MIN_SCORE):
        self.birthdays = birthdays
        self.min_score = min_score

    async def handle(self, action: ResolvedAction, owner_id: str) -> HandlerResult:
        candidates = find_fuzzy_matches(action.query or "", self.birthdays.list_all(owner_id), self.min_score)
        if not candidates:
            logger.info(f"[FUZZY] No match for '{action.query}' (owner={owner_id})")
            return HandlerResult(Outcome.NO_MATCH, handled=False)
        logger.info(
            f"[FUZZY] '{action.query}' -> "
            + ", ".join(f"{c.record.name}({c.match_type} {c.score:.2f})" for c in candidates)
        )
        return HandlerResult(Outcome.LISTED, _matches_reply([c.record for c in candidates]))


class UpcomingHandler(CommandHandler):
    def __init__(self, birthdays: BirthdayRepository, today: date):
        self.birthdays = birthdays
        self.today = today

    async def handle(self, action: ResolvedAction, owner_id: str) -> HandlerResult:
        horizon = action.horizon_days or MONTH_HORIZON_DAYS
        records = upcoming_birthdays(self.birthdays.list_all(owner_id), self.today, horizon)
        if not records:
            return HandlerResult(Outcome.EMPTY, Reply(replies.upcoming_empty(horizon)))
        return HandlerResult(Outcome.LISTED, Reply(format_upcoming(records), rewrite=False))


class HelpHandler(CommandHandler):
    async def handle(self, action: ResolvedAction, owner_id: str) -> HandlerResult:
        return HandlerResult(Outcome.HELP, Reply(replies.HELP_MESSAGE, rewrite=False))


class ClarifyHandler(CommandHandler):
    async def handle(self, action: ResolvedAction, owner_id: str) -> HandlerResult:
        return HandlerResult(Outcome.CLARIFY, Reply(action.question or replies.FALLBACK_MESSAGE))


class FallbackHandler(CommandHandler):
    async def handle(self, action: ResolvedAction, owner_id: str) -> HandlerResult:
        return HandlerResult(Outcome.FALLBACK, Reply(replies.FALLBACK_MESSAGE))


class ActionDispatcher:
    """Maps each action kind to its handler for one owner's turn."""

    def __init__(self, birthdays: BirthdayRepository, today: date, min_score: float = DEFAULT_MIN_SCORE):
        self._handlers: Dict[ActionKind, CommandHandler] = {
            ActionKind.BATCH_SAVE: BatchSaveHandler(birthdays),
            ActionKind.SAVE: SaveBirthdayHandler(birthdays),
            ActionKind.UPDATE: UpdateBirthdayHandler(birthdays),
            ActionKind.RENAME: RenameBirthdayHandler(birthdays),
            ActionKind.DELETE: DeleteBirthdayHandler(birthdays),
            ActionKind.LIST_ALL: ListAllHandler(birthdays),
            ActionKind.LIST_MONTH: ListMonthHandler(birthdays, today),
            ActionKind.SEARCH_NAME: SearchByNameHandler(birthdays, min_score),
            ActionKind.SEARCH_DATE: SearchByDateHandler(birthdays),
            ActionKind.UPCOMING: UpcomingHandler(birthdays, today),
            ActionKind.FUZZY_LOOKUP: FuzzyLookupHandler(birthdays, min_score),
            ActionKind.HELP: HelpHandler(),
            ActionKind.CLARIFY: ClarifyHandler(),
            ActionKind.FALLBACK: FallbackHandler(),
        }

    def handler_for(self, kind: ActionKind) -> CommandHandler:
        return self._handlers[kind]

    async def dispatch(self, action: ResolvedAction, owner_id: str) -> HandlerResult:
        return await self.handler_for(action.kind).handle(action, owner_id)
