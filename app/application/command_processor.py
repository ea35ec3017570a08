"""Application layer: birthday message processor (intent resolution engine)."""
import logging
from datetime import datetime
from typing import Callable, Optional, Tuple

from sqlalchemy.orm import Session

from app.application import replies
from app.application.handlers import ActionDispatcher
from app.application.resolvers import (
    DEFAULT_FUZZY_MAX_QUERY_LENGTH,
    PRE_CLASSIFIER_RESOLVERS,
    action_from_intent,
    build_fallback_resolvers,
    run_resolvers,
)
from app.domain.commands import ActionKind, HandlerResult, ResolvedAction
from app.domain.events import BirthdaySaved, DomainEvent, EventDispatcher
from app.domain.fuzzy_match import DEFAULT_MIN_SCORE
from app.domain.intent_classifier import IntentClassifier, NullIntentClassifier, ParsedIntent
from app.infrastructure.repositories import (
    BirthdayRepository,
    SqlAlchemyBirthdayRepository,
    SqlAlchemyUserRepository,
    UserRepository,
)
from app.infrastructure.tone_rewriter import PassthroughRewriter, ToneRewriter
from utils.time import DEFAULT_TIMEZONE, local_today, utc_now

logger = logging.getLogger(__name__)

RepositoryFactory = Callable[[Session], Tuple[BirthdayRepository, UserRepository]]


def sqlalchemy_repositories(default_timezone: str = DEFAULT_TIMEZONE) -> RepositoryFactory:
    def factory(db: Session) -> Tuple[BirthdayRepository, UserRepository]:
        return SqlAlchemyBirthdayRepository(db), SqlAlchemyUserRepository(db, default_timezone)
    return factory


class WelcomeSeenHandler:
    """Marks the welcome as seen once the owner has saved something."""

    def __init__(self, users: UserRepository):
        self.users = users

    async def handle(self, event: DomainEvent) -> None:
        self.users.mark_welcome_seen(event.owner_id)


class EventLogHandler:
    async def handle(self, event: DomainEvent) -> None:
        logger.info(f"📣 [EVENT] {type(event).__name__} {event}")


class BirthdayMessageProcessor:
    """Resolves one inbound message to exactly one reply.

    Order per message: onboarding, deterministic resolvers, classifier,
    regex fallbacks, terminal fallback. Collaborators are injected so tests
    can swap in fakes; ``services.py`` wires the production ones.
    """

    def __init__(self, classifier: Optional[IntentClassifier] = None,
                 rewriter: Optional[ToneRewriter] = None,
                 repository_factory: Optional[RepositoryFactory] = None,
                 clock: Callable[[], datetime] = utc_now,
                 fuzzy_min_score: float = DEFAULT_MIN_SCORE,
                 fuzzy_max_query_length: int = DEFAULT_FUZZY_MAX_QUERY_LENGTH,
                 default_timezone: str = DEFAULT_TIMEZONE):
        self.classifier = classifier or NullIntentClassifier()
        self.rewriter = rewriter or PassthroughRewriter()
        self.repository_factory = repository_factory or sqlalchemy_repositories(default_timezone)
        self.clock = clock
        self.fuzzy_min_score = fuzzy_min_score
        self.pre_classifier_resolvers = PRE_CLASSIFIER_RESOLVERS
        self.fallback_resolvers = build_fallback_resolvers(fuzzy_max_query_length)

    async def process_message(self, owner_id: str, message_text: str, db: Session) -> str:
        """Handle one message and return the reply to send.

        Storage errors propagate; everything else resolves to a reply.
        """
        birthdays, users = self.repository_factory(db)
        text = (message_text or "").strip()

        if not users.exists(owner_id):
            users.onboard(owner_id)
            users.touch_last_interaction(owner_id)
            logger.info(f"👋 [ONBOARD] New owner {owner_id}, sending welcome")
            return replies.WELCOME_MESSAGE
        users.touch_last_interaction(owner_id)

        action = await self.resolve(text)
        logger.info(f"[RESOLVE] owner={owner_id} kind={action.kind.value} source={action.source}")

        today = local_today(users.get_timezone(owner_id), self.clock())
        dispatcher = ActionDispatcher(birthdays, today, self.fuzzy_min_score)
        result = await dispatcher.dispatch(action, owner_id)
        if not result.handled:
            logger.info(f"[RESOLVE] {action.kind.value} left the turn unhandled, using terminal fallback")
            result = await dispatcher.dispatch(self._terminal_fallback(), owner_id)

        await self._apply_effects(result, users)
        return await self._finish(result)

    async def resolve(self, text: str) -> ResolvedAction:
        """Pick the action for a message without touching storage."""
        action = run_resolvers(self.pre_classifier_resolvers, text)
        if action is not None:
            return action

        parsed = await self._classify(text)
        action = action_from_intent(parsed, text)
        if action is not None:
            return action.with_source("classifier")

        action = run_resolvers(self.fallback_resolvers, text)
        if action is not None:
            return action
        return self._terminal_fallback()

    async def _classify(self, text: str) -> ParsedIntent:
        try:
            return await self.classifier.classify(text)
        except Exception as e:
            logger.error(f"[CLASSIFIER] Classifier raised, treating as unknown: {e}", exc_info=True)
            return ParsedIntent.unknown()

    @staticmethod
    def _terminal_fallback() -> ResolvedAction:
        return ResolvedAction(kind=ActionKind.FALLBACK, source="terminal_fallback")

    async def _apply_effects(self, result: HandlerResult, users: UserRepository) -> None:
        if not result.events:
            return
        events = EventDispatcher()
        events.register_handler(BirthdaySaved, WelcomeSeenHandler(users))
        events.register_handler(DomainEvent, EventLogHandler())
        for event in result.events:
            await events.dispatch(event)

    async def _finish(self, result: HandlerResult) -> str:
        reply = result.reply
        if reply is None or not reply.text:
            return replies.FALLBACK_MESSAGE
        if not reply.rewrite:
            return reply.text
        try:
            rewritten = await self.rewriter.rewrite(reply.text)
        except Exception as e:
            logger.error(f"[REWRITE] Rewriter raised, sending original text: {e}")
            return reply.text
        return rewritten or reply.text
