"""
Integration tests for the birthday message processor against a real database.

Each test drives one or more turns through ``process_message`` and checks the
reply together with what ended up in storage.
"""
import pytest

from app.application import replies
from app.application.command_processor import BirthdayMessageProcessor
from app.domain.intent_classifier import Intent, ParsedIntent
from app.infrastructure.repositories import SqlAlchemyBirthdayRepository, SqlAlchemyUserRepository
from database.models import BirthdayRecord, UserProfile
from tests.conftest import FIXED_NOW, OWNER, FakeClassifier, RecordingRewriter


def _names(db):
    return sorted(r.name for r in db.query(BirthdayRecord).filter_by(owner_id=OWNER))


class TestOnboarding:

    @pytest.mark.asyncio
    async def test_first_message_gets_welcome_and_nothing_is_saved(self, processor, test_db_session, fake_classifier):
        reply = await processor.process_message(OWNER, "Tanni, 9 Feb", test_db_session)

        assert reply == replies.WELCOME_MESSAGE
        assert test_db_session.query(UserProfile).filter_by(owner_id=OWNER).count() == 1
        assert _names(test_db_session) == []
        assert fake_classifier.calls == []

    @pytest.mark.asyncio
    async def test_second_message_is_processed(self, processor, test_db_session):
        await processor.process_message(OWNER, "hi", test_db_session)
        reply = await processor.process_message(OWNER, "Tanni, 9 Feb", test_db_session)
        assert reply == "I've saved Tanni's birthday on Feb 9. 🎂"

    @pytest.mark.asyncio
    async def test_interaction_time_is_recorded(self, processor, test_db_session, onboarded_owner):
        await processor.process_message(onboarded_owner, "help", test_db_session)
        test_db_session.expire_all()
        assert test_db_session.get(UserProfile, OWNER).last_interaction_at is not None


class TestSaving:

    @pytest.mark.asyncio
    async def test_deterministic_save_skips_classifier(self, processor, test_db_session, onboarded_owner, fake_classifier):
        reply = await processor.process_message(onboarded_owner, "Tanni, 9 Feb", test_db_session)

        assert reply == "I've saved Tanni's birthday on Feb 9. 🎂"
        assert _names(test_db_session) == ["Tanni"]
        assert fake_classifier.calls == []

    @pytest.mark.asyncio
    async def test_duplicate_save(self, processor, test_db_session, onboarded_owner):
        await processor.process_message(onboarded_owner, "Papa 29 Aug", test_db_session)
        reply = await processor.process_message(onboarded_owner, "papa, 29 august", test_db_session)

        assert reply == "I already have papa's birthday saved on Aug 29."
        assert test_db_session.query(BirthdayRecord).count() == 1

    @pytest.mark.asyncio
    async def test_classifier_save(self, test_db_session, onboarded_owner):
        classifier = FakeClassifier(ParsedIntent(intent=Intent.SAVE, name="Papa", day=29, month="Aug"))
        processor = BirthdayMessageProcessor(classifier=classifier, clock=lambda: FIXED_NOW)

        reply = await processor.process_message(onboarded_owner, "my father Papa was born late in summer", test_db_session)

        assert reply == "I've saved Papa's birthday on Aug 29. 🎂"
        assert classifier.calls == ["my father Papa was born late in summer"]

    @pytest.mark.asyncio
    async def test_save_marks_welcome_seen(self, processor, test_db_session):
        test_db_session.add(UserProfile(owner_id=OWNER, has_seen_welcome=False))
        test_db_session.commit()

        await processor.process_message(OWNER, "Tanni, 9 Feb", test_db_session)

        test_db_session.expire_all()
        assert test_db_session.get(UserProfile, OWNER).has_seen_welcome is True

    @pytest.mark.asyncio
    async def test_constraint_race_is_reported_as_duplicate(self, test_db_session, onboarded_owner):
        class RacingRepository(SqlAlchemyBirthdayRepository):
            def exists(self, owner_id, name, day, month):
                return False

        processor = BirthdayMessageProcessor(
            classifier=FakeClassifier(),
            repository_factory=lambda db: (RacingRepository(db), SqlAlchemyUserRepository(db)),
            clock=lambda: FIXED_NOW,
        )
        await processor.process_message(onboarded_owner, "Mom, 14 Dec", test_db_session)
        reply = await processor.process_message(onboarded_owner, "Mom, 14 Dec", test_db_session)

        assert reply == "I already have Mom's birthday saved on Dec 14."
        assert test_db_session.query(BirthdayRecord).count() == 1

    @pytest.mark.asyncio
    async def test_batch_save_summary(self, processor, test_db_session, onboarded_owner):
        await processor.process_message(onboarded_owner, "Papa 29 Aug", test_db_session)
        reply = await processor.process_message(
            onboarded_owner, "Tanni, 9 Feb\nPapa 29 Aug\nno date here", test_db_session
        )

        assert reply.startswith("I've saved:\n• Tanni – Feb 9")
        assert "• Papa – already saved on Aug 29" in reply
        assert "• no date here" in reply
        assert _names(test_db_session) == ["Papa", "Tanni"]


class TestDeleting:

    @pytest.mark.asyncio
    async def test_delete_several(self, processor, test_db_session, onboarded_owner):
        await processor.process_message(onboarded_owner, "Tanni, 9 Feb", test_db_session)
        await processor.process_message(onboarded_owner, "Papa 29 Aug", test_db_session)

        reply = await processor.process_message(onboarded_owner, "delete Tanni, Papa", test_db_session)

        assert reply == "I've removed 2 birthdays: Tanni, Papa."
        assert _names(test_db_session) == []

    @pytest.mark.asyncio
    async def test_delete_partial(self, processor, test_db_session, onboarded_owner):
        await processor.process_message(onboarded_owner, "Tanni, 9 Feb", test_db_session)

        reply = await processor.process_message(onboarded_owner, "delete Tanni and Papa", test_db_session)

        assert reply == "I've removed Tanni's birthday.\nI could not find: Papa."

    @pytest.mark.asyncio
    async def test_delete_by_partial_name(self, processor, test_db_session, onboarded_owner):
        await processor.process_message(onboarded_owner, "Varun 3 Mar", test_db_session)

        reply = await processor.process_message(onboarded_owner, "delete varu", test_db_session)

        assert reply == "I've removed Varun's birthday."
        assert _names(test_db_session) == []

    @pytest.mark.asyncio
    async def test_single_letter_delete_removes_nothing(self, processor, test_db_session, onboarded_owner):
        for text in ("Varun 3 Mar", "Anita 4 Apr", "Raj 5 May"):
            await processor.process_message(onboarded_owner, text, test_db_session)

        reply = await processor.process_message(onboarded_owner, "delete a", test_db_session)

        assert reply == replies.DELETE_NOT_FOUND
        assert _names(test_db_session) == ["Anita", "Raj", "Varun"]

    @pytest.mark.asyncio
    async def test_shared_substring_asks_which_one(self, processor, test_db_session, onboarded_owner):
        for text in ("Rajesh 3 Mar", "Raju 4 Apr", "Tanni, 9 Feb"):
            await processor.process_message(onboarded_owner, text, test_db_session)

        reply = await processor.process_message(onboarded_owner, "delete raj and Tanni", test_db_session)

        assert reply == (
            "I've removed Tanni's birthday.\n\n"
            "More than one birthday matches raj:\n• Rajesh – Mar 3\n• Raju – Apr 4\n"
            "Please send the full name to delete."
        )
        assert _names(test_db_session) == ["Rajesh", "Raju"]

    @pytest.mark.asyncio
    async def test_delete_nothing_found(self, processor, test_db_session, onboarded_owner):
        reply = await processor.process_message(onboarded_owner, "remove Bob", test_db_session)
        assert reply == replies.DELETE_NOT_FOUND


class TestChanging:

    @pytest.mark.asyncio
    async def test_update_date(self, processor, test_db_session, onboarded_owner):
        await processor.process_message(onboarded_owner, "Papa 29 Aug", test_db_session)

        reply = await processor.process_message(onboarded_owner, "update Papa to 30 Aug", test_db_session)

        assert reply == "I've updated Papa's birthday to Aug 30."
        record = test_db_session.query(BirthdayRecord).one()
        assert (record.day, record.month) == (30, "Aug")

    @pytest.mark.asyncio
    async def test_update_unknown_name(self, processor, test_db_session, onboarded_owner):
        reply = await processor.process_message(onboarded_owner, "change Bob to 1 Jan", test_db_session)
        assert reply == "I couldn't find Bob's birthday to update."

    @pytest.mark.asyncio
    async def test_rename(self, processor, test_db_session, onboarded_owner):
        await processor.process_message(onboarded_owner, "Papa 29 Aug", test_db_session)

        reply = await processor.process_message(onboarded_owner, "rename Papa to Dad", test_db_session)

        assert reply == "I've changed Papa's name to Dad."
        assert _names(test_db_session) == ["Dad"]


class TestQueries:

    @pytest.fixture
    def saved(self, test_db_session, onboarded_owner):
        repo = SqlAlchemyBirthdayRepository(test_db_session)
        repo.save(OWNER, "Papa", 29, "Aug")
        repo.save(OWNER, "Tanni", 9, "Feb")
        repo.save(OWNER, "Ravi", 2, "Jan")
        repo.save(OWNER, "Meena", 5, "Jan")
        repo.save(OWNER, "Varun", 3, "Mar")
        return repo

    @pytest.mark.asyncio
    async def test_complete_list(self, processor, test_db_session, saved):
        reply = await processor.process_message(OWNER, "Complete list", test_db_session)

        assert reply.startswith("🎂 BIRTHDAYS 🎂\n\nJanuary\n• 2 – Ravi\n• 5 – Meena")
        assert reply.index("February") < reply.index("March") < reply.index("August")

    @pytest.mark.asyncio
    async def test_empty_list(self, processor, test_db_session, onboarded_owner):
        assert await processor.process_message(OWNER, "complete list", test_db_session) == replies.NO_BIRTHDAYS

    @pytest.mark.asyncio
    async def test_month_listing(self, processor, test_db_session, saved):
        reply = await processor.process_message(OWNER, "birthdays in January", test_db_session)
        assert reply == "Here are the birthdays in January:\n\n• Ravi - Jan 2\n• Meena - Jan 5"

    @pytest.mark.asyncio
    async def test_next_month_uses_owner_local_date(self, processor, test_db_session, saved):
        # 28 Dec locally, so next month is January
        reply = await processor.process_message(OWNER, "next month", test_db_session)
        assert reply.startswith("Here are the birthdays in January:")

    @pytest.mark.asyncio
    async def test_upcoming_this_week_wraps_the_year(self, processor, test_db_session, saved):
        reply = await processor.process_message(OWNER, "upcoming birthdays this week", test_db_session)

        assert reply == "Here are the upcoming birthdays:\n\n• 2 Jan – Ravi\n• 5 Jan – Meena"

    @pytest.mark.asyncio
    async def test_upcoming_next_days(self, processor, test_db_session, saved):
        reply = await processor.process_message(OWNER, "birthdays in the next 10 days", test_db_session)
        assert "Ravi" in reply and "Meena" in reply and "Tanni" not in reply

    @pytest.mark.asyncio
    async def test_search_by_date(self, processor, test_db_session, saved):
        reply = await processor.process_message(OWNER, "whose birthday is on 9 Feb?", test_db_session)
        assert reply == "Tanni's birthday is on Feb 9."

    @pytest.mark.asyncio
    async def test_search_by_name(self, processor, test_db_session, saved):
        reply = await processor.process_message(OWNER, "When is Papa's birthday?", test_db_session)
        assert reply == "Papa's birthday is on Aug 29. 🎂"

    @pytest.mark.asyncio
    async def test_search_by_name_not_found(self, processor, test_db_session, saved):
        reply = await processor.process_message(OWNER, "when is Bob's birthday", test_db_session)
        assert reply == "I couldn't find a birthday for Bob."

    @pytest.mark.asyncio
    async def test_bare_name_fuzzy_lookup(self, processor, test_db_session, saved):
        reply = await processor.process_message(OWNER, "VARUN", test_db_session)
        assert reply == "Varun's birthday is on Mar 3. 🎂"


class TestFallbacks:

    @pytest.mark.asyncio
    async def test_off_topic_message(self, processor, test_db_session, onboarded_owner):
        reply = await processor.process_message(onboarded_owner, "tell me a joke", test_db_session)
        assert reply == replies.FALLBACK_MESSAGE

    @pytest.mark.asyncio
    async def test_classifier_failure_still_replies(self, test_db_session, onboarded_owner):
        processor = BirthdayMessageProcessor(
            classifier=FakeClassifier(error=RuntimeError("model unavailable")),
            clock=lambda: FIXED_NOW,
        )
        reply = await processor.process_message(onboarded_owner, "tell me a joke", test_db_session)
        assert reply == replies.FALLBACK_MESSAGE

    @pytest.mark.asyncio
    async def test_incomplete_classifier_output_asks_for_missing_details(self, test_db_session, onboarded_owner):
        classifier = FakeClassifier(ParsedIntent(intent=Intent.UNKNOWN, rejected_intent=Intent.SAVE))
        processor = BirthdayMessageProcessor(classifier=classifier, clock=lambda: FIXED_NOW)

        reply = await processor.process_message(onboarded_owner, "save something for papa", test_db_session)

        assert reply == replies.CLARIFY_SAVE
        assert _names(test_db_session) == []

    @pytest.mark.asyncio
    async def test_empty_message(self, processor, test_db_session, onboarded_owner):
        assert await processor.process_message(onboarded_owner, "   ", test_db_session) == replies.FALLBACK_MESSAGE


class TestToneRewrite:

    @pytest.fixture
    def rewriter(self):
        return RecordingRewriter()

    @pytest.fixture
    def rewriting_processor(self, rewriter):
        return BirthdayMessageProcessor(classifier=FakeClassifier(), rewriter=rewriter, clock=lambda: FIXED_NOW)

    @pytest.mark.asyncio
    async def test_short_replies_are_rewritten(self, rewriting_processor, rewriter, test_db_session, onboarded_owner):
        reply = await rewriting_processor.process_message(OWNER, "Tanni, 9 Feb", test_db_session)
        assert reply == "~ I've saved Tanni's birthday on Feb 9. 🎂"
        assert rewriter.seen == ["I've saved Tanni's birthday on Feb 9. 🎂"]

    @pytest.mark.asyncio
    async def test_lists_and_welcome_are_not_rewritten(self, rewriting_processor, rewriter, test_db_session):
        assert await rewriting_processor.process_message(OWNER, "hello", test_db_session) == replies.WELCOME_MESSAGE
        await rewriting_processor.process_message(OWNER, "Tanni, 9 Feb", test_db_session)
        rewriter.seen.clear()

        reply = await rewriting_processor.process_message(OWNER, "complete list", test_db_session)

        assert reply.startswith("🎂 BIRTHDAYS 🎂")
        assert rewriter.seen == []

    @pytest.mark.asyncio
    async def test_failing_rewriter_sends_original(self, test_db_session, onboarded_owner):
        class BrokenRewriter(RecordingRewriter):
            async def rewrite(self, text):
                raise RuntimeError("boom")

        processor = BirthdayMessageProcessor(classifier=FakeClassifier(), rewriter=BrokenRewriter(), clock=lambda: FIXED_NOW)
        reply = await processor.process_message(OWNER, "Tanni, 9 Feb", test_db_session)
        assert reply == "I've saved Tanni's birthday on Feb 9. 🎂"
