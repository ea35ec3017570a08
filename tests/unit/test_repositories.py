"""
Unit tests for the SQLAlchemy repositories.
"""
import pytest

from app.infrastructure.repositories import (
    AmbiguousNameError,
    DuplicateBirthdayError,
    SqlAlchemyBirthdayRepository,
    SqlAlchemyUserRepository,
)
from database.models import BirthdayRecord, UserProfile
from tests.conftest import OTHER_OWNER, OWNER


@pytest.fixture
def birthdays(test_db_session):
    return SqlAlchemyBirthdayRepository(test_db_session)


@pytest.fixture
def users(test_db_session):
    return SqlAlchemyUserRepository(test_db_session, default_timezone="Asia/Kolkata")


class TestBirthdayRepository:

    def test_save_normalizes_month(self, birthdays):
        saved = birthdays.save(OWNER, " Papa ", 29, "august")
        assert (saved.name, saved.name_key, saved.day, saved.month) == ("Papa", "papa", 29, "Aug")

    def test_save_rejects_invalid_month(self, birthdays):
        with pytest.raises(ValueError):
            birthdays.save(OWNER, "Papa", 29, "Smarch")

    def test_exists_is_case_insensitive(self, birthdays):
        birthdays.save(OWNER, "Mom", 9, "Feb")
        assert birthdays.exists(OWNER, "MOM", 9, "february")
        assert not birthdays.exists(OWNER, "Mom", 10, "Feb")
        assert not birthdays.exists(OTHER_OWNER, "Mom", 9, "Feb")

    def test_unique_constraint_reports_duplicate(self, birthdays, test_db_session):
        birthdays.save(OWNER, "Mom", 9, "Feb")
        with pytest.raises(DuplicateBirthdayError):
            birthdays.save(OWNER, "mom", 9, "Feb")
        # Session is usable again after the rollback
        assert test_db_session.query(BirthdayRecord).count() == 1

    def test_same_name_different_date_is_allowed(self, birthdays):
        birthdays.save(OWNER, "Ravi", 1, "Jan")
        birthdays.save(OWNER, "Ravi", 2, "Jan")
        assert len(birthdays.find_by_name(OWNER, "ravi")) == 2

    def test_find_by_name_is_substring_and_escapes_wildcards(self, birthdays):
        birthdays.save(OWNER, "Varun", 3, "Mar")
        birthdays.save(OWNER, "Tanni", 9, "Feb")
        assert [r.name for r in birthdays.find_by_name(OWNER, "aru")] == ["Varun"]
        assert birthdays.find_by_name(OWNER, "%") == []

    def test_find_by_date_and_month(self, birthdays):
        birthdays.save(OWNER, "Tanni", 9, "Feb")
        birthdays.save(OWNER, "Ravi", 2, "Feb")
        assert [r.name for r in birthdays.find_by_date(OWNER, 9, "2")] == ["Tanni"]
        assert [r.name for r in birthdays.find_by_month(OWNER, "feb")] == ["Ravi", "Tanni"]

    def test_delete_exact_before_partial(self, birthdays):
        birthdays.save(OWNER, "Ann", 1, "Jan")
        birthdays.save(OWNER, "Annie", 2, "Jan")
        assert birthdays.delete_by_name(OWNER, "ann") == ["Ann"]
        assert [r.name for r in birthdays.list_all(OWNER)] == ["Annie"]

    def test_delete_partial_fallback_returns_stored_name(self, birthdays):
        birthdays.save(OWNER, "Varun", 3, "Mar")
        assert birthdays.delete_by_name(OWNER, "varu") == ["Varun"]
        assert birthdays.list_all(OWNER) == []

    def test_partial_delete_matching_several_records_deletes_nothing(self, birthdays):
        birthdays.save(OWNER, "Rajesh", 3, "Mar")
        birthdays.save(OWNER, "Raju", 4, "Apr")
        birthdays.save(OWNER, "Tanni", 9, "Feb")
        with pytest.raises(AmbiguousNameError) as excinfo:
            birthdays.delete_by_name(OWNER, "raj")
        assert [r.name for r in excinfo.value.candidates] == ["Rajesh", "Raju"]
        assert len(birthdays.list_all(OWNER)) == 3

    def test_single_letter_never_partially_deletes(self, birthdays):
        birthdays.save(OWNER, "Varun", 3, "Mar")
        birthdays.save(OWNER, "Anita", 4, "Apr")
        birthdays.save(OWNER, "Raj", 5, "May")
        assert birthdays.delete_by_name(OWNER, "a") == []
        assert len(birthdays.list_all(OWNER)) == 3

    def test_delete_not_found_and_scoped_by_owner(self, birthdays):
        birthdays.save(OTHER_OWNER, "Varun", 3, "Mar")
        assert not birthdays.delete_by_name(OWNER, "Varun")
        assert not birthdays.delete_by_name(OWNER, "")
        assert len(birthdays.list_all(OTHER_OWNER)) == 1

    def test_update_date_touches_exact_name_only(self, birthdays):
        birthdays.save(OWNER, "Papa", 29, "Aug")
        birthdays.save(OWNER, "Papaji", 1, "Jan")
        assert birthdays.update_date(OWNER, "papa", 30, "08")
        dates = {r.name: (r.day, r.month) for r in birthdays.list_all(OWNER)}
        assert dates == {"Papa": (30, "Aug"), "Papaji": (1, "Jan")}
        assert not birthdays.update_date(OWNER, "Nobody", 1, "Jan")

    def test_update_name(self, birthdays):
        birthdays.save(OWNER, "Papa", 29, "Aug")
        assert birthdays.update_name(OWNER, "PAPA", "Dad")
        record = birthdays.list_all(OWNER)[0]
        assert (record.name, record.name_key) == ("Dad", "dad")

    def test_rename_onto_existing_birthday_is_duplicate(self, birthdays):
        birthdays.save(OWNER, "Papa", 29, "Aug")
        birthdays.save(OWNER, "Dad", 29, "Aug")
        with pytest.raises(DuplicateBirthdayError):
            birthdays.update_name(OWNER, "Papa", "Dad")


class TestUserRepository:

    def test_onboard_creates_profile_once(self, users, test_db_session):
        assert not users.exists(OWNER)
        profile = users.onboard(OWNER)
        users.onboard(OWNER)
        assert profile.has_seen_welcome is True
        assert test_db_session.query(UserProfile).count() == 1

    def test_touch_last_interaction(self, users):
        users.onboard(OWNER)
        assert users.get(OWNER).last_interaction_at is None
        users.touch_last_interaction(OWNER)
        assert users.get(OWNER).last_interaction_at is not None

    def test_touch_unknown_owner_is_a_no_op(self, users):
        users.touch_last_interaction(OWNER)
        assert not users.exists(OWNER)

    def test_mark_welcome_seen_upserts(self, users, test_db_session):
        test_db_session.add(UserProfile(owner_id=OWNER, has_seen_welcome=False))
        test_db_session.commit()
        users.mark_welcome_seen(OWNER)
        assert users.get(OWNER).has_seen_welcome is True
        users.mark_welcome_seen(OTHER_OWNER)
        assert users.exists(OTHER_OWNER)

    def test_timezone_defaults(self, users, test_db_session):
        assert users.get_timezone(OWNER) == "Asia/Kolkata"
        test_db_session.add(UserProfile(owner_id=OTHER_OWNER, timezone="Europe/London"))
        test_db_session.commit()
        assert users.get_timezone(OTHER_OWNER) == "Europe/London"
