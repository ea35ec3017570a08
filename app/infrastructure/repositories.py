"""Infrastructure layer: Repository interfaces and implementations."""
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from database.models import BirthdayRecord, UserProfile
from app.domain.months import normalize_month
from utils.time import utc_now, DEFAULT_TIMEZONE

logger = logging.getLogger(__name__)


class DuplicateBirthdayError(Exception):
    """Raised when the storage uniqueness constraint rejects a save."""


class AmbiguousNameError(Exception):
    """Raised when a partial name matches more than one record."""

    def __init__(self, query: str, candidates: List[BirthdayRecord]):
        super().__init__(f"'{query}' matches {len(candidates)} records")
        self.query = query
        self.candidates = candidates


MIN_PARTIAL_DELETE_LENGTH = 2


def _name_key(name: str) -> str:
    return (name or "").strip().lower()


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class BirthdayRepository(ABC):
    """Repository interface for BirthdayRecord operations, scoped by owner."""

    @abstractmethod
    def save(self, owner_id: str, name: str, day: int, month: str) -> BirthdayRecord:
        """Insert a record; raises DuplicateBirthdayError on a uniqueness clash."""
        pass

    @abstractmethod
    def exists(self, owner_id: str, name: str, day: int, month: str) -> bool:
        pass

    @abstractmethod
    def find_by_name(self, owner_id: str, query: str) -> List[BirthdayRecord]:
        """Case-insensitive substring match on name."""
        pass

    @abstractmethod
    def find_by_date(self, owner_id: str, day: int, month: str) -> List[BirthdayRecord]:
        pass

    @abstractmethod
    def find_by_month(self, owner_id: str, month: str) -> List[BirthdayRecord]:
        pass

    @abstractmethod
    def list_all(self, owner_id: str) -> List[BirthdayRecord]:
        pass

    @abstractmethod
    def delete_by_name(self, owner_id: str, name: str) -> List[str]:
        """Exact case-insensitive delete, falling back to a substring delete.

        Returns the stored names that were removed. The substring pass needs
        at least two characters and removes a single record only; several
        matches raise AmbiguousNameError and nothing is deleted.
        """
        pass

    @abstractmethod
    def update_date(self, owner_id: str, name: str, day: int, month: str) -> bool:
        pass

    @abstractmethod
    def update_name(self, owner_id: str, old_name: str, new_name: str) -> bool:
        pass


class UserRepository(ABC):
    """Repository interface for UserProfile operations."""

    @abstractmethod
    def exists(self, owner_id: str) -> bool:
        pass

    @abstractmethod
    def get(self, owner_id: str) -> Optional[UserProfile]:
        pass

    @abstractmethod
    def onboard(self, owner_id: str) -> UserProfile:
        pass

    @abstractmethod
    def mark_welcome_seen(self, owner_id: str) -> None:
        pass

    @abstractmethod
    def touch_last_interaction(self, owner_id: str) -> None:
        pass

    @abstractmethod
    def get_timezone(self, owner_id: str) -> str:
        pass


class SqlAlchemyBirthdayRepository(BirthdayRepository):
    """SQLAlchemy implementation of BirthdayRepository."""

    def __init__(self, db: Session):
        self.db = db

    def _owned(self, owner_id: str):
        return self.db.query(BirthdayRecord).filter(BirthdayRecord.owner_id == owner_id)

    @contextmanager
    def _duplicate_guard(self, label: str):
        """Commit the enclosed write; a uniqueness clash rolls back as DuplicateBirthdayError."""
        try:
            yield
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise DuplicateBirthdayError(label) from e

    def save(self, owner_id: str, name: str, day: int, month: str) -> BirthdayRecord:
        canonical = normalize_month(month)
        if canonical is None:
            raise ValueError(f"Invalid month: {month!r}")
        record = BirthdayRecord(
            owner_id=owner_id,
            name=name.strip(),
            name_key=_name_key(name),
            day=day,
            month=canonical,
        )
        with self._duplicate_guard(f"{name} {canonical} {day}"):
            self.db.add(record)
        self.db.refresh(record)
        return record

    def exists(self, owner_id: str, name: str, day: int, month: str) -> bool:
        canonical = normalize_month(month)
        if canonical is None:
            return False
        return self._owned(owner_id).filter(
            BirthdayRecord.name_key == _name_key(name),
            BirthdayRecord.day == day,
            BirthdayRecord.month == canonical,
        ).first() is not None

    def find_by_name(self, owner_id: str, query: str) -> List[BirthdayRecord]:
        pattern = f"%{_escape_like(_name_key(query))}%"
        return self._owned(owner_id).filter(
            BirthdayRecord.name_key.like(pattern, escape="\\")
        ).order_by(BirthdayRecord.name_key).all()

    def find_by_date(self, owner_id: str, day: int, month: str) -> List[BirthdayRecord]:
        return self._owned(owner_id).filter(
            BirthdayRecord.day == day,
            BirthdayRecord.month == normalize_month(month),
        ).order_by(BirthdayRecord.name_key).all()

    def find_by_month(self, owner_id: str, month: str) -> List[BirthdayRecord]:
        return self._owned(owner_id).filter(
            BirthdayRecord.month == normalize_month(month)
        ).order_by(BirthdayRecord.day, BirthdayRecord.name_key).all()

    def list_all(self, owner_id: str) -> List[BirthdayRecord]:
        return self._owned(owner_id).order_by(BirthdayRecord.month, BirthdayRecord.day).all()

    def delete_by_name(self, owner_id: str, name: str) -> List[str]:
        key = _name_key(name)
        if not key:
            return []
        exact = self._owned(owner_id).filter(BirthdayRecord.name_key == key).all()
        if exact:
            return self._delete(owner_id, exact, "Exact")

        if len(key) < MIN_PARTIAL_DELETE_LENGTH:
            logger.info(f"[DELETE] '{name}' too short for a partial match (owner={owner_id})")
            return []
        partial = self._owned(owner_id).filter(
            BirthdayRecord.name_key.like(f"%{_escape_like(key)}%", escape="\\")
        ).order_by(BirthdayRecord.name_key).all()
        if len(partial) > 1:
            logger.info(f"[DELETE] '{name}' matches {len(partial)} records for owner={owner_id}, nothing deleted")
            raise AmbiguousNameError(name, partial)
        if partial:
            return self._delete(owner_id, partial, "Partial")
        logger.info(f"[DELETE] No match found for owner={owner_id}, name='{name}'")
        return []

    def _delete(self, owner_id: str, records: List[BirthdayRecord], label: str) -> List[str]:
        names = [record.name for record in records]
        for record in records:
            self.db.delete(record)
        self.db.commit()
        logger.info(f"[DELETE] {label} match deleted {len(names)} row(s) for owner={owner_id}: {names}")
        return names

    def update_date(self, owner_id: str, name: str, day: int, month: str) -> bool:
        canonical = normalize_month(month)
        if canonical is None:
            return False
        with self._duplicate_guard(f"{name} {canonical} {day}"):
            count = self._owned(owner_id).filter(
                BirthdayRecord.name_key == _name_key(name)
            ).update({"day": day, "month": canonical}, synchronize_session=False)
        return count > 0

    def update_name(self, owner_id: str, old_name: str, new_name: str) -> bool:
        with self._duplicate_guard(new_name):
            count = self._owned(owner_id).filter(
                BirthdayRecord.name_key == _name_key(old_name)
            ).update({"name": new_name.strip(), "name_key": _name_key(new_name)}, synchronize_session=False)
        return count > 0


class SqlAlchemyUserRepository(UserRepository):
    """SQLAlchemy implementation of UserRepository."""

    def __init__(self, db: Session, default_timezone: str = DEFAULT_TIMEZONE):
        self.db = db
        self.default_timezone = default_timezone

    def exists(self, owner_id: str) -> bool:
        return self.get(owner_id) is not None

    def get(self, owner_id: str) -> Optional[UserProfile]:
        return self.db.query(UserProfile).filter(UserProfile.owner_id == owner_id).first()

    def onboard(self, owner_id: str) -> UserProfile:
        profile = self.get(owner_id)
        if profile is None:
            profile = UserProfile(
                owner_id=owner_id,
                has_seen_welcome=True,
                timezone=self.default_timezone,
            )
            self.db.add(profile)
            self.db.commit()
            self.db.refresh(profile)
        return profile

    def mark_welcome_seen(self, owner_id: str) -> None:
        profile = self.get(owner_id)
        if profile is None:
            self.onboard(owner_id)
            return
        if not profile.has_seen_welcome:
            profile.has_seen_welcome = True
            self.db.commit()

    def touch_last_interaction(self, owner_id: str) -> None:
        profile = self.get(owner_id)
        if profile is None:
            return
        profile.last_interaction_at = utc_now()
        self.db.commit()

    def get_timezone(self, owner_id: str) -> str:
        profile = self.get(owner_id)
        return (profile.timezone if profile and profile.timezone else self.default_timezone)
