from sqlalchemy import Column, String, Integer, DateTime, Boolean, UniqueConstraint
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator, CHAR
import uuid

from utils.time import utc_now


class GUID(TypeDecorator):
    """Platform-independent GUID/UUID type.

    Uses PostgreSQL UUID when available; otherwise stores as CHAR(36).
    """
    impl = CHAR(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):  # pragma: no cover - trivial
        if value is None:
            return value
        if isinstance(value, uuid.UUID):
            return str(value)
        return str(uuid.UUID(str(value)))

    def process_result_value(self, value, dialect):  # pragma: no cover - trivial
        if value is None:
            return value
        return uuid.UUID(str(value))

Base = declarative_base()

class UserProfile(Base):
    __tablename__ = "users"

    owner_id = Column(String(32), primary_key=True)
    has_seen_welcome = Column(Boolean, nullable=False, default=False)
    timezone = Column(String(64), nullable=False, default="Asia/Kolkata")
    created_at = Column(DateTime(timezone=True), default=utc_now)
    last_interaction_at = Column(DateTime(timezone=True))
    last_reminder_sent_at = Column(DateTime(timezone=True))

class BirthdayRecord(Base):
    __tablename__ = "birthdays"
    # name_key is the lower-cased name, so uniqueness ignores letter case
    __table_args__ = (
        UniqueConstraint("owner_id", "name_key", "day", "month", name="uq_birthday_owner_name_date"),
    )

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    owner_id = Column(String(32), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    name_key = Column(String(100), nullable=False)
    day = Column(Integer, nullable=False)
    month = Column(String(3), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now)

    def __repr__(self):  # pragma: no cover - debugging aid
        return f"<BirthdayRecord {self.name} {self.month} {self.day}>"
