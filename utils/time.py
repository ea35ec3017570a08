"""Time utilities: timezone-aware helpers replacing naive utcnow usage."""
from __future__ import annotations
import logging
from datetime import date, datetime, timezone
from typing import Optional

import pytz

__all__ = ["utc_now", "iso_utc", "local_today", "DEFAULT_TIMEZONE"]

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "Asia/Kolkata"

def utc_now() -> datetime:
    """Return an aware UTC datetime."""
    return datetime.now(timezone.utc)

def iso_utc(dt: Optional[datetime] = None) -> str:
    """Return ISO8601 string with Z suffix for given datetime (defaults to now)."""
    if dt is None:
        dt = utc_now()
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat().replace('+00:00', 'Z')

def local_today(tz_name: Optional[str] = None, now: Optional[datetime] = None) -> date:
    """Calendar date in the given IANA timezone; unknown zones fall back to the default."""
    try:
        tz = pytz.timezone(tz_name or DEFAULT_TIMEZONE)
    except pytz.UnknownTimeZoneError:
        logger.warning(f"Unknown timezone '{tz_name}', using {DEFAULT_TIMEZONE}")
        tz = pytz.timezone(DEFAULT_TIMEZONE)
    current = now or utc_now()
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    return current.astimezone(tz).date()
