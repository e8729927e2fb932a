from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta, timezone

from license_issuer.core.errors import DateFormatError, ExpiryOutOfRangeError

_CIVIL_DATE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


def parse_civil_date(value: str) -> date:
    if not isinstance(value, str) or not _CIVIL_DATE.fullmatch(value):
        raise DateFormatError("Invalid date format, use YYYY-MM-DD (e.g. 2025-12-31)")
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise DateFormatError(f"'{value}' is not a valid calendar date") from exc


def add_months(day: date, months: int) -> date:
    """Shift by calendar months, clamping to the last day of the target month."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def end_of_day(day: date, tz: timezone) -> datetime:
    return datetime.combine(day, time(23, 59, 59), tzinfo=tz)


def _aware(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now(UTC)
    if now.tzinfo is None:
        return now.replace(tzinfo=UTC)
    return now


@dataclass(frozen=True)
class ExpiryPolicy:
    """Turns a civil expiry date into the instant a license stops working.

    Dates are read in a fixed UTC offset so licenses end at the same wall-clock
    boundary wherever the issuer runs. A license expires at the last second of
    its date. Dates whose end has already passed are rejected, and so are dates
    later than ``max_months`` calendar months plus ``grace_days`` days after
    today's civil date.
    """

    utc_offset_hours: int = 8
    max_months: int | None = 1
    grace_days: int = 1
    allow_past: bool = False

    @property
    def tz(self) -> timezone:
        return timezone(timedelta(hours=self.utc_offset_hours))

    def latest_date(self, now: datetime | None = None) -> date | None:
        if self.max_months is None:
            return None
        today = _aware(now).astimezone(self.tz).date()
        try:
            return add_months(today, self.max_months) + timedelta(days=self.grace_days)
        except (OverflowError, ValueError):
            # Horizon runs past date.max, so every representable date is inside it.
            return None

    def validate(self, value: str, now: datetime | None = None) -> datetime:
        day = parse_civil_date(value)
        current = _aware(now)
        expires_at = end_of_day(day, self.tz)
        if not self.allow_past and expires_at < current:
            raise ExpiryOutOfRangeError("Expiry date cannot be in the past")
        latest = self.latest_date(current)
        if latest is not None and day > latest:
            raise ExpiryOutOfRangeError(
                f"Expiry date {day.isoformat()} is too far ahead; latest allowed is {latest.isoformat()}"
            )
        return expires_at
