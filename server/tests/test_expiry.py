from __future__ import annotations

from datetime import UTC, date, datetime, timedelta, timezone

import pytest

from license_issuer.core.errors import DateFormatError, ExpiryOutOfRangeError
from license_issuer.core.expiry import ExpiryPolicy, add_months, end_of_day, parse_civil_date

BEIJING = timezone(timedelta(hours=8))


def test_expiry_is_last_second_of_civil_day():
    policy = ExpiryPolicy()
    expires_at = policy.validate("2025-06-15", now=datetime(2025, 6, 1, tzinfo=UTC))
    assert expires_at == datetime(2025, 6, 15, 23, 59, 59, tzinfo=BEIJING)
    assert expires_at.astimezone(UTC) == datetime(2025, 6, 15, 15, 59, 59, tzinfo=UTC)
    assert int(expires_at.timestamp()) == 1750003199


def test_end_of_day_respects_offset():
    assert end_of_day(date(2025, 1, 1), UTC) == datetime(2025, 1, 1, 23, 59, 59, tzinfo=UTC)


def test_one_month_plus_one_day_horizon():
    policy = ExpiryPolicy()
    now = datetime(2025, 1, 1, tzinfo=UTC)
    assert policy.validate("2025-02-02", now=now).date() == date(2025, 2, 2)
    with pytest.raises(ExpiryOutOfRangeError):
        policy.validate("2025-02-03", now=now)


def test_horizon_counts_from_civil_today():
    # 20:00 UTC on Jan 31 is already Feb 1 in UTC+8.
    policy = ExpiryPolicy()
    now = datetime(2025, 1, 31, 20, 0, tzinfo=UTC)
    assert policy.latest_date(now) == date(2025, 3, 2)
    policy.validate("2025-03-02", now=now)


def test_horizon_clamps_to_month_end():
    policy = ExpiryPolicy()
    assert policy.latest_date(datetime(2025, 1, 31, 0, 0, tzinfo=UTC)) == date(2025, 3, 1)


def test_past_dates_rejected():
    policy = ExpiryPolicy()
    now = datetime(2025, 1, 10, tzinfo=UTC)
    with pytest.raises(ExpiryOutOfRangeError):
        policy.validate("2025-01-09", now=now)
    policy.validate("2025-01-10", now=now)


def test_today_accepted_until_its_last_second():
    policy = ExpiryPolicy()
    last_second = datetime(2025, 1, 9, 15, 59, 59, tzinfo=UTC)
    assert policy.validate("2025-01-09", now=last_second) == last_second
    with pytest.raises(ExpiryOutOfRangeError):
        policy.validate("2025-01-09", now=last_second + timedelta(seconds=1))


def test_allow_past_and_uncapped_policy():
    policy = ExpiryPolicy(max_months=None, allow_past=True)
    now = datetime(2025, 1, 10, tzinfo=UTC)
    policy.validate("2020-01-01", now=now)
    policy.validate("2030-12-31", now=now)


def test_last_representable_date_is_rejected_by_default_horizon():
    with pytest.raises(ExpiryOutOfRangeError):
        ExpiryPolicy().validate("9999-12-31", now=datetime(2025, 1, 1, tzinfo=UTC))


def test_last_representable_date_without_horizon():
    expires_at = ExpiryPolicy(max_months=None).validate("9999-12-31", now=datetime(2025, 1, 1, tzinfo=UTC))
    assert expires_at == datetime(9999, 12, 31, 23, 59, 59, tzinfo=BEIJING)
    assert int(expires_at.timestamp()) == 253402271999


def test_horizon_past_end_of_calendar_is_uncapped():
    policy = ExpiryPolicy()
    now = datetime(9999, 12, 15, tzinfo=UTC)
    assert policy.latest_date(now) is None
    assert policy.validate("9999-12-31", now=now).date() == date(9999, 12, 31)


def test_first_representable_date_with_allow_past():
    policy = ExpiryPolicy(max_months=None, allow_past=True)
    expires_at = policy.validate("0001-01-01", now=datetime(2025, 1, 1, tzinfo=UTC))
    assert expires_at == datetime(1, 1, 1, 23, 59, 59, tzinfo=BEIJING)


def test_naive_now_is_read_as_utc():
    policy = ExpiryPolicy()
    aware = policy.validate("2025-02-02", now=datetime(2025, 1, 1, tzinfo=UTC))
    naive = policy.validate("2025-02-02", now=datetime(2025, 1, 1))
    assert aware == naive


def test_custom_offset():
    policy = ExpiryPolicy(utc_offset_hours=-5)
    expires_at = policy.validate("2025-06-15", now=datetime(2025, 6, 1, tzinfo=UTC))
    assert expires_at.astimezone(UTC) == datetime(2025, 6, 16, 4, 59, 59, tzinfo=UTC)


@pytest.mark.parametrize(
    "value",
    ["", "2025-6-15", "2025/06/15", "20250615", "2025-02-30", "2025-13-01", " 2025-06-15", "2025-06-15T00:00"],
)
def test_malformed_dates(value):
    with pytest.raises(DateFormatError):
        parse_civil_date(value)


def test_leap_day_parses():
    assert parse_civil_date("2024-02-29") == date(2024, 2, 29)


@pytest.mark.parametrize(
    ("start", "months", "expected"),
    [
        (date(2025, 1, 31), 1, date(2025, 2, 28)),
        (date(2024, 1, 31), 1, date(2024, 2, 29)),
        (date(2025, 12, 15), 1, date(2026, 1, 15)),
        (date(2025, 3, 31), 12, date(2026, 3, 31)),
    ],
)
def test_add_months(start, months, expected):
    assert add_months(start, months) == expected
