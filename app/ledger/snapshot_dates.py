"""Timezone helpers for daily balance snapshot day boundaries."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


SNAPSHOT_MAX_RANGE_DAYS = 366


def snapshot_resolve_timezone(timezone_name: str) -> ZoneInfo:
    """Resolve an IANA timezone name used as the reporting clock.

    Args:
        timezone_name: IANA timezone name such as `UTC` or `Asia/Jerusalem`.

    Returns:
        ZoneInfo: Resolved timezone.

    Raises:
        ValueError: Raised when the name is blank or unknown.
    """

    if not isinstance(timezone_name, str) or not timezone_name.strip():
        raise ValueError("timezone_name must be a non-empty string")

    try:
        return ZoneInfo(timezone_name.strip())
    except (ZoneInfoNotFoundError, ValueError) as error:
        raise ValueError(f"unknown timezone_name={timezone_name.strip()}") from error


def snapshot_normalize_date(value: date | str) -> date:
    """Normalize a snapshot date from a date object or YYYY-MM-DD text.

    Args:
        value: Date or date text.

    Returns:
        date: Parsed calendar date.

    Raises:
        ValueError: Raised when value is blank or malformed.
    """

    if isinstance(value, datetime):
        raise ValueError("snapshot_date must be a date, not a datetime")
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValueError("snapshot_date must be a non-empty string")

    try:
        return date.fromisoformat(value.strip())
    except ValueError as error:
        raise ValueError(f"snapshot_date must be a valid YYYY-MM-DD date string: {value.strip()}") from error


def snapshot_resolve_day_window(snapshot_date: date, report_timezone: ZoneInfo) -> tuple[datetime, datetime]:
    """Resolve `[date 00:00, date+1 00:00)` in the reporting clock as UTC bounds.

    Args:
        snapshot_date: Calendar day in the reporting timezone.
        report_timezone: Reporting timezone.

    Returns:
        tuple[datetime, datetime]: Inclusive start and exclusive end in UTC.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    window_start_local = datetime.combine(snapshot_date, time.min, tzinfo=report_timezone)
    window_end_local = datetime.combine(snapshot_date + timedelta(days=1), time.min, tzinfo=report_timezone)
    return window_start_local.astimezone(timezone.utc), window_end_local.astimezone(timezone.utc)


def snapshot_list_dates(date_from: date, date_to: date) -> list[date]:
    """List every day in an inclusive range.

    Args:
        date_from: First day.
        date_to: Last day.

    Returns:
        list[date]: Days in ascending order.

    Raises:
        ValueError: Raised when the range is reversed or longer than the allowed span.
    """

    if date_to < date_from:
        raise ValueError("date_to must not be earlier than date_from")

    day_count = (date_to - date_from).days + 1
    if day_count > SNAPSHOT_MAX_RANGE_DAYS:
        raise ValueError(f"snapshot range must not exceed {SNAPSHOT_MAX_RANGE_DAYS} days")

    return [date_from + timedelta(days=offset) for offset in range(day_count)]


def snapshot_resolve_report_date_local(timestamp_utc: datetime, report_timezone: ZoneInfo) -> date:
    """Resolve the reporting-clock calendar day of an offset-aware timestamp.

    Args:
        timestamp_utc: Offset-aware timestamp.
        report_timezone: Reporting timezone.

    Returns:
        date: Local calendar day.

    Raises:
        ValueError: Raised when timestamp is offset-naive.
    """

    if timestamp_utc.tzinfo is None or timestamp_utc.utcoffset() is None:
        raise ValueError("timestamp_utc must be offset-aware")

    return timestamp_utc.astimezone(report_timezone).date()


__all__ = [
    "SNAPSHOT_MAX_RANGE_DAYS",
    "snapshot_list_dates",
    "snapshot_normalize_date",
    "snapshot_resolve_day_window",
    "snapshot_resolve_report_date_local",
    "snapshot_resolve_timezone",
]
