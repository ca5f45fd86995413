"""
Reset boundary ("anchor") arithmetic.

All functions work on timezone-aware datetimes and keep the wall-clock
hour when stepping by calendar days, so a 06:00 reset stays at 06:00
across DST changes. Persisted timestamps are epoch milliseconds.
"""
from __future__ import annotations

import os
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def get_reset_timezone() -> tzinfo:
    return ZoneInfo(os.getenv("RESET_TIMEZONE", "Asia/Seoul"))


def aware(now: Optional[datetime] = None) -> datetime:
    if now is None:
        return datetime.now(get_reset_timezone())
    if now.tzinfo is None:
        return now.replace(tzinfo=get_reset_timezone())
    return now


def to_ms(dt: datetime) -> int:
    return (dt - _EPOCH) // timedelta(milliseconds=1)


def from_ms(ms: int, tz: Optional[tzinfo] = None) -> datetime:
    return (_EPOCH + timedelta(milliseconds=ms)).astimezone(tz or get_reset_timezone())


def _at_hour(day: date, hour: int, tz: Optional[tzinfo]) -> datetime:
    return datetime(day.year, day.month, day.day, hour, tzinfo=tz)


def shift_days(dt: datetime, days: int) -> datetime:
    return datetime.combine(dt.date() + timedelta(days=days), dt.time(), tzinfo=dt.tzinfo)


def js_weekday(d: date) -> int:
    """0=Sunday .. 6=Saturday."""
    return (d.weekday() + 1) % 7


def daily_anchor(now: datetime, hour: int) -> datetime:
    """Most recent ``hour:00`` that is <= now (today's, or yesterday's if not reached yet)."""
    anchor = _at_hour(now.date(), hour, now.tzinfo)
    if now < anchor:
        anchor = shift_days(anchor, -1)
    return anchor


def weekly_anchor(now: datetime, weekday: int, hour: int) -> datetime:
    """Most recent ``weekday`` at ``hour:00`` that is <= now."""
    today = now.date()
    day = today - timedelta(days=js_weekday(today) - weekday)
    anchor = _at_hour(day, hour, now.tzinfo)
    if now < anchor:
        anchor = shift_days(anchor, -7)
    return anchor
