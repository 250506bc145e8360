"""Next-occurrence computation for recurring update schedules.

All functions are pure: the same schedule and ``now`` always give the same
answer. Occurrences are built in the schedule's local timezone and returned
as aware UTC datetimes.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from playbookrunner.models.playbook import Frequency, PlaybookSchedule


def _sunday_based_weekday(value: date) -> int:
    """0=Sunday .. 6=Saturday."""
    return (value.weekday() + 1) % 7


def _combine_local(value: date, hour: int, minute: int, tz: ZoneInfo) -> datetime:
    return datetime(value.year, value.month, value.day, hour, minute, tzinfo=tz)


def _clamped_day(year: int, month: int, day: int) -> date:
    """Date in the given month, with *day* clamped to the month's last day."""
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last))


def _add_month(value: date, day: int) -> date:
    year, month = (value.year + 1, 1) if value.month == 12 else (value.year, value.month + 1)
    return _clamped_day(year, month, day)


def _next_weekly_date(today: date, days: tuple[int, ...]) -> date:
    """First configured weekday strictly after *today*, wrapping to next week."""
    current = _sunday_based_weekday(today)
    ordered = sorted(set(days))
    later = [d for d in ordered if d > current]
    if later:
        return today + timedelta(days=later[0] - current)
    return today + timedelta(days=7 - current + ordered[0])


def next_occurrence(schedule: PlaybookSchedule, now: datetime) -> datetime | None:
    """Return the next firing time strictly after *now*.

    ``custom`` schedules are driven by the caller-supplied ``next_run``: it is
    returned when still in the future, otherwise ``None`` (no further
    occurrence). Every other frequency always yields a future instant.

    Monthly schedules without a ``day_of_month`` anchor use the local day
    of *now*.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)

    if schedule.frequency == Frequency.CUSTOM:
        if schedule.next_run is not None and schedule.next_run > now:
            return schedule.next_run.astimezone(timezone.utc)
        return None

    tz = schedule.zone
    hour, minute = schedule.time_of_day
    local_now = now.astimezone(tz)
    today = local_now.date()

    if schedule.frequency == Frequency.WEEKLY and schedule.days:
        eligible = _sunday_based_weekday(today) in schedule.days
        candidate = _combine_local(today, hour, minute, tz)
        if not eligible or candidate <= now:
            candidate = _combine_local(_next_weekly_date(today, schedule.days), hour, minute, tz)
        return candidate.astimezone(timezone.utc)

    if schedule.frequency == Frequency.MONTHLY:
        anchor = schedule.day_of_month or today.day
        target = _clamped_day(today.year, today.month, anchor)
        candidate = _combine_local(target, hour, minute, tz)
        if candidate <= now:
            candidate = _combine_local(_add_month(target, anchor), hour, minute, tz)
        return candidate.astimezone(timezone.utc)

    # Daily, biweekly and weekly-without-days
    candidate = _combine_local(today, hour, minute, tz)
    if candidate <= now:
        step = 14 if schedule.frequency == Frequency.BIWEEKLY else 1
        candidate = _combine_local(today + timedelta(days=step), hour, minute, tz)
    return candidate.astimezone(timezone.utc)


def next_after_fire(schedule: PlaybookSchedule, fired_at: datetime) -> datetime | None:
    """Occurrence that follows a firing at *fired_at*.

    Uses the later of the fire time and the scheduled ``next_run`` as the
    reference so an early wake-up cannot produce the same occurrence again.
    """
    reference = fired_at
    if schedule.next_run is not None and schedule.next_run > reference:
        reference = schedule.next_run
    return next_occurrence(schedule, reference)
