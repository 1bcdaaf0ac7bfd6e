"""Milestone calendar - maps elapsed program days to due milestones and reminders.

Pure functions, no database access. Milestones match on the exact elapsed day;
the evaluator widens that with milestones_in_window when a catch-up window is
configured.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Mapping
from zoneinfo import ZoneInfo

from coachflow.core.milestones import DEFAULT_MILESTONE_DAYS, REMINDER_LEAD_DAYS
from coachflow.db.enums import ServiceType

MilestoneSchedule = Mapping[ServiceType, tuple[int, ...]]


@dataclass(frozen=True)
class Milestone:
    """A fixed elapsed-day checkpoint in a client's program."""

    day: int
    is_final: bool = False

    @property
    def follow_up_type(self) -> str:
        return f"{self.day}_day"

    @property
    def title(self) -> str:
        return f"{self.day}-Day Check-In"


def _days_for(service_type: ServiceType | str, schedule: MilestoneSchedule) -> tuple[int, ...]:
    try:
        return tuple(schedule.get(ServiceType(service_type), ()))
    except ValueError:
        return ()


def _milestone(days: tuple[int, ...], day: int) -> Milestone:
    return Milestone(day=day, is_final=day == max(days))


def elapsed_days(started_at: datetime, today: date, tz: str = "UTC") -> int:
    """
    Whole days between program start and today (date subtraction).

    Naive timestamps are treated as UTC; the start is converted into the
    evaluator's timezone before taking its date.
    """
    if started_at.tzinfo is None:
        started_at = started_at.replace(tzinfo=timezone.utc)
    start_day = started_at.astimezone(ZoneInfo(tz)).date()
    return (today - start_day).days


def due_milestone(
    service_type: ServiceType | str,
    elapsed: int,
    schedule: MilestoneSchedule = DEFAULT_MILESTONE_DAYS,
) -> Milestone | None:
    """Milestone falling exactly on `elapsed`, if any."""
    days = _days_for(service_type, schedule)
    if elapsed in days:
        return _milestone(days, elapsed)
    return None


def upcoming_reminder(
    service_type: ServiceType | str,
    elapsed: int,
    schedule: MilestoneSchedule = DEFAULT_MILESTONE_DAYS,
    lead_days: int = REMINDER_LEAD_DAYS,
) -> Milestone | None:
    """Milestone falling exactly `lead_days` after `elapsed`, if any."""
    days = _days_for(service_type, schedule)
    target = elapsed + lead_days
    if target in days:
        return _milestone(days, target)
    return None


def milestones_in_window(
    service_type: ServiceType | str,
    elapsed: int,
    catch_up_days: int = 0,
    schedule: MilestoneSchedule = DEFAULT_MILESTONE_DAYS,
) -> list[Milestone]:
    """
    Milestones reached within the last `catch_up_days` days (inclusive of today).

    With catch_up_days=0 this is the exact-day match of due_milestone.
    """
    if catch_up_days < 0:
        raise ValueError("catch_up_days must be >= 0")
    days = _days_for(service_type, schedule)
    return [
        _milestone(days, day)
        for day in days
        if 0 <= elapsed - day <= catch_up_days
    ]
