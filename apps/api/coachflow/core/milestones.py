"""Follow-up milestone days per service type."""

from typing import Mapping

from coachflow.db.enums import ServiceType

# Elapsed days since program start; ascending
DEFAULT_MILESTONE_DAYS: Mapping[ServiceType, tuple[int, ...]] = {
    ServiceType.HUNDRED_DAYS: (14, 28, 42, 56, 70, 84, 100),
    ServiceType.CONSULTATION: (),
}

# Reminders go out this many days before a milestone
REMINDER_LEAD_DAYS = 2


def tracked_service_types(
    schedule: Mapping[ServiceType, tuple[int, ...]] = DEFAULT_MILESTONE_DAYS,
) -> list[ServiceType]:
    """Service types the follow-up evaluator has to scan."""
    return [service_type for service_type, days in schedule.items() if days]
