"""Client-related enums."""

from enum import Enum


class ServiceType(str, Enum):
    """Product variant a client is enrolled in."""

    CONSULTATION = "consultation"
    HUNDRED_DAYS = "hundred_days"


class ClientStatus(str, Enum):
    """Client account status."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"
    COMPLETED = "completed"
