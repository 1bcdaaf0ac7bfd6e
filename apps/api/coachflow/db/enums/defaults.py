"""Centralized defaults for enums."""

from coachflow.db.enums.clients import ClientStatus
from coachflow.db.enums.follow_ups import FollowUpStatus


DEFAULT_CLIENT_STATUS: ClientStatus = ClientStatus.PENDING
DEFAULT_FOLLOW_UP_STATUS: FollowUpStatus = FollowUpStatus.PENDING
