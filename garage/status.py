"""Status enums for derived service and MOT urgency."""

from enum import Enum


class ServiceStatus(Enum):
    """Service schedule categories. Lower value = more urgent."""

    OVERDUE = 1
    DUE_SOON = 2
    UP_TO_DATE = 3
    UNKNOWN = 4  # No next-service date recorded


class MOTStatus(Enum):
    """MOT certificate categories. Lower value = more urgent."""

    EXPIRED = 1
    DUE_SOON = 2
    VALID = 3
    UNKNOWN = 4  # No expiry date known
