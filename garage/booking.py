"""ServiceBooking class and the booking status transition table."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Optional


class BookingStatus(Enum):
    """Booking lifecycle states. Values are the stored and exported labels."""

    SCHEDULED = "Scheduled"
    CONFIRMED = "Confirmed"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self]

    @property
    def is_active(self) -> bool:
        """Active bookings block deletion of their vehicle."""
        return self in ACTIVE_STATUSES

    def can_transition_to(self, target: "BookingStatus") -> bool:
        return target in ALLOWED_TRANSITIONS[self]


ALLOWED_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.SCHEDULED: frozenset(
        {BookingStatus.CONFIRMED, BookingStatus.CANCELLED}
    ),
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED}
    ),
    BookingStatus.IN_PROGRESS: frozenset(
        {BookingStatus.COMPLETED, BookingStatus.CANCELLED}
    ),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

ACTIVE_STATUSES = frozenset(
    {BookingStatus.SCHEDULED, BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS}
)


class ServiceBooking:
    """A booked workshop visit for one vehicle."""

    def __init__(
        self,
        vehicle_id: str,
        service_type_id: Optional[str],
        scheduled_date: datetime,
        estimated_cost: float,
        status: BookingStatus = BookingStatus.SCHEDULED,
        actual_cost: Optional[float] = None,
        notes: str = "",
        completed_date: Optional[datetime] = None,
        id: Optional[str] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ):
        self.id = id or str(uuid.uuid4())
        self.vehicle_id = vehicle_id
        self.service_type_id = service_type_id
        self.scheduled_date = scheduled_date
        self.status = status
        self.estimated_cost = estimated_cost
        self.actual_cost = actual_cost
        self.notes = notes
        self.completed_date = completed_date
        self.created_at = created_at or datetime.now()
        self.updated_at = updated_at or self.created_at

    def __repr__(self) -> str:
        return (
            f"ServiceBooking({self.scheduled_date.isoformat()!r}, "
            f"{self.status.value!r})"
        )
