"""VehicleSummary dataclass for a vehicle's calculated status."""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional

from .status import MOTStatus, ServiceStatus

if TYPE_CHECKING:
    from .booking import ServiceBooking
    from .reminder import ServiceReminder
    from .vehicle import Vehicle


@dataclass
class VehicleSummary:
    """Calculated service and MOT information for a vehicle."""

    vehicle: "Vehicle"
    service_status: ServiceStatus
    mot_status: MOTStatus
    days_to_service: Optional[int] = None
    days_to_mot: Optional[int] = None
    next_booking: Optional["ServiceBooking"] = None
    open_reminders: List["ServiceReminder"] = field(default_factory=list)

    @property
    def is_due(self) -> bool:
        return self.service_status in (
            ServiceStatus.OVERDUE,
            ServiceStatus.DUE_SOON,
        ) or self.mot_status in (MOTStatus.EXPIRED, MOTStatus.DUE_SOON)

    @property
    def urgent_reminders(self) -> List["ServiceReminder"]:
        return [r for r in self.open_reminders if r.is_urgent]
