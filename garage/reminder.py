"""ServiceReminder class for maintenance reminders."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional


class ReminderType(Enum):
    SERVICE = "Service"
    MOT = "MOT"
    INSURANCE = "Insurance"
    ROAD_TAX = "Road Tax"
    TYRES = "Tyres"
    BRAKE = "Brake Check"
    BATTERY = "Battery Check"


class ServiceReminder:
    """A dated reminder attached to a vehicle."""

    def __init__(
        self,
        vehicle_id: str,
        title: str,
        description: str,
        due_date: datetime,
        type: ReminderType,
        is_completed: bool = False,
        is_urgent: bool = False,
        id: Optional[str] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ):
        self.id = id or str(uuid.uuid4())
        self.vehicle_id = vehicle_id
        self.title = title
        self.description = description
        self.due_date = due_date
        self.type = type
        self.is_completed = is_completed
        self.is_urgent = is_urgent
        self.created_at = created_at or datetime.now()
        self.updated_at = updated_at or self.created_at

    def __repr__(self) -> str:
        return f"ServiceReminder({self.title!r}, {self.due_date.isoformat()!r})"
