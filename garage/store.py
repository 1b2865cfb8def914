"""
In-memory object store for vehicles, service types, bookings and reminders.

The store owns every entity and exposes the query contract the business layer
relies on (sort orders, filters, search). It enforces referential ownership:
deleting a vehicle cascades to its bookings and reminders, and deleting a
service type clears the reference on bookings that used it.
"""

import logging
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import (
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
    Union,
)

import yaml

from .booking import BookingStatus, ServiceBooking
from .reminder import ServiceReminder
from .service_type import ServiceType
from .vehicle import Vehicle

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_TYPES_FILE = Path(__file__).parent / "service_types.yaml"

T = TypeVar("T")


def load_service_types(
    filename: Union[str, Path] = DEFAULT_SERVICE_TYPES_FILE,
) -> List[ServiceType]:
    """Load service type reference data from a YAML file."""
    with open(filename, "r") as fp:
        data = yaml.load(fp, Loader=yaml.SafeLoader) or {}

    return [
        ServiceType(
            name=item["name"],
            description=item.get("description", ""),
            estimated_duration=item["estimatedDuration"],
            min_price=item["minPrice"],
            max_price=item["maxPrice"],
            is_specialty=item.get("specialty", False),
            icon=item.get("icon", ""),
        )
        for item in data.get("serviceTypes") or []
    ]


def _page(items: Sequence[T], limit: int, offset: int) -> List[T]:
    if limit < 0 or offset < 0:
        raise ValueError(f"limit and offset must not be negative: {limit}, {offset}")
    return list(items[offset : offset + limit])


class DataStore:
    """Owner of all entity state. Pass one instance to each collaborator."""

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self.clock = clock
        self._lock = threading.RLock()
        self._vehicles: Dict[str, Vehicle] = {}
        self._service_types: Dict[str, ServiceType] = {}
        self._bookings: Dict[str, ServiceBooking] = {}
        self._reminders: Dict[str, ServiceReminder] = {}

    @property
    def lock(self):
        """Hold this to make several store calls atomic."""
        return self._lock

    def _touch(self, entity) -> None:
        entity.updated_at = self.clock()

    # =========================================================================
    # Vehicles
    # =========================================================================

    def add_vehicle(self, vehicle: Vehicle) -> Vehicle:
        with self._lock:
            self._vehicles[vehicle.id] = vehicle
        return vehicle

    def update_vehicle(self, vehicle: Vehicle) -> Vehicle:
        with self._lock:
            self._touch(vehicle)
            self._vehicles[vehicle.id] = vehicle
        return vehicle

    def delete_vehicle(self, vehicle_id: str) -> None:
        """Delete a vehicle together with its bookings and reminders."""
        with self._lock:
            self._vehicles.pop(vehicle_id, None)
            for booking in self.bookings_for_vehicle(vehicle_id):
                del self._bookings[booking.id]
            reminders = self.reminders_for_vehicle(vehicle_id, include_completed=True)
            for reminder in reminders:
                del self._reminders[reminder.id]

    def get_vehicle(self, vehicle_id: str) -> Optional[Vehicle]:
        return self._vehicles.get(vehicle_id)

    def list_vehicles(self) -> List[Vehicle]:
        """All vehicles, most recently updated first."""
        with self._lock:
            return sorted(
                self._vehicles.values(), key=lambda v: v.updated_at, reverse=True
            )

    def list_vehicles_page(self, limit: int = 20, offset: int = 0) -> List[Vehicle]:
        """One page of list_vehicles()."""
        return _page(self.list_vehicles(), limit, offset)

    def update_vehicle_mileages(self, updates: Iterable[Tuple[str, int]]) -> int:
        """
        Set the mileage of several vehicles at once.

        Unknown vehicle ids are skipped. Returns the number of vehicles updated.
        """
        updated = 0
        with self._lock:
            for vehicle_id, mileage in updates:
                vehicle = self._vehicles.get(vehicle_id)
                if vehicle is None:
                    continue
                vehicle.mileage = mileage
                self._touch(vehicle)
                updated += 1
        logger.info("Updated mileage on %d vehicles", updated)
        return updated

    def find_vehicle_by_registration(
        self, registration: str, exclude_id: Optional[str] = None
    ) -> Optional[Vehicle]:
        """Case-insensitive registration lookup, optionally ignoring one vehicle."""
        wanted = registration.strip().upper()
        with self._lock:
            for vehicle in self._vehicles.values():
                if vehicle.id != exclude_id and vehicle.registration.upper() == wanted:
                    return vehicle
        return None

    def search_vehicles(self, query: str) -> List[Vehicle]:
        """Vehicles whose make, model or registration contains the query text."""
        needle = query.strip().lower()
        if not needle:
            return []
        with self._lock:
            matches = [
                v
                for v in self._vehicles.values()
                if needle in v.make.lower()
                or needle in v.model.lower()
                or needle in v.registration.lower()
            ]
        return sorted(matches, key=lambda v: (v.make.lower(), v.model.lower()))

    # =========================================================================
    # Service types
    # =========================================================================

    def add_service_type(self, service_type: ServiceType) -> ServiceType:
        with self._lock:
            self._service_types[service_type.id] = service_type
        return service_type

    def delete_service_type(self, service_type_id: str) -> None:
        """Delete a service type; bookings keep existing with no service type."""
        with self._lock:
            self._service_types.pop(service_type_id, None)
            for booking in self._bookings.values():
                if booking.service_type_id == service_type_id:
                    booking.service_type_id = None
                    self._touch(booking)

    def get_service_type(self, service_type_id: Optional[str]) -> Optional[ServiceType]:
        if service_type_id is None:
            return None
        return self._service_types.get(service_type_id)

    def find_service_type(self, name: str) -> Optional[ServiceType]:
        """Case-insensitive lookup by name."""
        wanted = name.strip().lower()
        for service_type in self.list_service_types():
            if service_type.name.lower() == wanted:
                return service_type
        return None

    def list_service_types(self) -> List[ServiceType]:
        """All service types sorted by name."""
        with self._lock:
            return sorted(self._service_types.values(), key=lambda s: s.name)

    def seed_service_types(
        self, filename: Union[str, Path] = DEFAULT_SERVICE_TYPES_FILE
    ) -> int:
        """Load default service types when none exist. Returns the number added."""
        with self._lock:
            if self._service_types:
                return 0
            service_types = load_service_types(filename)
            for service_type in service_types:
                self.add_service_type(service_type)
        logger.info("Seeded %d service types", len(service_types))
        return len(service_types)

    # =========================================================================
    # Bookings
    # =========================================================================

    def add_booking(self, booking: ServiceBooking) -> ServiceBooking:
        with self._lock:
            self._bookings[booking.id] = booking
        return booking

    def update_booking(self, booking: ServiceBooking) -> ServiceBooking:
        with self._lock:
            self._touch(booking)
            self._bookings[booking.id] = booking
        return booking

    def delete_booking(self, booking_id: str) -> None:
        with self._lock:
            self._bookings.pop(booking_id, None)

    def get_booking(self, booking_id: str) -> Optional[ServiceBooking]:
        return self._bookings.get(booking_id)

    def list_bookings(self) -> List[ServiceBooking]:
        """All bookings, earliest scheduled first."""
        with self._lock:
            return sorted(self._bookings.values(), key=lambda b: b.scheduled_date)

    def list_bookings_page(
        self, limit: int = 50, offset: int = 0
    ) -> List[ServiceBooking]:
        """One page of bookings, latest scheduled first."""
        return _page(self.list_bookings()[::-1], limit, offset)

    def delete_bookings(self, booking_ids: Iterable[str]) -> int:
        """Delete several bookings. Returns how many existed and were removed."""
        removed = 0
        with self._lock:
            for booking_id in set(booking_ids):
                if self._bookings.pop(booking_id, None) is not None:
                    removed += 1
        logger.info("Deleted %d bookings", removed)
        return removed

    def bookings_for_vehicle(self, vehicle_id: str) -> List[ServiceBooking]:
        return [b for b in self.list_bookings() if b.vehicle_id == vehicle_id]

    def active_bookings(self) -> List[ServiceBooking]:
        """Scheduled, confirmed and in-progress bookings, earliest first."""
        return [b for b in self.list_bookings() if b.status.is_active]

    # =========================================================================
    # Reminders
    # =========================================================================

    def add_reminder(self, reminder: ServiceReminder) -> ServiceReminder:
        with self._lock:
            self._reminders[reminder.id] = reminder
        return reminder

    def update_reminder(self, reminder: ServiceReminder) -> ServiceReminder:
        with self._lock:
            self._touch(reminder)
            self._reminders[reminder.id] = reminder
        return reminder

    def complete_reminder(self, reminder: ServiceReminder) -> ServiceReminder:
        reminder.is_completed = True
        return self.update_reminder(reminder)

    def delete_reminder(self, reminder_id: str) -> None:
        with self._lock:
            self._reminders.pop(reminder_id, None)

    def get_reminder(self, reminder_id: str) -> Optional[ServiceReminder]:
        return self._reminders.get(reminder_id)

    def list_reminders(self, include_completed: bool = False) -> List[ServiceReminder]:
        """Reminders by due date; completed ones only when asked for."""
        with self._lock:
            reminders = [
                r
                for r in self._reminders.values()
                if include_completed or not r.is_completed
            ]
        return sorted(reminders, key=lambda r: r.due_date)

    def reminders_for_vehicle(
        self, vehicle_id: str, include_completed: bool = False
    ) -> List[ServiceReminder]:
        return [
            r
            for r in self.list_reminders(include_completed=include_completed)
            if r.vehicle_id == vehicle_id
        ]

    def upcoming_reminders(self, days: int = 30) -> List[ServiceReminder]:
        """Incomplete reminders due within the next ``days`` days (or overdue)."""
        horizon = self.clock() + timedelta(days=days)
        return [r for r in self.list_reminders() if r.due_date <= horizon]

    # =========================================================================
    # Maintenance
    # =========================================================================

    def cleanup_old_data(self, older_than_days: int = 365) -> Tuple[int, int]:
        """
        Remove completed bookings and completed reminders older than the cutoff.

        A booking's age is taken from its completed date (or creation date when
        that is missing); a reminder's from its due date.

        Returns:
            (bookings_removed, reminders_removed)
        """
        cutoff = self.clock() - timedelta(days=older_than_days)
        with self._lock:
            old_bookings = [
                b
                for b in self._bookings.values()
                if b.status == BookingStatus.COMPLETED
                and (b.completed_date or b.created_at) < cutoff
            ]
            for booking in old_bookings:
                del self._bookings[booking.id]

            old_reminders = [
                r
                for r in self._reminders.values()
                if r.is_completed and r.due_date < cutoff
            ]
            for reminder in old_reminders:
                del self._reminders[reminder.id]

        logger.info(
            "Cleaned up %d old bookings and %d old reminders",
            len(old_bookings),
            len(old_reminders),
        )
        return len(old_bookings), len(old_reminders)

    def entity_counts(self) -> Dict[str, int]:
        with self._lock:
            return {
                "vehicles": len(self._vehicles),
                "serviceTypes": len(self._service_types),
                "bookings": len(self._bookings),
                "reminders": len(self._reminders),
            }

    def clear(self) -> None:
        with self._lock:
            self._vehicles.clear()
            self._service_types.clear()
            self._bookings.clear()
            self._reminders.clear()
