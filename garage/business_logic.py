"""
Business rules for the vehicle, booking and reminder lifecycle.

Every mutation goes through BusinessLogicService, which validates input,
enforces the lifecycle rules and then writes through the DataStore it was
given. Fallible operations return a Result instead of raising.
"""

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Callable, Iterator, Optional

from .booking import BookingStatus, ServiceBooking
from .calculations import (
    HIGH_MILEAGE,
    OLD_VEHICLE_YEARS,
    VERY_HIGH_MILEAGE,
    VERY_OLD_VEHICLE_YEARS,
    as_date,
    calc_next_service_due,
    days_until,
    estimate_cost,
    is_valid_mileage,
    is_valid_year,
    mot_status,
    service_status,
)
from .errors import BusinessError, Result
from .reminder import ReminderType, ServiceReminder
from .service_type import ServiceType
from .status import MOTStatus, ServiceStatus
from .store import DataStore
from .summary import VehicleSummary
from .vehicle import FuelType, Vehicle

if TYPE_CHECKING:
    from .mot_client import MOTData

logger = logging.getLogger(__name__)

# Bookings further out than this get an automatic reminder
BOOKING_REMINDER_THRESHOLD_DAYS = 7
BOOKING_REMINDER_LEAD_DAYS = 2

MOT_REMINDER_WINDOW_DAYS = 60
MOT_REMINDER_URGENT_DAYS = 30
MOT_REMINDER_LEAD_DAYS = 7


def normalize_registration(registration: str) -> str:
    """Registrations are stored trimmed and uppercase."""
    return registration.strip().upper()


def _blank(value: Optional[str]) -> bool:
    return not isinstance(value, str) or not value.strip()


class BusinessLogicService:
    """Validated operations over a DataStore."""

    def __init__(
        self, store: DataStore, clock: Optional[Callable[[], datetime]] = None
    ):
        self.store = store
        self.clock = clock or store.clock

    # =========================================================================
    # Lookups
    # =========================================================================

    def get_vehicle(self, vehicle_id: str) -> Result[Vehicle]:
        vehicle = self.store.get_vehicle(vehicle_id)
        if vehicle is None:
            return Result.failure(BusinessError.not_found("Vehicle not found"))
        return Result.success(vehicle)

    def find_vehicle_by_registration(self, registration: str) -> Result[Vehicle]:
        vehicle = self.store.find_vehicle_by_registration(registration)
        if vehicle is None:
            return Result.failure(
                BusinessError.not_found(
                    f"No vehicle with registration {normalize_registration(registration)}"
                )
            )
        return Result.success(vehicle)

    # =========================================================================
    # Vehicles
    # =========================================================================

    def create_vehicle(
        self,
        make: str,
        model: str,
        year: int,
        registration: str,
        mileage: int,
        fuel_type: FuelType,
        color: str,
        last_service_date: Optional[datetime] = None,
        next_service_due: Optional[datetime] = None,
        mot_due: Optional[datetime] = None,
    ) -> Result[Vehicle]:
        """Validate and register a new vehicle."""
        if any(_blank(v) for v in (make, model, registration, color)):
            return Result.failure(BusinessError.invalid_input("All fields are required"))

        if not is_valid_year(year, self.clock()):
            return Result.failure(BusinessError.invalid_input("Invalid year"))

        if not is_valid_mileage(mileage):
            return Result.failure(BusinessError.invalid_input("Invalid mileage"))

        registration = normalize_registration(registration)
        with self.store.lock:
            if self.store.find_vehicle_by_registration(registration) is not None:
                return Result.failure(
                    BusinessError.duplicate_data(
                        "Vehicle with this registration already exists"
                    )
                )

            now = self.clock()
            vehicle = Vehicle(
                make=make.strip(),
                model=model.strip(),
                year=year,
                registration=registration,
                mileage=mileage,
                fuel_type=fuel_type,
                color=color.strip(),
                last_service_date=last_service_date,
                next_service_due=next_service_due,
                mot_due=mot_due,
                created_at=now,
                updated_at=now,
            )
            self.store.add_vehicle(vehicle)
        logger.info("Created vehicle %s (%s)", vehicle.registration, vehicle.id)
        return Result.success(vehicle)

    def update_vehicle(
        self,
        vehicle_id: str,
        make: Optional[str] = None,
        model: Optional[str] = None,
        year: Optional[int] = None,
        registration: Optional[str] = None,
        mileage: Optional[int] = None,
        fuel_type: Optional[FuelType] = None,
        color: Optional[str] = None,
        last_service_date: Optional[datetime] = None,
        next_service_due: Optional[datetime] = None,
        mot_due: Optional[datetime] = None,
    ) -> Result[Vehicle]:
        """
        Apply a partial update.

        Only supplied (non-None) fields are validated and applied. Nothing is
        changed unless every supplied field is valid.
        """
        vehicle = self.store.get_vehicle(vehicle_id)
        if vehicle is None:
            return Result.failure(BusinessError.not_found("Vehicle not found"))

        changes = {}

        for name, value, label in (
            ("make", make, "Make"),
            ("model", model, "Model"),
            ("color", color, "Color"),
        ):
            if value is None:
                continue
            if _blank(value):
                return Result.failure(
                    BusinessError.invalid_input(f"{label} cannot be empty")
                )
            changes[name] = value.strip()

        if year is not None:
            if not is_valid_year(year, self.clock()):
                return Result.failure(BusinessError.invalid_input("Invalid year"))
            changes["year"] = year

        if mileage is not None:
            if not is_valid_mileage(mileage):
                return Result.failure(BusinessError.invalid_input("Invalid mileage"))
            changes["mileage"] = mileage

        if fuel_type is not None:
            changes["fuel_type"] = fuel_type
        if last_service_date is not None:
            changes["last_service_date"] = last_service_date
        if next_service_due is not None:
            changes["next_service_due"] = next_service_due
        if mot_due is not None:
            changes["mot_due"] = mot_due

        if registration is not None and _blank(registration):
            return Result.failure(
                BusinessError.invalid_input("Registration cannot be empty")
            )

        with self.store.lock:
            if registration is not None:
                registration = normalize_registration(registration)
                duplicate = self.store.find_vehicle_by_registration(
                    registration, exclude_id=vehicle.id
                )
                if duplicate is not None:
                    return Result.failure(
                        BusinessError.duplicate_data(
                            "Vehicle with this registration already exists"
                        )
                    )
                changes["registration"] = registration

            for name, value in changes.items():
                setattr(vehicle, name, value)
            self.store.update_vehicle(vehicle)
        return Result.success(vehicle)

    def delete_vehicle(self, vehicle_id: str) -> Result[None]:
        """Delete a vehicle and everything it owns, unless it has open bookings."""
        vehicle = self.store.get_vehicle(vehicle_id)
        if vehicle is None:
            return Result.failure(BusinessError.not_found("Vehicle not found"))

        with self.store.lock:
            pending = [
                b
                for b in self.store.bookings_for_vehicle(vehicle_id)
                if b.status.is_active
            ]
            if pending:
                logger.warning(
                    "Refusing to delete %s: %d pending bookings",
                    vehicle.registration,
                    len(pending),
                )
                return Result.failure(
                    BusinessError.rule_violation(
                        "Cannot delete vehicle with pending bookings. "
                        "Please cancel bookings first."
                    )
                )
            self.store.delete_vehicle(vehicle_id)
        logger.info("Deleted vehicle %s (%s)", vehicle.registration, vehicle.id)
        return Result.success()

    def apply_mot_data(self, vehicle_id: str, mot_data: "MOTData") -> Result[Vehicle]:
        """
        Record the results of an MOT lookup on a stored vehicle.

        Sets the MOT due date from the lookup's expiry date, and raises the
        recorded mileage when the latest test saw a higher odometer reading
        in miles.
        """
        vehicle = self.store.get_vehicle(vehicle_id)
        if vehicle is None:
            return Result.failure(BusinessError.not_found("Vehicle not found"))

        if mot_data.mot_expiry_date is not None:
            vehicle.mot_due = mot_data.mot_expiry_date
        odometer = mot_data.latest_odometer_miles
        if odometer is not None and odometer > vehicle.mileage and is_valid_mileage(odometer):
            vehicle.mileage = odometer

        self.store.update_vehicle(vehicle)
        return Result.success(vehicle)

    # =========================================================================
    # Bookings
    # =========================================================================

    def create_booking(
        self,
        vehicle_id: str,
        service_type_id: str,
        scheduled_date: datetime,
        notes: str = "",
    ) -> Result[ServiceBooking]:
        """
        Book a service for a vehicle.

        A vehicle can only have one booking per calendar day. Bookings more
        than a week out also get a reminder two days beforehand.
        """
        vehicle = self.store.get_vehicle(vehicle_id)
        if vehicle is None:
            return Result.failure(BusinessError.not_found("Vehicle not found"))
        service_type = self.store.get_service_type(service_type_id)
        if service_type is None:
            return Result.failure(BusinessError.not_found("Service type not found"))

        now = self.clock()
        if scheduled_date < now:
            return Result.failure(
                BusinessError.invalid_input("Cannot schedule booking in the past")
            )

        booking_day = as_date(scheduled_date)
        with self.store.lock:
            for existing in self.store.bookings_for_vehicle(vehicle_id):
                if as_date(existing.scheduled_date) == booking_day:
                    return Result.failure(
                        BusinessError.rule_violation(
                            "Vehicle already has a booking scheduled for this date"
                        )
                    )

            booking = ServiceBooking(
                vehicle_id=vehicle.id,
                service_type_id=service_type.id,
                scheduled_date=scheduled_date,
                estimated_cost=self.estimate_cost(service_type, vehicle),
                notes=(notes or "").strip(),
                created_at=now,
                updated_at=now,
            )
            self.store.add_booking(booking)
        logger.info(
            "Booked %s for %s on %s",
            service_type.name,
            vehicle.registration,
            booking_day.isoformat(),
        )

        if (scheduled_date - now).days > BOOKING_REMINDER_THRESHOLD_DAYS:
            reminder = ServiceReminder(
                vehicle_id=vehicle.id,
                title="Upcoming Service",
                description=(
                    f"Your {service_type.name} is scheduled for "
                    f"{scheduled_date:%d %b %Y}"
                ),
                due_date=scheduled_date - timedelta(days=BOOKING_REMINDER_LEAD_DAYS),
                type=ReminderType.SERVICE,
                is_urgent=False,
                created_at=now,
                updated_at=now,
            )
            self.store.add_reminder(reminder)

        return Result.success(booking)

    def update_booking_status(
        self,
        booking_id: str,
        status: BookingStatus,
        actual_cost: Optional[float] = None,
        completed_date: Optional[datetime] = None,
    ) -> Result[ServiceBooking]:
        """
        Move a booking along its lifecycle.

        Completing a booking requires a non-negative actual cost and records
        the service on the vehicle (last service date and next service due).
        """
        booking = self.store.get_booking(booking_id)
        if booking is None:
            return Result.failure(BusinessError.not_found("Booking not found"))

        current = booking.status
        if current.is_terminal:
            return Result.failure(
                BusinessError.rule_violation(
                    "Cannot change status of completed or cancelled booking"
                )
            )
        if not current.can_transition_to(status):
            logger.warning(
                "Rejected booking transition %s -> %s", current.value, status.value
            )
            return Result.failure(
                BusinessError.rule_violation(
                    f"Invalid status transition from {current.value} to {status.value}"
                )
            )

        if status == BookingStatus.COMPLETED:
            if actual_cost is None or actual_cost < 0:
                return Result.failure(
                    BusinessError.invalid_input(
                        "Actual cost is required for completed bookings"
                    )
                )
            booking.actual_cost = actual_cost
            booking.completed_date = completed_date or self.clock()
            self._record_service(booking)

        booking.status = status
        self.store.update_booking(booking)
        return Result.success(booking)

    def _record_service(self, booking: ServiceBooking) -> None:
        vehicle = self.store.get_vehicle(booking.vehicle_id)
        if vehicle is None:
            return
        vehicle.last_service_date = booking.completed_date
        vehicle.next_service_due = calc_next_service_due(booking.completed_date)
        self.store.update_vehicle(vehicle)

    def delete_booking(self, booking_id: str) -> Result[None]:
        """Delete a completed or cancelled booking."""
        booking = self.store.get_booking(booking_id)
        if booking is None:
            return Result.failure(BusinessError.not_found("Booking not found"))
        if not booking.status.is_terminal:
            return Result.failure(
                BusinessError.rule_violation(
                    "Only completed or cancelled bookings can be deleted"
                )
            )
        self.store.delete_booking(booking_id)
        return Result.success()

    def estimate_cost(self, service_type: ServiceType, vehicle: Vehicle) -> float:
        return estimate_cost(service_type, vehicle, self.clock().year)

    # =========================================================================
    # Reminders
    # =========================================================================

    def create_reminder(
        self,
        vehicle_id: str,
        title: str,
        description: str,
        due_date: datetime,
        type: ReminderType,
        is_urgent: bool = False,
    ) -> Result[ServiceReminder]:
        vehicle = self.store.get_vehicle(vehicle_id)
        if vehicle is None:
            return Result.failure(BusinessError.not_found("Vehicle not found"))
        if _blank(title) or _blank(description):
            return Result.failure(
                BusinessError.invalid_input("Title and description are required")
            )

        now = self.clock()
        reminder = ServiceReminder(
            vehicle_id=vehicle.id,
            title=title.strip(),
            description=description.strip(),
            due_date=due_date,
            type=type,
            is_urgent=is_urgent,
            created_at=now,
            updated_at=now,
        )
        self.store.add_reminder(reminder)
        return Result.success(reminder)

    def complete_reminder(self, reminder_id: str) -> Result[ServiceReminder]:
        reminder = self.store.get_reminder(reminder_id)
        if reminder is None:
            return Result.failure(BusinessError.not_found("Reminder not found"))
        return Result.success(self.store.complete_reminder(reminder))

    def delete_reminder(self, reminder_id: str) -> Result[None]:
        if self.store.get_reminder(reminder_id) is None:
            return Result.failure(BusinessError.not_found("Reminder not found"))
        self.store.delete_reminder(reminder_id)
        return Result.success()

    def generate_smart_reminders(self, vehicle: Vehicle) -> Iterator[ServiceReminder]:
        """
        Suggest reminders from the vehicle's current state.

        Suggestions are yielded lazily and are not saved; callers persist the
        ones the customer accepts via create_reminder.
        """
        now = self.clock()
        age = vehicle.age(now.year)

        if vehicle.mileage > HIGH_MILEAGE:
            yield ServiceReminder(
                vehicle_id=vehicle.id,
                title="High Mileage Service Recommended",
                description=(
                    f"Your vehicle has high mileage ({vehicle.mileage:,} miles). "
                    "Consider a comprehensive service including cambelt and "
                    "fluid changes."
                ),
                due_date=now + timedelta(days=30),
                type=ReminderType.SERVICE,
                is_urgent=vehicle.mileage > VERY_HIGH_MILEAGE,
                created_at=now,
            )

        if age > OLD_VEHICLE_YEARS:
            yield ServiceReminder(
                vehicle_id=vehicle.id,
                title="Brake System Check Due",
                description=(
                    "Vehicles over 5 years old should have brake systems "
                    "inspected annually for safety."
                ),
                due_date=now + timedelta(days=60),
                type=ReminderType.BRAKE,
                is_urgent=age > VERY_OLD_VEHICLE_YEARS,
                created_at=now,
            )

        if vehicle.is_electric:
            yield ServiceReminder(
                vehicle_id=vehicle.id,
                title="EV Battery Health Check",
                description=(
                    "Electric vehicle batteries benefit from regular health "
                    "monitoring to ensure optimal performance."
                ),
                due_date=now + timedelta(days=90),
                type=ReminderType.BATTERY,
                is_urgent=False,
                created_at=now,
            )

        if vehicle.mot_due is not None:
            days_to_mot = days_until(vehicle.mot_due, now)
            if 0 < days_to_mot <= MOT_REMINDER_WINDOW_DAYS:
                yield ServiceReminder(
                    vehicle_id=vehicle.id,
                    title="MOT Test Due Soon",
                    description=(
                        f"Your MOT expires on {vehicle.mot_due:%d %b %Y}. "
                        "Book your test to avoid driving illegally."
                    ),
                    due_date=vehicle.mot_due - timedelta(days=MOT_REMINDER_LEAD_DAYS),
                    type=ReminderType.MOT,
                    is_urgent=days_to_mot <= MOT_REMINDER_URGENT_DAYS,
                    created_at=now,
                )

    # =========================================================================
    # Status
    # =========================================================================

    def service_status(self, vehicle: Vehicle) -> ServiceStatus:
        return service_status(vehicle.next_service_due, self.clock())

    def mot_status(self, vehicle: Vehicle) -> MOTStatus:
        return mot_status(vehicle.mot_due, self.clock())

    def summarize(self, vehicle: Vehicle) -> VehicleSummary:
        """Calculated status, next open booking and open reminders for a vehicle."""
        now = self.clock()
        upcoming = [
            b for b in self.store.bookings_for_vehicle(vehicle.id) if b.status.is_active
        ]
        return VehicleSummary(
            vehicle=vehicle,
            service_status=self.service_status(vehicle),
            mot_status=self.mot_status(vehicle),
            days_to_service=(
                days_until(vehicle.next_service_due, now)
                if vehicle.next_service_due
                else None
            ),
            days_to_mot=days_until(vehicle.mot_due, now) if vehicle.mot_due else None,
            next_booking=upcoming[0] if upcoming else None,
            open_reminders=self.store.reminders_for_vehicle(vehicle.id),
        )
