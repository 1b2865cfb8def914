#!/usr/bin/env python3
"""
Command-line client for the garage data file.

Commands:
  vehicles          - List vehicles
  add-vehicle       - Register a vehicle (optionally pre-filled from an MOT lookup)
  update-vehicle    - Change a vehicle's details
  delete-vehicle    - Delete a vehicle with its bookings and reminders
  status            - Show service and MOT status
  suggest           - Suggest reminders for a vehicle
  search            - Search vehicles by make, model or registration
  service-types     - List workshop services and prices
  book              - Book a service
  bookings          - List bookings
  booking-status    - Move a booking to a new status
  reminders         - List reminders
  remind            - Add a reminder
  complete-reminder - Mark a reminder as done
  mot               - Look up a vehicle's MOT history
  export            - Write a backup file
  import            - Restore a backup file
  cleanup           - Remove old completed bookings and reminders
  contact           - Show workshop contact details

Vehicles can be referred to by registration or id (or a unique id prefix);
bookings and reminders by id or id prefix.
"""

import argparse
import sys
from datetime import datetime, time
from pathlib import Path
from typing import Callable, List, Optional, Sequence, TypeVar

from tabulate import tabulate

from garage import (
    BookingStatus,
    BusinessLogicService,
    DataStore,
    FormValidator,
    FuelType,
    GarageError,
    MOTClient,
    MOTStatus,
    ReminderType,
    ServiceBooking,
    ServiceReminder,
    ServiceStatus,
    ServiceType,
    Vehicle,
)
from garage.backup import (
    load_backup_file,
    open_store,
    restore_backup,
    save_backup,
    save_store,
)
from garage.calculations import parse_iso_datetime
from garage.config import CONTACT_INFO, MOTSettings, configure_logging, data_file
from garage.mot_client import normalize_registration

T = TypeVar("T")

DEFAULT_BOOKING_TIME = "09:00"
ID_WIDTH = 8

# =============================================================================
# Formatting helpers
# =============================================================================

SERVICE_STATUS_LABELS = {
    ServiceStatus.OVERDUE: "OVERDUE",
    ServiceStatus.DUE_SOON: "DUE SOON",
    ServiceStatus.UP_TO_DATE: "OK",
    ServiceStatus.UNKNOWN: "UNKNOWN",
}

MOT_STATUS_LABELS = {
    MOTStatus.EXPIRED: "EXPIRED",
    MOTStatus.DUE_SOON: "DUE SOON",
    MOTStatus.VALID: "VALID",
    MOTStatus.UNKNOWN: "UNKNOWN",
}


def format_miles(miles: Optional[float]) -> str:
    """Format mileage for display."""
    return f"{miles:,.0f}" if miles is not None else "-"


def format_cost(cost: Optional[float]) -> str:
    """Format cost for display."""
    return f"£{cost:,.2f}" if cost is not None else "-"


def format_date(value: Optional[datetime]) -> str:
    return value.strftime("%d %b %Y") if value is not None else "-"


def format_datetime(value: Optional[datetime]) -> str:
    return value.strftime("%d %b %Y %H:%M") if value is not None else "-"


def format_time_remaining(days: Optional[int]) -> str:
    """Format remaining days for display (e.g., '3mo 15d' or '-2mo 5d')."""
    if days is None:
        return "-"
    sign = "-" if days < 0 else ""
    days = abs(days)
    months = days // 30
    remaining_days = days % 30
    if months > 0:
        return f"{sign}{months}mo {remaining_days}d"
    return f"{sign}{days}d"


def truncate(text: Optional[str], max_len: int = 30) -> str:
    """Truncate text with ellipsis if too long."""
    if not text:
        return "-"
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def short_id(entity_id: str) -> str:
    return entity_id[:ID_WIDTH]


def print_error(error: GarageError) -> None:
    print(f"Error: {error.message}")
    if error.recovery_suggestion:
        print(f"  {error.recovery_suggestion}")


# =============================================================================
# Argument parsing helpers
# =============================================================================


def parse_datetime_arg(text: str) -> datetime:
    try:
        return parse_iso_datetime(text)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"invalid date '{text}' (expected YYYY-MM-DD)"
        ) from None


def parse_time_arg(text: str) -> time:
    try:
        return time.fromisoformat(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid time '{text}' (expected HH:MM)") from None


def parse_fuel_arg(text: str) -> FuelType:
    return FuelType.from_label(text)


def parse_booking_status_arg(text: str) -> BookingStatus:
    wanted = text.strip().lower().replace("-", " ").replace("_", " ")
    for status in BookingStatus:
        if status.value.lower() == wanted:
            return status
    choices = ", ".join(s.value.lower().replace(" ", "-") for s in BookingStatus)
    raise argparse.ArgumentTypeError(f"invalid status '{text}' (choose from {choices})")


def parse_reminder_type_arg(text: str) -> ReminderType:
    wanted = text.strip().lower().replace("-", " ").replace("_", " ")
    for reminder_type in ReminderType:
        value = reminder_type.value.lower()
        if wanted in (value, value.replace(" check", "")):
            return reminder_type
    choices = ", ".join(t.value.lower().replace(" ", "-") for t in ReminderType)
    raise argparse.ArgumentTypeError(f"invalid type '{text}' (choose from {choices})")


# =============================================================================
# Lookup helpers
# =============================================================================


def find_by_id(items: Sequence[T], ref: str) -> Optional[T]:
    """Match an exact id or a unique id prefix."""
    ref = ref.strip().lower()
    if not ref:
        return None
    matches = [item for item in items if item.id.lower().startswith(ref)]
    for item in matches:
        if item.id.lower() == ref:
            return item
    return matches[0] if len(matches) == 1 else None


def find_vehicle(store: DataStore, ref: str) -> Optional[Vehicle]:
    vehicle = store.find_vehicle_by_registration(ref)
    if vehicle is None:
        vehicle = find_by_id(store.list_vehicles(), ref)
    return vehicle


def find_service_type(store: DataStore, ref: str) -> Optional[ServiceType]:
    service_type = store.find_service_type(ref)
    if service_type is None:
        service_type = find_by_id(store.list_service_types(), ref)
    return service_type


def find_vehicle_by_plate(store: DataStore, registration: str) -> Optional[Vehicle]:
    """Match a registration ignoring spaces, as the MOT API reports it."""
    wanted = normalize_registration(registration)
    for vehicle in store.list_vehicles():
        if normalize_registration(vehicle.registration) == wanted:
            return vehicle
    return None


def vehicle_not_found(ref: str) -> int:
    print(f"Error: Unknown vehicle '{ref}'")
    return 1


# =============================================================================
# Vehicle commands
# =============================================================================


def make_vehicle_table(vehicles: List[Vehicle]) -> List[List[str]]:
    """Convert vehicles to table rows."""
    return [
        [
            short_id(v.id),
            v.registration,
            v.display_name,
            v.color,
            v.fuel_type.value,
            format_miles(v.mileage),
            format_date(v.next_service_due),
            format_date(v.mot_due),
        ]
        for v in vehicles
    ]


VEHICLE_HEADERS = [
    "ID",
    "Registration",
    "Vehicle",
    "Colour",
    "Fuel",
    "Mileage",
    "Service Due",
    "MOT Due",
]


def cmd_vehicles(args):
    """List vehicles, most recently updated first."""
    vehicles = args.store.list_vehicles()
    if not vehicles:
        print("No vehicles registered.")
        return 0
    print(tabulate(make_vehicle_table(vehicles), headers=VEHICLE_HEADERS, tablefmt="simple"))
    return 0


def cmd_search(args):
    """Search vehicles by make, model or registration."""
    vehicles = args.store.search_vehicles(args.query)
    if not vehicles:
        print(f"No vehicles match '{args.query}'.")
        return 0
    print(tabulate(make_vehicle_table(vehicles), headers=VEHICLE_HEADERS, tablefmt="simple"))
    return 0


def get_mot_client(args) -> Optional[MOTClient]:
    """The injected client, or one built from the environment if configured."""
    if args.mot_client is not None:
        return args.mot_client
    settings = MOTSettings.from_env()
    if not settings.is_configured:
        return None
    return MOTClient.from_settings(settings)


def mot_not_configured() -> int:
    print("Error: MOT API credentials are not configured")
    print("  Set MOT_CLIENT_ID, MOT_CLIENT_SECRET and MOT_API_KEY")
    return 1


def cmd_add_vehicle(args):
    """Register a vehicle."""
    fields = {}
    if args.from_mot:
        client = get_mot_client(args)
        if client is None:
            return mot_not_configured()
        result = client.check_mot_status(args.registration)
        if result.is_failure:
            print_error(result.error)
            if result.error.offers_manual_entry:
                print("  Enter the vehicle details manually instead.")
            return 1
        fields = result.value.to_vehicle_fields(args.clock().year)

    # Command-line values take precedence over MOT data
    for name in ("make", "model", "year", "color", "fuel_type", "mot_due"):
        value = getattr(args, name)
        if value is not None:
            fields[name] = value
    if args.mileage is not None:
        fields["mileage"] = args.mileage
    registration = args.registration

    validator = FormValidator(clock=args.clock)
    validator.validate_registration(registration, "registration")
    validator.validate_required(fields.get("make"), "make", "Make")
    validator.validate_required(fields.get("model"), "model", "Model")
    validator.validate_required(fields.get("color"), "color", "Colour")
    if fields.get("year") is None:
        validator.add_error("year", "Year is required")
    else:
        validator.validate_year(fields["year"], "year")
    validator.validate_mileage(fields.get("mileage"), "mileage")

    if not validator.is_valid:
        print("Error: Please correct the following:")
        for field, message in validator.errors.items():
            print(f"  {field}: {message}")
        return 1

    result = args.service.create_vehicle(
        make=fields["make"],
        model=fields["model"],
        year=fields["year"],
        registration=registration,
        mileage=int(fields["mileage"]),
        fuel_type=fields.get("fuel_type") or FuelType.PETROL,
        color=fields["color"],
        last_service_date=args.last_service,
        next_service_due=args.next_service,
        mot_due=fields.get("mot_due"),
    )
    if result.is_failure:
        print_error(result.error)
        return 1

    vehicle = result.value
    print(f"Added {vehicle.display_name} ({vehicle.registration})")
    print(f"  ID: {vehicle.id}")
    return 0


def cmd_update_vehicle(args):
    """Change a vehicle's details."""
    vehicle = find_vehicle(args.store, args.vehicle)
    if vehicle is None:
        return vehicle_not_found(args.vehicle)

    if args.mileage is not None:
        validator = FormValidator(clock=args.clock)
        if not validator.validate_mileage(args.mileage, "mileage"):
            print(f"Error: {validator.get_error('mileage')}")
            return 1

    result = args.service.update_vehicle(
        vehicle.id,
        make=args.make,
        model=args.model,
        year=args.year,
        registration=args.new_registration,
        mileage=int(args.mileage) if args.mileage is not None else None,
        fuel_type=args.fuel_type,
        color=args.color,
        last_service_date=args.last_service,
        next_service_due=args.next_service,
        mot_due=args.mot_due,
    )
    if result.is_failure:
        print_error(result.error)
        return 1
    print(f"Updated {result.value.display_name} ({result.value.registration})")
    return 0


def cmd_delete_vehicle(args):
    """Delete a vehicle with its bookings and reminders."""
    vehicle = find_vehicle(args.store, args.vehicle)
    if vehicle is None:
        return vehicle_not_found(args.vehicle)
    result = args.service.delete_vehicle(vehicle.id)
    if result.is_failure:
        print_error(result.error)
        return 1
    print(f"Deleted {vehicle.display_name} ({vehicle.registration})")
    return 0


# =============================================================================
# Status commands
# =============================================================================


def make_status_table(service: BusinessLogicService, vehicles: List[Vehicle]):
    """Vehicle status rows, most urgent first."""
    summaries = [service.summarize(v) for v in vehicles]
    summaries.sort(
        key=lambda s: (
            min(s.service_status.value, s.mot_status.value),
            s.vehicle.registration,
        )
    )
    rows = []
    for summary in summaries:
        next_booking = summary.next_booking
        rows.append(
            [
                summary.vehicle.registration,
                summary.vehicle.display_name,
                SERVICE_STATUS_LABELS[summary.service_status],
                format_time_remaining(summary.days_to_service),
                MOT_STATUS_LABELS[summary.mot_status],
                format_time_remaining(summary.days_to_mot),
                format_datetime(next_booking.scheduled_date) if next_booking else "-",
                len(summary.open_reminders),
            ]
        )
    return rows


def print_suggestions(suggestions: List[ServiceReminder]) -> None:
    for reminder in suggestions:
        flag = " (urgent)" if reminder.is_urgent else ""
        print(f"  {reminder.title}{flag} - due {format_date(reminder.due_date)}")
        print(f"    {reminder.description}")


def cmd_status(args):
    """Show service and MOT status."""
    if args.vehicle:
        vehicle = find_vehicle(args.store, args.vehicle)
        if vehicle is None:
            return vehicle_not_found(args.vehicle)
        vehicles = [vehicle]
    else:
        vehicles = args.store.list_vehicles()

    if not vehicles:
        print("No vehicles registered.")
        return 0

    headers = [
        "Registration",
        "Vehicle",
        "Service",
        "Remaining",
        "MOT",
        "Remaining",
        "Next Booking",
        "Reminders",
    ]
    print(tabulate(make_status_table(args.service, vehicles), headers=headers, tablefmt="simple"))

    if args.vehicle:
        suggestions = list(args.service.generate_smart_reminders(vehicles[0]))
        if suggestions:
            print()
            print("Suggested reminders:")
            print_suggestions(suggestions)
    return 0


def cmd_suggest(args):
    """Suggest reminders for a vehicle, optionally saving them."""
    vehicle = find_vehicle(args.store, args.vehicle)
    if vehicle is None:
        return vehicle_not_found(args.vehicle)

    suggestions = list(args.service.generate_smart_reminders(vehicle))
    if not suggestions:
        print(f"No suggestions for {vehicle.registration}.")
        return 0

    print(f"Suggestions for {vehicle.display_name} ({vehicle.registration}):")
    print_suggestions(suggestions)

    if not args.save:
        return 0

    for reminder in suggestions:
        result = args.service.create_reminder(
            vehicle_id=vehicle.id,
            title=reminder.title,
            description=reminder.description,
            due_date=reminder.due_date,
            type=reminder.type,
            is_urgent=reminder.is_urgent,
        )
        if result.is_failure:
            print_error(result.error)
            return 1
    args.modifies = True
    print()
    print(f"Saved {len(suggestions)} reminders.")
    return 0


# =============================================================================
# Booking commands
# =============================================================================


def cmd_service_types(args):
    """List workshop services and prices."""
    rows = [
        [
            short_id(s.id),
            s.name,
            f"{s.estimated_duration} min",
            f"{format_cost(s.min_price)} - {format_cost(s.max_price)}",
            "yes" if s.is_specialty else "",
        ]
        for s in args.store.list_service_types()
    ]
    headers = ["ID", "Service", "Duration", "Price", "Specialty"]
    print(tabulate(rows, headers=headers, tablefmt="simple"))
    return 0


def make_booking_table(store: DataStore, bookings: List[ServiceBooking]):
    rows = []
    for booking in bookings:
        vehicle = store.get_vehicle(booking.vehicle_id)
        service_type = store.get_service_type(booking.service_type_id)
        rows.append(
            [
                short_id(booking.id),
                format_datetime(booking.scheduled_date),
                vehicle.registration if vehicle else "-",
                service_type.name if service_type else "-",
                booking.status.value,
                format_cost(booking.estimated_cost),
                format_cost(booking.actual_cost),
                truncate(booking.notes),
            ]
        )
    return rows


def cmd_book(args):
    """Book a service."""
    vehicle = find_vehicle(args.store, args.vehicle)
    if vehicle is None:
        return vehicle_not_found(args.vehicle)
    service_type = find_service_type(args.store, args.service_type)
    if service_type is None:
        print(f"Error: Unknown service '{args.service_type}'")
        print("\nAvailable services:")
        for s in args.store.list_service_types():
            print(f"  {s.name}")
        return 1

    scheduled = datetime.combine(args.date.date(), args.time)
    result = args.service.create_booking(
        vehicle.id, service_type.id, scheduled, notes=args.notes or ""
    )
    if result.is_failure:
        print_error(result.error)
        return 1

    booking = result.value
    print(f"Booked {service_type.name} for {vehicle.registration}")
    print(f"  When:      {format_datetime(booking.scheduled_date)}")
    print(f"  Estimate:  {format_cost(booking.estimated_cost)}")
    print(f"  ID:        {booking.id}")
    return 0


def cmd_bookings(args):
    """List bookings, earliest first."""
    store = args.store
    bookings = store.active_bookings() if args.active else store.list_bookings()
    if args.vehicle:
        vehicle = find_vehicle(store, args.vehicle)
        if vehicle is None:
            return vehicle_not_found(args.vehicle)
        bookings = [b for b in bookings if b.vehicle_id == vehicle.id]

    if not bookings:
        print("No bookings found.")
        return 0

    headers = ["ID", "When", "Registration", "Service", "Status", "Estimate", "Actual", "Notes"]
    print(tabulate(make_booking_table(store, bookings), headers=headers, tablefmt="simple"))
    return 0


def cmd_booking_status(args):
    """Move a booking to a new status."""
    booking = find_by_id(args.store.list_bookings(), args.booking)
    if booking is None:
        print(f"Error: Unknown booking '{args.booking}'")
        return 1

    old_status = booking.status
    result = args.service.update_booking_status(
        booking.id, args.status, actual_cost=args.cost
    )
    if result.is_failure:
        print_error(result.error)
        return 1
    print(f"Booking {short_id(booking.id)}: {old_status.value} -> {args.status.value}")
    return 0


# =============================================================================
# Reminder commands
# =============================================================================


def cmd_reminders(args):
    """List reminders by due date."""
    store = args.store
    if args.days is not None:
        reminders = store.upcoming_reminders(args.days)
    else:
        reminders = store.list_reminders(include_completed=args.all)
    if args.vehicle:
        vehicle = find_vehicle(store, args.vehicle)
        if vehicle is None:
            return vehicle_not_found(args.vehicle)
        reminders = [r for r in reminders if r.vehicle_id == vehicle.id]

    if not reminders:
        print("No reminders found.")
        return 0

    rows = []
    for reminder in reminders:
        vehicle = store.get_vehicle(reminder.vehicle_id)
        rows.append(
            [
                short_id(reminder.id),
                format_date(reminder.due_date),
                vehicle.registration if vehicle else "-",
                reminder.type.value,
                truncate(reminder.title, 40),
                "!" if reminder.is_urgent else "",
                "done" if reminder.is_completed else "",
            ]
        )
    headers = ["ID", "Due", "Registration", "Type", "Title", "Urgent", "Status"]
    print(tabulate(rows, headers=headers, tablefmt="simple"))
    return 0


def cmd_remind(args):
    """Add a reminder."""
    vehicle = find_vehicle(args.store, args.vehicle)
    if vehicle is None:
        return vehicle_not_found(args.vehicle)

    result = args.service.create_reminder(
        vehicle_id=vehicle.id,
        title=args.title,
        description=args.description or args.title,
        due_date=args.due,
        type=args.type,
        is_urgent=args.urgent,
    )
    if result.is_failure:
        print_error(result.error)
        return 1
    print(f"Added reminder '{result.value.title}' for {vehicle.registration}")
    print(f"  ID: {result.value.id}")
    return 0


def cmd_complete_reminder(args):
    """Mark a reminder as done."""
    reminder = find_by_id(args.store.list_reminders(include_completed=True), args.reminder)
    if reminder is None:
        print(f"Error: Unknown reminder '{args.reminder}'")
        return 1
    result = args.service.complete_reminder(reminder.id)
    if result.is_failure:
        print_error(result.error)
        return 1
    print(f"Completed reminder '{reminder.title}'")
    return 0


# =============================================================================
# MOT command
# =============================================================================


def cmd_mot(args):
    """Look up a vehicle's MOT history."""
    client = get_mot_client(args)
    if client is None:
        return mot_not_configured()

    result = client.check_mot_status(args.registration)
    if result.is_failure:
        print_error(result.error)
        if result.error.offers_manual_entry:
            print("  You can still add the vehicle manually with add-vehicle.")
        return 1

    data = result.value
    print(f"Registration: {data.registration or args.registration.upper()}")
    print(f"Vehicle:      {data.manufacture_year or ''} {data.make or ''} {data.model or ''}".rstrip())
    print(f"Colour:       {data.primary_colour or '-'}")
    print(f"Fuel:         {data.fuel_type or '-'}")
    print(f"MOT status:   {MOT_STATUS_LABELS[data.mot_status]}")
    print(f"MOT expiry:   {format_date(data.mot_expiry_date)}")
    print()

    if data.mot_history:
        rows = [
            [
                format_date(test.completed_date),
                test.test_result,
                format_date(test.expiry_date),
                f"{format_miles(test.odometer_value)} {test.odometer_unit or ''}".strip(),
                len(test.defects),
            ]
            for test in data.mot_history
        ]
        headers = ["Tested", "Result", "Expiry", "Odometer", "Defects"]
        print(tabulate(rows, headers=headers, tablefmt="simple"))
    else:
        print("No MOT tests recorded.")

    if args.apply:
        vehicle = find_vehicle_by_plate(args.store, data.registration or args.registration)
        if vehicle is None:
            print()
            print("Error: This vehicle is not registered; add it with add-vehicle first")
            return 1
        applied = args.service.apply_mot_data(vehicle.id, data)
        if applied.is_failure:
            print_error(applied.error)
            return 1
        args.modifies = True
        print()
        print(f"Updated {vehicle.registration}: MOT due {format_date(vehicle.mot_due)}")
    return 0


# =============================================================================
# Data file commands
# =============================================================================


def print_counts(counts) -> None:
    rows = [[name, count] for name, count in counts.items()]
    print(tabulate(rows, headers=["Records", "Count"], tablefmt="simple"))


def cmd_export(args):
    """Write a backup file."""
    result = save_backup(args.store, args.path, directory=args.directory)
    if result.is_failure:
        print_error(result.error)
        return 1
    print(f"Backup saved to {result.value}")
    print_counts(args.store.entity_counts())
    return 0


def cmd_import(args):
    """Restore a backup file."""
    loaded = load_backup_file(args.path)
    if loaded.is_failure:
        print_error(loaded.error)
        return 1
    result = restore_backup(args.store, loaded.value, replace_existing=args.replace)
    if result.is_failure:
        print_error(result.error)
        return 1
    print(f"Restored from {args.path}" + (" (replaced existing data)" if args.replace else ""))
    print_counts(result.value)
    return 0


def cmd_cleanup(args):
    """Remove old completed bookings and reminders."""
    bookings, reminders = args.store.cleanup_old_data(args.days)
    print(f"Removed {bookings} bookings and {reminders} reminders older than {args.days} days")
    return 0


def cmd_contact(args):
    """Show workshop contact details."""
    info = CONTACT_INFO
    rows = [
        ["Phone", info.phone],
        ["Mobile", info.mobile],
        ["Email", info.email],
        ["WhatsApp", info.whatsapp],
        ["Instagram", info.instagram],
        ["Address", info.address],
        ["Hours", info.opening_hours],
        ["Map", info.maps_link],
    ]
    print(info.name)
    print(tabulate(rows, tablefmt="plain"))
    return 0


# =============================================================================
# Main
# =============================================================================


def add_vehicle_fields(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--make", type=str, help="Manufacturer, e.g. 'Ford'")
    parser.add_argument("--model", type=str, help="Model, e.g. 'Focus'")
    parser.add_argument("--year", type=int, help="Model year")
    parser.add_argument("--mileage", type=str, help="Current mileage")
    parser.add_argument(
        "--fuel",
        dest="fuel_type",
        type=parse_fuel_arg,
        help="Petrol, diesel, electric, hybrid or plugin-hybrid",
    )
    parser.add_argument("--color", "--colour", dest="color", type=str, help="Colour")
    parser.add_argument(
        "--last-service", type=parse_datetime_arg, help="Last service date (YYYY-MM-DD)"
    )
    parser.add_argument(
        "--next-service", type=parse_datetime_arg, help="Next service due (YYYY-MM-DD)"
    )
    parser.add_argument(
        "--mot-due", type=parse_datetime_arg, help="MOT expiry date (YYYY-MM-DD)"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Bespoke Vehicle Maintenance - vehicles, bookings and reminders",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s add-vehicle AB12CDE --make Ford --model Focus --year 2018 \\
      --mileage 45000 --fuel petrol --colour Blue
  %(prog)s add-vehicle AB12CDE --from-mot --mileage 45000
  %(prog)s status
  %(prog)s book AB12CDE "Brake Service" --date 2026-11-02 --time 10:30
  %(prog)s booking-status 1a2b3c4d completed --cost 120
  %(prog)s reminders --days 30
  %(prog)s mot AB12CDE --apply
  %(prog)s export backups/latest.json
""",
    )
    parser.add_argument(
        "--data-file",
        type=Path,
        default=Path(data_file()),
        help="Garage data file (default: $GARAGE_DATA_FILE or garage.json)",
    )
    parser.add_argument("--log-level", type=str, help="Logging level (default: $LOG_LEVEL)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Vehicles
    subparsers.add_parser("vehicles", help="List vehicles")

    add_parser = subparsers.add_parser("add-vehicle", help="Register a vehicle")
    add_parser.add_argument("registration", type=str, help="Registration number")
    add_vehicle_fields(add_parser)
    add_parser.add_argument(
        "--from-mot",
        action="store_true",
        help="Fill in missing details from the MOT History API",
    )
    add_parser.set_defaults(modifies=True)

    update_parser = subparsers.add_parser("update-vehicle", help="Change a vehicle's details")
    update_parser.add_argument("vehicle", type=str, help="Registration or id")
    update_parser.add_argument(
        "--registration", dest="new_registration", type=str, help="New registration"
    )
    add_vehicle_fields(update_parser)
    update_parser.set_defaults(modifies=True)

    delete_parser = subparsers.add_parser("delete-vehicle", help="Delete a vehicle")
    delete_parser.add_argument("vehicle", type=str, help="Registration or id")
    delete_parser.set_defaults(modifies=True)

    status_parser = subparsers.add_parser("status", help="Show service and MOT status")
    status_parser.add_argument("vehicle", nargs="?", help="Registration or id")

    suggest_parser = subparsers.add_parser("suggest", help="Suggest reminders for a vehicle")
    suggest_parser.add_argument("vehicle", type=str, help="Registration or id")
    suggest_parser.add_argument("--save", action="store_true", help="Save the suggestions")

    search_parser = subparsers.add_parser("search", help="Search vehicles")
    search_parser.add_argument("query", type=str, help="Text to find in make, model or registration")

    # Bookings
    subparsers.add_parser("service-types", help="List workshop services")

    book_parser = subparsers.add_parser("book", help="Book a service")
    book_parser.add_argument("vehicle", type=str, help="Registration or id")
    book_parser.add_argument("service_type", type=str, help="Service name or id")
    book_parser.add_argument(
        "--date", type=parse_datetime_arg, required=True, help="Date (YYYY-MM-DD)"
    )
    book_parser.add_argument(
        "--time",
        type=parse_time_arg,
        default=parse_time_arg(DEFAULT_BOOKING_TIME),
        help=f"Time (HH:MM, default: {DEFAULT_BOOKING_TIME})",
    )
    book_parser.add_argument("--notes", type=str, help="Notes for the workshop")
    book_parser.set_defaults(modifies=True)

    bookings_parser = subparsers.add_parser("bookings", help="List bookings")
    bookings_parser.add_argument("--active", action="store_true", help="Only open bookings")
    bookings_parser.add_argument("--vehicle", type=str, help="Registration or id")

    booking_status_parser = subparsers.add_parser(
        "booking-status", help="Move a booking to a new status"
    )
    booking_status_parser.add_argument("booking", type=str, help="Booking id or prefix")
    booking_status_parser.add_argument(
        "status",
        type=parse_booking_status_arg,
        help="confirmed, in-progress, completed or cancelled",
    )
    booking_status_parser.add_argument("--cost", type=float, help="Actual cost (to complete)")
    booking_status_parser.set_defaults(modifies=True)

    # Reminders
    reminders_parser = subparsers.add_parser("reminders", help="List reminders")
    reminders_parser.add_argument("--all", action="store_true", help="Include completed")
    reminders_parser.add_argument("--days", type=int, help="Only those due within N days")
    reminders_parser.add_argument("--vehicle", type=str, help="Registration or id")

    remind_parser = subparsers.add_parser("remind", help="Add a reminder")
    remind_parser.add_argument("vehicle", type=str, help="Registration or id")
    remind_parser.add_argument("title", type=str, help="Reminder title")
    remind_parser.add_argument(
        "--due", type=parse_datetime_arg, required=True, help="Due date (YYYY-MM-DD)"
    )
    remind_parser.add_argument(
        "--type",
        type=parse_reminder_type_arg,
        default=ReminderType.SERVICE,
        help="service, mot, insurance, road-tax, tyres, brake or battery",
    )
    remind_parser.add_argument("--description", type=str, help="Details")
    remind_parser.add_argument("--urgent", action="store_true", help="Mark as urgent")
    remind_parser.set_defaults(modifies=True)

    complete_parser = subparsers.add_parser("complete-reminder", help="Mark a reminder as done")
    complete_parser.add_argument("reminder", type=str, help="Reminder id or prefix")
    complete_parser.set_defaults(modifies=True)

    # MOT
    mot_parser = subparsers.add_parser("mot", help="Look up MOT history")
    mot_parser.add_argument("registration", type=str, help="Registration number")
    mot_parser.add_argument(
        "--apply", action="store_true", help="Record the MOT expiry on the stored vehicle"
    )

    # Data file
    export_parser = subparsers.add_parser("export", help="Write a backup file")
    export_parser.add_argument("path", nargs="?", type=Path, help="Output file")
    export_parser.add_argument(
        "--directory", type=Path, default=Path("."), help="Directory for a dated file name"
    )

    import_parser = subparsers.add_parser("import", help="Restore a backup file")
    import_parser.add_argument("path", type=Path, help="Backup file")
    import_parser.add_argument(
        "--replace", action="store_true", help="Replace existing data instead of merging"
    )
    import_parser.set_defaults(modifies=True)

    cleanup_parser = subparsers.add_parser(
        "cleanup", help="Remove old completed bookings and reminders"
    )
    cleanup_parser.add_argument(
        "--days", type=int, default=365, help="Age threshold in days (default: 365)"
    )
    cleanup_parser.set_defaults(modifies=True)

    subparsers.add_parser("contact", help="Show workshop contact details")

    return parser


COMMANDS = {
    "vehicles": cmd_vehicles,
    "add-vehicle": cmd_add_vehicle,
    "update-vehicle": cmd_update_vehicle,
    "delete-vehicle": cmd_delete_vehicle,
    "status": cmd_status,
    "suggest": cmd_suggest,
    "search": cmd_search,
    "service-types": cmd_service_types,
    "book": cmd_book,
    "bookings": cmd_bookings,
    "booking-status": cmd_booking_status,
    "reminders": cmd_reminders,
    "remind": cmd_remind,
    "complete-reminder": cmd_complete_reminder,
    "mot": cmd_mot,
    "export": cmd_export,
    "import": cmd_import,
    "cleanup": cmd_cleanup,
    "contact": cmd_contact,
}


def main(
    argv: Optional[Sequence[str]] = None,
    clock: Callable[[], datetime] = datetime.now,
    mot_client: Optional[MOTClient] = None,
) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    opened = open_store(args.data_file, clock=clock)
    if opened.is_failure:
        print(f"Error reading {args.data_file}")
        print_error(opened.error)
        return 1

    args.store = opened.value
    args.service = BusinessLogicService(args.store, clock=clock)
    args.clock = clock
    args.mot_client = mot_client
    if not hasattr(args, "modifies"):
        args.modifies = False

    status = COMMANDS[args.command](args)

    if status == 0 and args.modifies:
        saved = save_store(args.store, args.data_file)
        if saved.is_failure:
            print_error(saved.error)
            return 1
    return status


if __name__ == "__main__":
    sys.exit(main() or 0)
