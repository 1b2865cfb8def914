"""
Backup export, validation and restore.

A backup is a JSON document:

    {
      "version": "1.0",
      "createdAt": "...",
      "vehicles": [...],
      "serviceTypes": [...],
      "bookings": [...],
      "reminders": [...]
    }

Keys are camelCase, dates are ISO-8601 and records refer to each other by
id. The same format is used as the on-disk data file for the CLI and web app
(see open_store / save_store).
"""

import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import yaml
from jsonschema import ValidationError, validate

from .booking import BookingStatus, ServiceBooking
from .calculations import parse_iso_datetime
from .errors import BackupError, Result
from .reminder import ReminderType, ServiceReminder
from .service_type import ServiceType
from .store import DataStore
from .vehicle import FuelType, Vehicle

logger = logging.getLogger(__name__)

BACKUP_VERSION = "1.0"
SCHEMA_FILE = Path(__file__).parent / "backup_schema.yaml"

PathLike = Union[str, Path]


def load_schema() -> dict:
    """Load the backup JSON schema from backup_schema.yaml."""
    with open(SCHEMA_FILE) as f:
        return yaml.safe_load(f)


def backup_filename(when: datetime) -> str:
    return f"BVM_Backup_{when:%d-%m-%Y}.json"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return parse_iso_datetime(value)


# =============================================================================
# Entity <-> record mapping
# =============================================================================


def vehicle_to_record(vehicle: Vehicle) -> Dict[str, Any]:
    return {
        "id": vehicle.id,
        "make": vehicle.make,
        "model": vehicle.model,
        "year": vehicle.year,
        "registration": vehicle.registration,
        "mileage": vehicle.mileage,
        "fuelType": vehicle.fuel_type.value,
        "color": vehicle.color,
        "lastServiceDate": _iso(vehicle.last_service_date),
        "nextServiceDue": _iso(vehicle.next_service_due),
        "motDue": _iso(vehicle.mot_due),
        "createdAt": _iso(vehicle.created_at),
        "updatedAt": _iso(vehicle.updated_at),
    }


def service_type_to_record(service_type: ServiceType) -> Dict[str, Any]:
    return {
        "id": service_type.id,
        "name": service_type.name,
        "description": service_type.description,
        "estimatedDuration": service_type.estimated_duration,
        "minPrice": service_type.min_price,
        "maxPrice": service_type.max_price,
        "isSpecialty": service_type.is_specialty,
        "icon": service_type.icon,
        "createdAt": _iso(service_type.created_at),
        "updatedAt": _iso(service_type.updated_at),
    }


def booking_to_record(booking: ServiceBooking) -> Dict[str, Any]:
    return {
        "id": booking.id,
        "vehicleId": booking.vehicle_id,
        "serviceTypeId": booking.service_type_id,
        "scheduledDate": _iso(booking.scheduled_date),
        "status": booking.status.value,
        "estimatedCost": booking.estimated_cost,
        "actualCost": booking.actual_cost,
        "notes": booking.notes,
        "completedDate": _iso(booking.completed_date),
        "createdAt": _iso(booking.created_at),
        "updatedAt": _iso(booking.updated_at),
    }


def reminder_to_record(reminder: ServiceReminder) -> Dict[str, Any]:
    return {
        "id": reminder.id,
        "vehicleId": reminder.vehicle_id,
        "title": reminder.title,
        "description": reminder.description,
        "dueDate": _iso(reminder.due_date),
        "type": reminder.type.value,
        "isCompleted": reminder.is_completed,
        "isUrgent": reminder.is_urgent,
        "createdAt": _iso(reminder.created_at),
        "updatedAt": _iso(reminder.updated_at),
    }


def vehicle_from_record(record: Dict[str, Any]) -> Vehicle:
    return Vehicle(
        id=record["id"],
        make=record["make"],
        model=record["model"],
        year=record["year"],
        registration=record["registration"].strip().upper(),
        mileage=record["mileage"],
        fuel_type=FuelType(record["fuelType"]),
        color=record["color"],
        last_service_date=_parse_datetime(record.get("lastServiceDate")),
        next_service_due=_parse_datetime(record.get("nextServiceDue")),
        mot_due=_parse_datetime(record.get("motDue")),
        created_at=_parse_datetime(record["createdAt"]),
        updated_at=_parse_datetime(record["updatedAt"]),
    )


def service_type_from_record(record: Dict[str, Any]) -> ServiceType:
    return ServiceType(
        id=record["id"],
        name=record["name"],
        description=record["description"],
        estimated_duration=record["estimatedDuration"],
        min_price=record["minPrice"],
        max_price=record["maxPrice"],
        is_specialty=record["isSpecialty"],
        icon=record["icon"],
        created_at=_parse_datetime(record["createdAt"]),
        updated_at=_parse_datetime(record["updatedAt"]),
    )


def booking_from_record(record: Dict[str, Any]) -> ServiceBooking:
    return ServiceBooking(
        id=record["id"],
        vehicle_id=record["vehicleId"],
        service_type_id=record.get("serviceTypeId"),
        scheduled_date=_parse_datetime(record["scheduledDate"]),
        status=BookingStatus(record["status"]),
        estimated_cost=record["estimatedCost"],
        actual_cost=record.get("actualCost"),
        notes=record["notes"],
        completed_date=_parse_datetime(record.get("completedDate")),
        created_at=_parse_datetime(record["createdAt"]),
        updated_at=_parse_datetime(record["updatedAt"]),
    )


def reminder_from_record(record: Dict[str, Any]) -> ServiceReminder:
    return ServiceReminder(
        id=record["id"],
        vehicle_id=record["vehicleId"],
        title=record["title"],
        description=record["description"],
        due_date=_parse_datetime(record["dueDate"]),
        type=ReminderType(record["type"]),
        is_completed=record["isCompleted"],
        is_urgent=record["isUrgent"],
        created_at=_parse_datetime(record["createdAt"]),
        updated_at=_parse_datetime(record["updatedAt"]),
    )


# =============================================================================
# Export
# =============================================================================


def create_backup(
    store: DataStore, clock: Optional[Callable[[], datetime]] = None
) -> Result[Dict[str, Any]]:
    """Snapshot every entity in the store."""
    now = (clock or store.clock)()
    try:
        with store.lock:
            backup = {
                "version": BACKUP_VERSION,
                "createdAt": now.isoformat(),
                "vehicles": [vehicle_to_record(v) for v in store.list_vehicles()],
                "serviceTypes": [
                    service_type_to_record(s) for s in store.list_service_types()
                ],
                "bookings": [booking_to_record(b) for b in store.list_bookings()],
                "reminders": [
                    reminder_to_record(r)
                    for r in store.list_reminders(include_completed=True)
                ],
            }
    except (AttributeError, TypeError, ValueError) as e:
        return Result.failure(
            BackupError.export_failed(f"Failed to create backup: {e}")
        )
    return Result.success(backup)


def export_backup_json(store: DataStore) -> Result[str]:
    result = create_backup(store)
    if result.is_failure:
        return result
    try:
        text = json.dumps(result.value, indent=2)
    except (TypeError, ValueError) as e:
        return Result.failure(
            BackupError.export_failed(f"Failed to encode backup: {e}")
        )
    return Result.success(text)


def _write_file(path: Path, text: str) -> Result[Path]:
    """Write via a temporary file in the same directory, then rename."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w") as f:
                f.write(text)
            os.replace(tmp_name, path)
        except OSError:
            os.unlink(tmp_name)
            raise
    except PermissionError:
        return Result.failure(BackupError.permission_denied())
    except OSError as e:
        return Result.failure(
            BackupError.export_failed(f"Failed to save backup file: {e}")
        )
    return Result.success(path)


def save_backup(
    store: DataStore,
    path: Optional[PathLike] = None,
    directory: PathLike = ".",
) -> Result[Path]:
    """
    Write a backup file.

    Without an explicit path the file is named after today's date, e.g.
    BVM_Backup_16-10-2026.json, inside ``directory``.
    """
    result = export_backup_json(store)
    if result.is_failure:
        return result
    target = Path(path) if path else Path(directory) / backup_filename(store.clock())
    saved = _write_file(target, result.value)
    if saved.is_success:
        logger.info("Saved backup to %s", target)
    return saved


# =============================================================================
# Import
# =============================================================================


def validate_backup(
    data: Union[str, bytes, Dict[str, Any]], allow_empty: bool = False
) -> Result[Dict[str, Any]]:
    """
    Check a backup document before restoring it.

    ``data`` may be JSON text or an already-decoded document. The version
    must be "1.0" and the document must match backup_schema.yaml. A backup
    with no vehicles, bookings or reminders is rejected unless
    ``allow_empty`` is set.
    """
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except ValueError as e:
            return Result.failure(
                BackupError.invalid_backup(f"Failed to parse backup file: {e}")
            )

    if not isinstance(data, dict):
        return Result.failure(
            BackupError.invalid_backup("Backup must be a JSON object")
        )

    version = data.get("version")
    if version != BACKUP_VERSION:
        return Result.failure(
            BackupError.invalid_backup(f"Unsupported backup version: {version}")
        )

    try:
        validate(instance=data, schema=load_schema())
    except ValidationError as e:
        detail = e.message
        if e.path:
            detail += f" (at {'.'.join(str(p) for p in e.path)})"
        return Result.failure(BackupError.invalid_backup(detail))

    if not allow_empty and not (
        data["vehicles"] or data["bookings"] or data["reminders"]
    ):
        return Result.failure(BackupError.invalid_backup("Backup appears to be empty"))

    return Result.success(data)


def restore_backup(
    store: DataStore, backup: Dict[str, Any], replace_existing: bool = False
) -> Result[Dict[str, int]]:
    """
    Load a validated backup into the store.

    With ``replace_existing`` the store is cleared first. Otherwise records
    are merged: ids already present are skipped, a service type whose name
    already exists is matched to the existing one, and a vehicle whose
    registration is already taken is skipped. Bookings and reminders for
    vehicles that are not in the store are skipped; bookings whose service
    type is unknown keep no service type.

    Returns the number of records added per entity.
    """
    try:
        vehicles = [vehicle_from_record(r) for r in backup["vehicles"]]
        service_types = [service_type_from_record(r) for r in backup["serviceTypes"]]
        bookings = [booking_from_record(r) for r in backup["bookings"]]
        reminders = [reminder_from_record(r) for r in backup["reminders"]]
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        return Result.failure(BackupError.restore_failed(f"Malformed record: {e}"))

    counts = {"vehicles": 0, "serviceTypes": 0, "bookings": 0, "reminders": 0}
    skipped = 0

    with store.lock:
        if replace_existing:
            store.clear()

        service_type_ids: Dict[str, str] = {}
        for service_type in service_types:
            existing = store.get_service_type(service_type.id) or store.find_service_type(
                service_type.name
            )
            if existing is not None:
                service_type_ids[service_type.id] = existing.id
                continue
            store.add_service_type(service_type)
            service_type_ids[service_type.id] = service_type.id
            counts["serviceTypes"] += 1

        for vehicle in vehicles:
            if store.get_vehicle(vehicle.id) is not None or (
                store.find_vehicle_by_registration(vehicle.registration) is not None
            ):
                skipped += 1
                continue
            store.add_vehicle(vehicle)
            counts["vehicles"] += 1

        for booking in bookings:
            if store.get_booking(booking.id) is not None or (
                store.get_vehicle(booking.vehicle_id) is None
            ):
                skipped += 1
                continue
            booking.service_type_id = service_type_ids.get(booking.service_type_id)
            store.add_booking(booking)
            counts["bookings"] += 1

        for reminder in reminders:
            if store.get_reminder(reminder.id) is not None or (
                store.get_vehicle(reminder.vehicle_id) is None
            ):
                skipped += 1
                continue
            store.add_reminder(reminder)
            counts["reminders"] += 1

    logger.info("Restored backup: %s (%d records skipped)", counts, skipped)
    return Result.success(counts)


def load_backup_file(path: PathLike, allow_empty: bool = False) -> Result[Dict[str, Any]]:
    """Read and validate a backup file."""
    try:
        with open(path) as f:
            text = f.read()
    except FileNotFoundError:
        return Result.failure(BackupError.import_failed(f"File not found: {path}"))
    except PermissionError:
        return Result.failure(BackupError.permission_denied())
    except OSError as e:
        return Result.failure(BackupError.import_failed(str(e)))
    return validate_backup(text, allow_empty=allow_empty)


# =============================================================================
# Data file
# =============================================================================


def open_store(
    path: PathLike, clock: Callable[[], datetime] = datetime.now
) -> Result[DataStore]:
    """
    Load a data file into a new store.

    A missing file gives an empty store. Default service types are seeded
    whenever the store has none.
    """
    store = DataStore(clock=clock)
    if Path(path).exists():
        loaded = load_backup_file(path, allow_empty=True)
        if loaded.is_failure:
            return loaded
        restored = restore_backup(store, loaded.value, replace_existing=True)
        if restored.is_failure:
            return restored
    store.seed_service_types()
    return Result.success(store)


def save_store(store: DataStore, path: PathLike) -> Result[Path]:
    result = export_backup_json(store)
    if result.is_failure:
        return result
    return _write_file(Path(path), result.value)
