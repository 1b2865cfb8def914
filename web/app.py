"""Flask JSON API for the garage: vehicles, bookings, reminders and MOT lookups."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from flask import Blueprint, Flask, current_app, jsonify, request

# Add parent directory to path for garage imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from garage import (
    BookingStatus,
    BusinessLogicService,
    DataStore,
    FormValidator,
    FuelType,
    GarageError,
    MOTClient,
    MOTError,
    MOTSettings,
    MOTStatus,
    ReminderType,
    ServiceStatus,
)
from garage.backup import (
    booking_to_record,
    create_backup,
    open_store,
    reminder_to_record,
    save_store,
    service_type_to_record,
    vehicle_to_record,
)
from garage.calculations import parse_iso_datetime
from garage.config import CONTACT_INFO, configure_logging, data_file, secret_key
from garage.errors import BackupErrorKind, BusinessError, BusinessErrorKind, MOTErrorKind

logger = logging.getLogger(__name__)

api = Blueprint("api", __name__, url_prefix="/api")

# =============================================================================
# Presentation helpers
# =============================================================================


def service_status_color(status: ServiceStatus) -> str:
    """Badge colour for a service status."""
    colors = {
        ServiceStatus.OVERDUE: "red",
        ServiceStatus.DUE_SOON: "orange",
        ServiceStatus.UP_TO_DATE: "green",
        ServiceStatus.UNKNOWN: "gray",
    }
    return colors.get(status, "gray")


def mot_status_color(status: MOTStatus) -> str:
    """Badge colour for an MOT status."""
    colors = {
        MOTStatus.EXPIRED: "red",
        MOTStatus.DUE_SOON: "orange",
        MOTStatus.VALID: "green",
        MOTStatus.UNKNOWN: "gray",
    }
    return colors.get(status, "gray")


def booking_status_color(status: BookingStatus) -> str:
    colors = {
        BookingStatus.SCHEDULED: "blue",
        BookingStatus.CONFIRMED: "green",
        BookingStatus.IN_PROGRESS: "orange",
        BookingStatus.COMPLETED: "gray",
        BookingStatus.CANCELLED: "red",
    }
    return colors.get(status, "gray")


def status_label(status) -> str:
    """'DUE_SOON' -> 'Due Soon'."""
    return status.name.replace("_", " ").title()


HTTP_STATUS = {
    BusinessErrorKind.INVALID_INPUT: 400,
    BusinessErrorKind.DUPLICATE_DATA: 409,
    BusinessErrorKind.BUSINESS_RULE_VIOLATION: 409,
    BusinessErrorKind.DATA_NOT_FOUND: 404,
    BusinessErrorKind.SYSTEM_ERROR: 500,
    MOTErrorKind.INVALID_REGISTRATION: 400,
    MOTErrorKind.VEHICLE_NOT_FOUND: 404,
    MOTErrorKind.NO_DATA_AVAILABLE: 404,
    MOTErrorKind.NETWORK_ERROR: 502,
    MOTErrorKind.INVALID_RESPONSE: 502,
    MOTErrorKind.RATE_LIMIT_EXCEEDED: 429,
    MOTErrorKind.SERVER_ERROR: 503,
    MOTErrorKind.AUTHENTICATION_ERROR: 502,
    BackupErrorKind.EXPORT_FAILED: 500,
    BackupErrorKind.IMPORT_FAILED: 400,
    BackupErrorKind.INVALID_BACKUP: 400,
    BackupErrorKind.RESTORE_FAILED: 500,
    BackupErrorKind.PERMISSION_DENIED: 500,
}


def error_body(error: GarageError) -> Dict[str, Any]:
    body = {
        "error": error.kind.value,
        "message": error.message,
        "suggestion": error.recovery_suggestion,
    }
    if isinstance(error, MOTError):
        body["manualEntry"] = error.offers_manual_entry
        body["retryable"] = error.is_retryable
    return body


# =============================================================================
# Request helpers
# =============================================================================


def get_store() -> DataStore:
    return current_app.config["STORE"]


def get_service() -> BusinessLogicService:
    return current_app.config["SERVICE"]


def persist() -> None:
    """Write the store back to the data file, if the app has one."""
    path = current_app.config.get("DATA_FILE")
    if path:
        save_store(get_store(), path).unwrap()


def request_json() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BusinessError.invalid_input("Request body must be a JSON object")
    return data


def parse_date_field(data: Dict[str, Any], key: str) -> Optional[datetime]:
    value = data.get(key)
    if value in (None, ""):
        return None
    if not isinstance(value, str):
        raise BusinessError.invalid_input(f"Invalid date for {key}: {value}")
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise BusinessError.invalid_input(f"Invalid date for {key}: {value}") from None


def text_field(data: Dict[str, Any], key: str, default: Optional[str] = "") -> Optional[str]:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, str):
        raise BusinessError.invalid_input(f"{key} must be text")
    return value


def vehicle_json(vehicle) -> Dict[str, Any]:
    summary = get_service().summarize(vehicle)
    record = vehicle_to_record(vehicle)
    record.update(
        {
            "displayName": vehicle.display_name,
            "serviceStatus": status_label(summary.service_status),
            "serviceStatusColor": service_status_color(summary.service_status),
            "daysToService": summary.days_to_service,
            "motStatus": status_label(summary.mot_status),
            "motStatusColor": mot_status_color(summary.mot_status),
            "daysToMot": summary.days_to_mot,
        }
    )
    return record


def booking_json(booking) -> Dict[str, Any]:
    record = booking_to_record(booking)
    service_type = get_store().get_service_type(booking.service_type_id)
    record["serviceName"] = service_type.name if service_type else None
    record["statusColor"] = booking_status_color(booking.status)
    return record


def mot_json(data) -> Dict[str, Any]:
    def iso(value):
        return value.isoformat() if value else None

    return {
        "registration": data.registration,
        "make": data.make,
        "model": data.model,
        "primaryColour": data.primary_colour,
        "manufactureYear": data.manufacture_year,
        "engineSize": data.engine_size,
        "fuelType": data.fuel_type,
        "motStatus": status_label(data.mot_status),
        "motStatusColor": mot_status_color(data.mot_status),
        "motExpiryDate": iso(data.mot_expiry_date),
        "motTests": [
            {
                "completedDate": iso(test.completed_date),
                "testResult": test.test_result,
                "expiryDate": iso(test.expiry_date),
                "odometerValue": test.odometer_value,
                "odometerUnit": test.odometer_unit,
                "motTestNumber": test.mot_test_number,
                "defects": [
                    {"text": d.text, "type": d.type, "dangerous": d.dangerous}
                    for d in test.defects
                ],
            }
            for test in data.mot_history
        ],
    }


def require_mot_client() -> MOTClient:
    client = current_app.config.get("MOT_CLIENT")
    if client is None:
        raise MOTError.authentication_error("MOT API credentials are not configured")
    return client


# =============================================================================
# Dashboard
# =============================================================================


@api.route("/dashboard")
def dashboard():
    """Counts, vehicles needing attention, open bookings and upcoming reminders."""
    store = get_store()
    service = get_service()
    due = [
        vehicle_json(v)
        for v in store.list_vehicles()
        if service.summarize(v).is_due
    ]
    return jsonify(
        {
            "counts": store.entity_counts(),
            "dueVehicles": due,
            "activeBookings": [booking_json(b) for b in store.active_bookings()],
            "upcomingReminders": [
                reminder_to_record(r) for r in store.upcoming_reminders()
            ],
        }
    )


# =============================================================================
# Vehicles
# =============================================================================


@api.route("/vehicles", methods=["GET"])
def list_vehicles():
    return jsonify([vehicle_json(v) for v in get_store().list_vehicles()])


@api.route("/vehicles/search")
def search_vehicles():
    query = request.args.get("q", "")
    return jsonify([vehicle_json(v) for v in get_store().search_vehicles(query)])


@api.route("/vehicles", methods=["POST"])
def create_vehicle():
    """Validate the vehicle form and register the vehicle."""
    data = request_json()

    validator = FormValidator(clock=current_app.config["CLOCK"])
    validator.validate_required(data.get("make"), "make", "Make")
    validator.validate_required(data.get("model"), "model", "Model")
    validator.validate_required(data.get("color"), "color", "Colour")
    validator.validate_registration(data.get("registration"), "registration")
    validator.validate_mileage(data.get("mileage"), "mileage")
    try:
        year = int(data.get("year"))
    except (TypeError, ValueError):
        validator.add_error("year", "Year is required")
    else:
        validator.validate_year(year, "year")

    if not validator.is_valid:
        body = error_body(BusinessError.invalid_input("Please correct the highlighted fields"))
        body["fields"] = validator.errors
        return jsonify(body), 400

    vehicle = get_service().create_vehicle(
        make=data["make"],
        model=data["model"],
        year=year,
        registration=data["registration"],
        mileage=int(str(data["mileage"]).strip()),
        fuel_type=FuelType.from_label(text_field(data, "fuelType", None)),
        color=data["color"],
        last_service_date=parse_date_field(data, "lastServiceDate"),
        next_service_due=parse_date_field(data, "nextServiceDue"),
        mot_due=parse_date_field(data, "motDue"),
    ).unwrap()
    persist()
    return jsonify(vehicle_json(vehicle)), 201


@api.route("/vehicles/<vehicle_id>", methods=["GET"])
def get_vehicle(vehicle_id: str):
    vehicle = get_service().get_vehicle(vehicle_id).unwrap()
    return jsonify(vehicle_json(vehicle))


@api.route("/vehicles/<vehicle_id>", methods=["PATCH"])
def update_vehicle(vehicle_id: str):
    data = request_json()
    changes = {
        "make": text_field(data, "make", None),
        "model": text_field(data, "model", None),
        "registration": text_field(data, "registration", None),
        "color": text_field(data, "color", None),
        "last_service_date": parse_date_field(data, "lastServiceDate"),
        "next_service_due": parse_date_field(data, "nextServiceDue"),
        "mot_due": parse_date_field(data, "motDue"),
    }
    try:
        if data.get("year") is not None:
            changes["year"] = int(data["year"])
        if data.get("mileage") is not None:
            changes["mileage"] = int(data["mileage"])
    except (TypeError, ValueError):
        raise BusinessError.invalid_input("Year and mileage must be whole numbers") from None
    fuel_label = text_field(data, "fuelType", None)
    if fuel_label:
        changes["fuel_type"] = FuelType.from_label(fuel_label)

    vehicle = get_service().update_vehicle(vehicle_id, **changes).unwrap()
    persist()
    return jsonify(vehicle_json(vehicle))


@api.route("/vehicles/<vehicle_id>", methods=["DELETE"])
def delete_vehicle(vehicle_id: str):
    get_service().delete_vehicle(vehicle_id).unwrap()
    persist()
    return "", 204


@api.route("/vehicles/<vehicle_id>/suggestions")
def vehicle_suggestions(vehicle_id: str):
    service = get_service()
    vehicle = service.get_vehicle(vehicle_id).unwrap()
    return jsonify(
        [reminder_to_record(r) for r in service.generate_smart_reminders(vehicle)]
    )


@api.route("/vehicles/<vehicle_id>/mot", methods=["POST"])
def refresh_vehicle_mot(vehicle_id: str):
    """Look up the vehicle's MOT and record the results on it."""
    service = get_service()
    vehicle = service.get_vehicle(vehicle_id).unwrap()
    data = require_mot_client().check_mot_status(vehicle.registration).unwrap()
    vehicle = service.apply_mot_data(vehicle.id, data).unwrap()
    persist()
    return jsonify({"vehicle": vehicle_json(vehicle), "mot": mot_json(data)})


# =============================================================================
# MOT lookup
# =============================================================================


@api.route("/mot/<registration>")
def mot_lookup(registration: str):
    data = require_mot_client().check_mot_status(registration).unwrap()
    body = mot_json(data)
    body["vehicleFields"] = {
        key: value.value if isinstance(value, FuelType) else value
        for key, value in data.to_vehicle_fields(current_app.config["CLOCK"]().year).items()
        if key != "mot_due"
    }
    return jsonify(body)


# =============================================================================
# Service types and bookings
# =============================================================================


@api.route("/service-types")
def list_service_types():
    return jsonify([service_type_to_record(s) for s in get_store().list_service_types()])


@api.route("/bookings", methods=["GET"])
def list_bookings():
    store = get_store()
    if request.args.get("active", "").lower() in ("1", "true", "yes"):
        bookings = store.active_bookings()
    else:
        bookings = store.list_bookings()
    vehicle_id = request.args.get("vehicleId")
    if vehicle_id:
        bookings = [b for b in bookings if b.vehicle_id == vehicle_id]
    return jsonify([booking_json(b) for b in bookings])


@api.route("/bookings", methods=["POST"])
def create_booking():
    data = request_json()
    scheduled = parse_date_field(data, "scheduledDate")
    if scheduled is None:
        raise BusinessError.invalid_input("scheduledDate is required")
    booking = get_service().create_booking(
        vehicle_id=text_field(data, "vehicleId"),
        service_type_id=text_field(data, "serviceTypeId"),
        scheduled_date=scheduled,
        notes=text_field(data, "notes"),
    ).unwrap()
    persist()
    return jsonify(booking_json(booking)), 201


@api.route("/bookings/<booking_id>/status", methods=["POST"])
def update_booking_status(booking_id: str):
    data = request_json()
    try:
        status = BookingStatus(data.get("status"))
    except ValueError:
        raise BusinessError.invalid_input(f"Unknown status: {data.get('status')}") from None
    actual_cost = data.get("actualCost")
    if actual_cost is not None:
        try:
            actual_cost = float(actual_cost)
        except (TypeError, ValueError):
            raise BusinessError.invalid_input("actualCost must be a number") from None

    booking = get_service().update_booking_status(
        booking_id,
        status,
        actual_cost=actual_cost,
        completed_date=parse_date_field(data, "completedDate"),
    ).unwrap()
    persist()
    return jsonify(booking_json(booking))


@api.route("/bookings/<booking_id>", methods=["DELETE"])
def delete_booking(booking_id: str):
    get_service().delete_booking(booking_id).unwrap()
    persist()
    return "", 204


# =============================================================================
# Reminders
# =============================================================================


@api.route("/reminders", methods=["GET"])
def list_reminders():
    store = get_store()
    days = request.args.get("days", type=int)
    if days is not None:
        reminders = store.upcoming_reminders(days)
    else:
        include_completed = request.args.get("all", "").lower() in ("1", "true", "yes")
        reminders = store.list_reminders(include_completed=include_completed)
    return jsonify([reminder_to_record(r) for r in reminders])


@api.route("/reminders", methods=["POST"])
def create_reminder():
    data = request_json()
    due = parse_date_field(data, "dueDate")
    if due is None:
        raise BusinessError.invalid_input("dueDate is required")
    try:
        reminder_type = ReminderType(data.get("type", ReminderType.SERVICE.value))
    except ValueError:
        raise BusinessError.invalid_input(f"Unknown reminder type: {data.get('type')}") from None

    reminder = get_service().create_reminder(
        vehicle_id=text_field(data, "vehicleId"),
        title=text_field(data, "title"),
        description=text_field(data, "description"),
        due_date=due,
        type=reminder_type,
        is_urgent=bool(data.get("isUrgent", False)),
    ).unwrap()
    persist()
    return jsonify(reminder_to_record(reminder)), 201


@api.route("/reminders/<reminder_id>/complete", methods=["POST"])
def complete_reminder(reminder_id: str):
    reminder = get_service().complete_reminder(reminder_id).unwrap()
    persist()
    return jsonify(reminder_to_record(reminder))


@api.route("/reminders/<reminder_id>", methods=["DELETE"])
def delete_reminder(reminder_id: str):
    get_service().delete_reminder(reminder_id).unwrap()
    persist()
    return "", 204


# =============================================================================
# Backup and contact
# =============================================================================


@api.route("/backup")
def download_backup():
    store = get_store()
    backup = create_backup(store).unwrap()
    response = jsonify(backup)
    filename = f"BVM_Backup_{store.clock():%d-%m-%Y}.json"
    response.headers["Content-Disposition"] = f"attachment; filename={filename}"
    return response


@api.route("/contact")
def contact():
    info = CONTACT_INFO
    return jsonify(
        {
            "name": info.name,
            "phone": info.phone,
            "phoneLink": info.phone_link,
            "mobile": info.mobile,
            "email": info.email,
            "emailLink": info.email_link,
            "whatsapp": info.whatsapp,
            "instagram": info.instagram,
            "address": info.address,
            "openingHours": info.opening_hours,
            "latitude": info.latitude,
            "longitude": info.longitude,
            "mapsLink": info.maps_link,
        }
    )


@api.errorhandler(GarageError)
def handle_garage_error(error: GarageError):
    status = HTTP_STATUS.get(error.kind, 500)
    if status >= 500:
        logger.error("%s: %s", type(error).__name__, error.message)
    return jsonify(error_body(error)), status


# =============================================================================
# Application factory
# =============================================================================


def create_app(
    store: Optional[DataStore] = None,
    mot_client: Optional[MOTClient] = None,
    data_file_path: Optional[str] = None,
    clock: Callable[[], datetime] = datetime.now,
) -> Flask:
    """
    Build the app around a store.

    Without a store, the data file (GARAGE_DATA_FILE by default) is opened
    and every change is written back to it. Without an MOT client, one is
    built from the MOT_* environment variables when they are set.
    """
    if store is None:
        data_file_path = data_file_path or data_file()
        store = open_store(data_file_path, clock=clock).unwrap()

    if mot_client is None:
        settings = MOTSettings.from_env()
        if settings.is_configured:
            mot_client = MOTClient.from_settings(settings, clock=clock)

    app = Flask(__name__)
    app.secret_key = secret_key()
    app.config.update(
        STORE=store,
        SERVICE=BusinessLogicService(store, clock=clock),
        MOT_CLIENT=mot_client,
        DATA_FILE=data_file_path,
        CLOCK=clock,
    )
    app.register_blueprint(api)
    return app


if __name__ == "__main__":
    # Run with debug mode for development
    # Using 5001 to avoid conflict with macOS AirPlay Receiver on 5000
    configure_logging()
    create_app().run(debug=True, host="0.0.0.0", port=5001)
