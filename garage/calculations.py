"""Helper functions for date-based status and cost calculations."""

from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Optional, Union

from dateutil.parser import isoparse
from dateutil.relativedelta import relativedelta

from .status import MOTStatus, ServiceStatus

if TYPE_CHECKING:
    from .service_type import ServiceType
    from .vehicle import Vehicle

DateLike = Union[date, datetime]

# Fixed policy thresholds
HIGH_MILEAGE = 60000
VERY_HIGH_MILEAGE = 100000
OLD_VEHICLE_YEARS = 5
VERY_OLD_VEHICLE_YEARS = 10

SERVICE_DUE_SOON_DAYS = 30
MOT_DUE_SOON_DAYS = 30
MOT_LOOKUP_DUE_SOON_DAYS = 14
SERVICE_INTERVAL_MONTHS = 12

MIN_YEAR = 1900
MAX_MILEAGE = 999999


def as_date(value: DateLike) -> date:
    """Drop the time component, if any."""
    if isinstance(value, datetime):
        return value.date()
    return value


def parse_iso_datetime(text: str) -> datetime:
    """
    Parse an ISO-8601 date or datetime.

    Stored times are naive; a time with an offset (or 'Z') is converted to
    naive UTC. Raises ValueError for text that is not ISO-8601.
    """
    parsed = isoparse(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def days_until(target: DateLike, today: DateLike) -> int:
    """Whole calendar days from today to target (negative when past)."""
    return (as_date(target) - as_date(today)).days


def max_model_year(today: DateLike) -> int:
    """Latest acceptable model year: next year's models are already on sale."""
    return as_date(today).year + 1


def is_valid_year(year: int, today: DateLike) -> bool:
    return MIN_YEAR <= year <= max_model_year(today)


def is_valid_mileage(mileage: int) -> bool:
    return 0 <= mileage <= MAX_MILEAGE


def service_status(
    next_service_due: Optional[DateLike], today: DateLike
) -> ServiceStatus:
    """Classify a next-service date relative to today."""
    if next_service_due is None:
        return ServiceStatus.UNKNOWN
    days = days_until(next_service_due, today)
    if days < 0:
        return ServiceStatus.OVERDUE
    if days <= SERVICE_DUE_SOON_DAYS:
        return ServiceStatus.DUE_SOON
    return ServiceStatus.UP_TO_DATE


def mot_status(
    mot_expiry: Optional[DateLike],
    today: DateLike,
    due_soon_days: int = MOT_DUE_SOON_DAYS,
) -> MOTStatus:
    """
    Classify an MOT expiry date relative to today.

    Vehicle records use a 30 day window; MOT History lookups use 14 days.
    """
    if mot_expiry is None:
        return MOTStatus.UNKNOWN
    days = days_until(mot_expiry, today)
    if days < 0:
        return MOTStatus.EXPIRED
    if days <= due_soon_days:
        return MOTStatus.DUE_SOON
    return MOTStatus.VALID


def calc_next_service_due(
    last_service: datetime, interval_months: int = SERVICE_INTERVAL_MONTHS
) -> datetime:
    """Next service date: last service + interval months."""
    return last_service + relativedelta(months=interval_months)


def estimate_cost(
    service_type: "ServiceType", vehicle: "Vehicle", current_year: int
) -> float:
    """
    Estimate the cost of a service for a vehicle.

    - Starts at the service's minimum price
    - Older vehicles: x1.20 over 10 years, else x1.10 over 5 years
    - Higher mileage: x1.15 over 100,000, else x1.05 over 60,000
    - Electric vehicle on a specialty service: x1.10
    - Capped at the service's maximum price, rounded to pennies
    """
    cost = float(service_type.min_price)

    age = vehicle.age(current_year)
    if age > VERY_OLD_VEHICLE_YEARS:
        cost *= 1.20
    elif age > OLD_VEHICLE_YEARS:
        cost *= 1.10

    if vehicle.mileage > VERY_HIGH_MILEAGE:
        cost *= 1.15
    elif vehicle.mileage > HIGH_MILEAGE:
        cost *= 1.05

    if vehicle.is_electric and service_type.is_specialty:
        cost *= 1.10

    return round(min(cost, float(service_type.max_price)), 2)
