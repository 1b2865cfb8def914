"""
Vehicle maintenance core for Bespoke Vehicle Maintenance customers.

This package provides:
- Vehicle, ServiceType, ServiceBooking, ServiceReminder: the stored entities
- ServiceStatus, MOTStatus: derived urgency levels
- DataStore: in-memory store with the query contract callers rely on
- BusinessLogicService: validated vehicle, booking and reminder operations
- FormValidator: per-field form validation
- MOTClient: DVSA MOT History API lookups
- SearchSession: debounced search
- backup: JSON export, validation and restore
"""

from .status import ServiceStatus, MOTStatus
from .vehicle import FuelType, Vehicle
from .service_type import ServiceType
from .booking import BookingStatus, ServiceBooking
from .reminder import ReminderType, ServiceReminder
from .summary import VehicleSummary
from .errors import (
    BackupError,
    BusinessError,
    GarageError,
    MOTError,
    Result,
)
from .validation import FormValidator
from .store import DataStore, load_service_types
from .business_logic import BusinessLogicService
from .mot_client import MOTClient, MOTData, MOTDefect, MOTTest, parse_mot_response
from .search import SearchSession
from .config import CONTACT_INFO, MOTSettings

__all__ = [
    "ServiceStatus",
    "MOTStatus",
    "FuelType",
    "Vehicle",
    "ServiceType",
    "BookingStatus",
    "ServiceBooking",
    "ReminderType",
    "ServiceReminder",
    "VehicleSummary",
    "BackupError",
    "BusinessError",
    "GarageError",
    "MOTError",
    "Result",
    "FormValidator",
    "DataStore",
    "load_service_types",
    "BusinessLogicService",
    "MOTClient",
    "MOTData",
    "MOTDefect",
    "MOTTest",
    "parse_mot_response",
    "SearchSession",
    "CONTACT_INFO",
    "MOTSettings",
]
