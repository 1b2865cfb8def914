"""
Typed failures and the Result wrapper returned by fallible operations.

Three taxonomies share one base class:
- BusinessError: validation and business-rule failures
- MOTError: MOT History API lookup failures
- BackupError: export/import/restore failures

Each error carries a ``kind`` enum, an optional ``detail`` string, a
human-readable ``message`` and a ``recovery_suggestion``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Generic, Optional, TypeVar

T = TypeVar("T")


class GarageError(Exception):
    """Base class for typed failures."""

    MESSAGES: Dict[Enum, str] = {}
    SUGGESTIONS: Dict[Enum, str] = {}

    def __init__(self, kind: Enum, detail: Optional[str] = None):
        self.kind = kind
        self.detail = detail
        super().__init__(self.message)

    @property
    def message(self) -> str:
        template = self.MESSAGES.get(self.kind, "{detail}")
        return template.format(detail=self.detail or "")

    @property
    def recovery_suggestion(self) -> Optional[str]:
        return self.SUGGESTIONS.get(self.kind)

    def __eq__(self, other) -> bool:
        if not isinstance(other, GarageError):
            return NotImplemented
        return (
            type(self) is type(other)
            and self.kind == other.kind
            and self.detail == other.detail
        )

    def __hash__(self) -> int:
        return hash((type(self), self.kind, self.detail))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.kind.value!r}, {self.detail!r})"


# =============================================================================
# Business errors
# =============================================================================


class BusinessErrorKind(Enum):
    INVALID_INPUT = "invalid-input"
    DUPLICATE_DATA = "duplicate-data"
    BUSINESS_RULE_VIOLATION = "business-rule-violation"
    DATA_NOT_FOUND = "data-not-found"
    SYSTEM_ERROR = "system-error"


class BusinessError(GarageError):
    """Failure raised by the business rule layer."""

    MESSAGES = {
        BusinessErrorKind.INVALID_INPUT: "Invalid Input: {detail}",
        BusinessErrorKind.DUPLICATE_DATA: "Duplicate Data: {detail}",
        BusinessErrorKind.BUSINESS_RULE_VIOLATION: "Business Rule Violation: {detail}",
        BusinessErrorKind.DATA_NOT_FOUND: "Data Not Found: {detail}",
        BusinessErrorKind.SYSTEM_ERROR: "System Error: {detail}",
    }
    SUGGESTIONS = {
        BusinessErrorKind.INVALID_INPUT: "Please check your input and try again.",
        BusinessErrorKind.DUPLICATE_DATA: "Please use different values to avoid duplicates.",
        BusinessErrorKind.BUSINESS_RULE_VIOLATION: (
            "Please resolve the business constraint before proceeding."
        ),
        BusinessErrorKind.DATA_NOT_FOUND: "Please ensure the data exists before accessing it.",
        BusinessErrorKind.SYSTEM_ERROR: "Please try again later or contact support.",
    }

    @classmethod
    def invalid_input(cls, detail: str) -> "BusinessError":
        return cls(BusinessErrorKind.INVALID_INPUT, detail)

    @classmethod
    def duplicate_data(cls, detail: str) -> "BusinessError":
        return cls(BusinessErrorKind.DUPLICATE_DATA, detail)

    @classmethod
    def rule_violation(cls, detail: str) -> "BusinessError":
        return cls(BusinessErrorKind.BUSINESS_RULE_VIOLATION, detail)

    @classmethod
    def not_found(cls, detail: str) -> "BusinessError":
        return cls(BusinessErrorKind.DATA_NOT_FOUND, detail)

    @classmethod
    def system_error(cls, detail: str) -> "BusinessError":
        return cls(BusinessErrorKind.SYSTEM_ERROR, detail)


# =============================================================================
# MOT errors
# =============================================================================


class MOTErrorKind(Enum):
    INVALID_REGISTRATION = "invalid-registration"
    VEHICLE_NOT_FOUND = "vehicle-not-found"
    NO_DATA_AVAILABLE = "no-data-available"
    NETWORK_ERROR = "network-error"
    INVALID_RESPONSE = "invalid-response"
    RATE_LIMIT_EXCEEDED = "rate-limit-exceeded"
    SERVER_ERROR = "server-error"
    AUTHENTICATION_ERROR = "authentication-error"


class MOTError(GarageError):
    """Failure from an MOT History lookup."""

    MESSAGES = {
        MOTErrorKind.INVALID_REGISTRATION: "Invalid vehicle registration number",
        MOTErrorKind.VEHICLE_NOT_FOUND: "Vehicle not found in DVLA records",
        MOTErrorKind.NO_DATA_AVAILABLE: "No MOT data available for this vehicle",
        MOTErrorKind.NETWORK_ERROR: "Network error: {detail}",
        MOTErrorKind.INVALID_RESPONSE: "Invalid response from DVLA service",
        MOTErrorKind.RATE_LIMIT_EXCEEDED: "Rate limit exceeded. Please try again later",
        MOTErrorKind.SERVER_ERROR: "DVLA service temporarily unavailable",
        MOTErrorKind.AUTHENTICATION_ERROR: "Authentication failed: {detail}",
    }
    SUGGESTIONS = {
        MOTErrorKind.INVALID_REGISTRATION: "Please check the registration number and try again",
        MOTErrorKind.VEHICLE_NOT_FOUND: (
            "Ensure the registration is correct and the vehicle is registered in the UK"
        ),
        MOTErrorKind.NO_DATA_AVAILABLE: (
            "This vehicle may not require MOT testing or data may not be available"
        ),
        MOTErrorKind.NETWORK_ERROR: "Check your internet connection and try again",
        MOTErrorKind.INVALID_RESPONSE: "Please try again later",
        MOTErrorKind.RATE_LIMIT_EXCEEDED: "Wait a few minutes before checking again",
        MOTErrorKind.SERVER_ERROR: (
            "The DVLA service is temporarily unavailable. Please try again later"
        ),
        MOTErrorKind.AUTHENTICATION_ERROR: "Please check your API credentials and try again",
    }

    @property
    def offers_manual_entry(self) -> bool:
        """True when the caller should fall back to entering details by hand."""
        return self.kind in (
            MOTErrorKind.VEHICLE_NOT_FOUND,
            MOTErrorKind.AUTHENTICATION_ERROR,
        )

    @property
    def is_retryable(self) -> bool:
        """True when a plain retry may succeed."""
        return self.kind in (
            MOTErrorKind.NETWORK_ERROR,
            MOTErrorKind.SERVER_ERROR,
            MOTErrorKind.RATE_LIMIT_EXCEEDED,
        )

    @classmethod
    def invalid_registration(cls) -> "MOTError":
        return cls(MOTErrorKind.INVALID_REGISTRATION)

    @classmethod
    def vehicle_not_found(cls) -> "MOTError":
        return cls(MOTErrorKind.VEHICLE_NOT_FOUND)

    @classmethod
    def no_data_available(cls) -> "MOTError":
        return cls(MOTErrorKind.NO_DATA_AVAILABLE)

    @classmethod
    def network_error(cls, detail: str) -> "MOTError":
        return cls(MOTErrorKind.NETWORK_ERROR, detail)

    @classmethod
    def invalid_response(cls) -> "MOTError":
        return cls(MOTErrorKind.INVALID_RESPONSE)

    @classmethod
    def rate_limit_exceeded(cls) -> "MOTError":
        return cls(MOTErrorKind.RATE_LIMIT_EXCEEDED)

    @classmethod
    def server_error(cls) -> "MOTError":
        return cls(MOTErrorKind.SERVER_ERROR)

    @classmethod
    def authentication_error(cls, detail: str) -> "MOTError":
        return cls(MOTErrorKind.AUTHENTICATION_ERROR, detail)


# =============================================================================
# Backup errors
# =============================================================================


class BackupErrorKind(Enum):
    EXPORT_FAILED = "export-failed"
    IMPORT_FAILED = "import-failed"
    INVALID_BACKUP = "invalid-backup"
    RESTORE_FAILED = "restore-failed"
    PERMISSION_DENIED = "permission-denied"


class BackupError(GarageError):
    """Failure while exporting, validating or restoring a backup."""

    MESSAGES = {
        BackupErrorKind.EXPORT_FAILED: "Export Failed: {detail}",
        BackupErrorKind.IMPORT_FAILED: "Import Failed: {detail}",
        BackupErrorKind.INVALID_BACKUP: "Invalid Backup: {detail}",
        BackupErrorKind.RESTORE_FAILED: "Restore Failed: {detail}",
        BackupErrorKind.PERMISSION_DENIED: "Permission Denied: Cannot access files",
    }
    SUGGESTIONS = {
        BackupErrorKind.EXPORT_FAILED: (
            "Please ensure you have sufficient storage space and try again."
        ),
        BackupErrorKind.IMPORT_FAILED: (
            "Please ensure you have sufficient storage space and try again."
        ),
        BackupErrorKind.INVALID_BACKUP: "Please ensure you're using a valid BVM Deal backup file.",
        BackupErrorKind.RESTORE_FAILED: (
            "Please try again or contact support if the problem persists."
        ),
        BackupErrorKind.PERMISSION_DENIED: "Please check the file permissions and try again.",
    }

    @classmethod
    def export_failed(cls, detail: str) -> "BackupError":
        return cls(BackupErrorKind.EXPORT_FAILED, detail)

    @classmethod
    def import_failed(cls, detail: str) -> "BackupError":
        return cls(BackupErrorKind.IMPORT_FAILED, detail)

    @classmethod
    def invalid_backup(cls, detail: str) -> "BackupError":
        return cls(BackupErrorKind.INVALID_BACKUP, detail)

    @classmethod
    def restore_failed(cls, detail: str) -> "BackupError":
        return cls(BackupErrorKind.RESTORE_FAILED, detail)

    @classmethod
    def permission_denied(cls) -> "BackupError":
        return cls(BackupErrorKind.PERMISSION_DENIED)


# =============================================================================
# Result
# =============================================================================


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a fallible operation: either a value or a typed error."""

    value: Optional[T] = None
    error: Optional[GarageError] = None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: GarageError) -> "Result[T]":
        return cls(error=error)

    @property
    def is_success(self) -> bool:
        return self.error is None

    @property
    def is_failure(self) -> bool:
        return self.error is not None

    def unwrap(self) -> T:
        """Return the value, or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value
