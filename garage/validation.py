"""Field-level form validation with per-field error state."""

import re
from datetime import date, datetime
from typing import Callable, Dict, Optional, Union

from .calculations import MAX_MILEAGE, MIN_YEAR, is_valid_mileage, is_valid_year

EMAIL_PATTERN = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,64}")
INTEGER_PATTERN = re.compile(r"[+-]?\d+")

MIN_REGISTRATION_LENGTH = 2
MAX_REGISTRATION_LENGTH = 10


class FormValidator:
    """
    Collects validation errors for a form, keyed by field name.

    Each field holds at most one error; validating a field again replaces or
    clears its previous error. ``clock`` supplies the current date for year
    and future-date checks.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._clock = clock
        self._errors: Dict[str, str] = {}

    # -------------------------------------------------------------------------
    # Error state
    # -------------------------------------------------------------------------

    @property
    def errors(self) -> Dict[str, str]:
        return dict(self._errors)

    @property
    def is_valid(self) -> bool:
        return not self._errors

    def add_error(self, field: str, message: str) -> None:
        self._errors[field] = message

    def remove_error(self, field: str) -> None:
        self._errors.pop(field, None)

    def clear_errors(self) -> None:
        self._errors.clear()

    def has_error(self, field: str) -> bool:
        return field in self._errors

    def get_error(self, field: str) -> Optional[str]:
        return self._errors.get(field)

    # -------------------------------------------------------------------------
    # Common validations
    # -------------------------------------------------------------------------

    def _reject_non_text(self, value, field: str, label: str) -> bool:
        """JSON bodies can carry numbers or lists where text is expected."""
        if value is None or isinstance(value, str):
            return False
        self.add_error(field, f"{label} must be text")
        return True

    def validate_required(self, value: Optional[str], field: str, label: str) -> bool:
        if self._reject_non_text(value, field, label):
            return False
        if not (value or "").strip():
            self.add_error(field, f"{label} is required")
            return False
        self.remove_error(field)
        return True

    def validate_email(self, value: Optional[str], field: str) -> bool:
        if self._reject_non_text(value, field, "Email"):
            return False
        email = (value or "").strip()
        if not email:
            self.add_error(field, "Email is required")
            return False
        if not EMAIL_PATTERN.fullmatch(email):
            self.add_error(field, "Please enter a valid email address")
            return False
        self.remove_error(field)
        return True

    def validate_year(self, year: int, field: str) -> bool:
        today = self._clock()
        if not is_valid_year(year, today):
            self.add_error(
                field, f"Year must be between {MIN_YEAR} and {today.year + 1}"
            )
            return False
        self.remove_error(field)
        return True

    def validate_mileage(self, value: Union[str, int, None], field: str) -> bool:
        """Mileage arrives as text from the form; it must be a whole number."""
        text = str(value).strip() if value is not None else ""
        if not INTEGER_PATTERN.fullmatch(text) or not is_valid_mileage(int(text)):
            self.add_error(field, f"Mileage must be between 0 and {MAX_MILEAGE:,}")
            return False
        self.remove_error(field)
        return True

    def validate_registration(self, value: Optional[str], field: str) -> bool:
        if self._reject_non_text(value, field, "Registration"):
            return False
        registration = (value or "").strip()
        if not registration:
            self.add_error(field, "Registration is required")
            return False
        if not (
            MIN_REGISTRATION_LENGTH <= len(registration) <= MAX_REGISTRATION_LENGTH
        ):
            self.add_error(
                field,
                f"Registration must be {MIN_REGISTRATION_LENGTH}-"
                f"{MAX_REGISTRATION_LENGTH} characters",
            )
            return False
        self.remove_error(field)
        return True

    def validate_future_date(
        self, value: Union[date, datetime], field: str, label: str
    ) -> bool:
        now = self._clock()
        if isinstance(value, datetime):
            in_past = value < now
        else:
            in_past = value < now.date()
        if in_past:
            self.add_error(field, f"{label} cannot be in the past")
            return False
        self.remove_error(field)
        return True
