"""Vehicle class - the main aggregate owned by the customer."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional


class FuelType(Enum):
    """Fuel / drivetrain type. Values are the stored and exported labels."""

    PETROL = "Petrol"
    DIESEL = "Diesel"
    ELECTRIC = "Electric"
    HYBRID = "Hybrid"
    PLUGIN_HYBRID = "Plugin Hybrid"

    @classmethod
    def from_label(
        cls, label: Optional[str], default: Optional["FuelType"] = None
    ) -> "FuelType":
        """
        Map a free-text fuel label (as returned by the MOT API or typed on the
        command line) to a FuelType.

        Matching is case-insensitive and ignores '-', '_' and spaces, so
        "plugin-hybrid", "PLUGIN_HYBRID" and "Plugin Hybrid" all match.
        """
        default = default or cls.PETROL
        if not label:
            return default
        wanted = label.strip().lower().replace("-", " ").replace("_", " ")
        for fuel in cls:
            if fuel.value.lower() == wanted or fuel.name.lower().replace("_", " ") == wanted:
                return fuel
        if wanted in ("hybrid electric", "electric hybrid"):
            return cls.HYBRID
        if wanted in ("plug in hybrid", "phev"):
            return cls.PLUGIN_HYBRID
        return default


class Vehicle:
    """A registered customer vehicle."""

    def __init__(
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
        id: Optional[str] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ):
        self.id = id or str(uuid.uuid4())
        self.make = make
        self.model = model
        self.year = year
        self.registration = registration
        self.mileage = mileage
        self.fuel_type = fuel_type
        self.color = color
        self.last_service_date = last_service_date
        self.next_service_due = next_service_due
        self.mot_due = mot_due
        self.created_at = created_at or datetime.now()
        self.updated_at = updated_at or self.created_at

    @property
    def display_name(self) -> str:
        """Human-readable vehicle name."""
        return f"{self.year} {self.make} {self.model}"

    @property
    def is_electric(self) -> bool:
        return self.fuel_type == FuelType.ELECTRIC

    def age(self, current_year: int) -> int:
        """Age in whole model years."""
        return current_year - self.year

    def __repr__(self) -> str:
        return f"Vehicle({self.registration!r}, {self.display_name!r})"
