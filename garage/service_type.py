"""ServiceType class for workshop reference data."""

import uuid
from datetime import datetime
from typing import Optional, Tuple


class ServiceType:
    """A service the workshop offers, with its price band."""

    def __init__(
        self,
        name: str,
        description: str,
        estimated_duration: int,
        min_price: int,
        max_price: int,
        is_specialty: bool = False,
        icon: str = "",
        id: Optional[str] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ):
        if min_price > max_price:
            raise ValueError(
                f"min_price ({min_price}) must not exceed max_price ({max_price})"
            )
        self.id = id or str(uuid.uuid4())
        self.name = name
        self.description = description
        self.estimated_duration = estimated_duration
        self.min_price = min_price
        self.max_price = max_price
        self.is_specialty = is_specialty
        self.icon = icon
        self.created_at = created_at or datetime.now()
        self.updated_at = updated_at or self.created_at

    @property
    def price_range(self) -> Tuple[int, int]:
        return (self.min_price, self.max_price)

    def __repr__(self) -> str:
        return f"ServiceType({self.name!r}, {self.min_price}-{self.max_price})"
