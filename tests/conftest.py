"""Shared fixtures: a fixed clock, a seeded store and the business service."""

from datetime import datetime

import pytest

from garage import BusinessLogicService, DataStore, FuelType, Vehicle

NOW = datetime(2026, 10, 16, 10, 0)


def fixed_clock():
    return NOW


@pytest.fixture
def clock():
    return fixed_clock


@pytest.fixture
def store():
    """A store with the default service types loaded."""
    store = DataStore(clock=fixed_clock)
    store.seed_service_types()
    return store


@pytest.fixture
def service(store):
    return BusinessLogicService(store, clock=fixed_clock)


@pytest.fixture
def make_vehicle():
    """Build (not store) a vehicle with sensible defaults."""

    def _make(**overrides):
        fields = dict(
            make="Ford",
            model="Focus",
            year=2018,
            registration="AB12CDE",
            mileage=45000,
            fuel_type=FuelType.PETROL,
            color="Blue",
            created_at=NOW,
        )
        fields.update(overrides)
        return Vehicle(**fields)

    return _make


@pytest.fixture
def vehicle(service):
    """A stored vehicle created through the service."""
    return service.create_vehicle(
        make="Ford",
        model="Focus",
        year=2018,
        registration="AB12CDE",
        mileage=45000,
        fuel_type=FuelType.PETROL,
        color="Blue",
    ).unwrap()
