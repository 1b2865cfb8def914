#!/usr/bin/env python3
"""Tests for date-based status and cost calculations."""
from datetime import date, datetime, timedelta

import pytest

from garage import FuelType, MOTStatus, ServiceStatus, ServiceType
from garage.calculations import (
    calc_next_service_due,
    days_until,
    estimate_cost,
    is_valid_mileage,
    is_valid_year,
    mot_status,
    parse_iso_datetime,
    service_status,
)

TODAY = datetime(2026, 10, 16, 10, 0)


class TestParseIsoDatetime:
    """Tests for parse_iso_datetime."""

    def test_date_only(self):
        assert parse_iso_datetime("2026-11-20") == datetime(2026, 11, 20)

    def test_naive_kept(self):
        assert parse_iso_datetime("2026-11-20T10:30:00") == datetime(2026, 11, 20, 10, 30)

    def test_utc_and_offsets_made_naive(self):
        assert parse_iso_datetime("2026-11-20T10:00:00Z") == datetime(2026, 11, 20, 10, 0)
        assert parse_iso_datetime("2026-11-20T10:00:00-05:00") == datetime(2026, 11, 20, 15, 0)
        assert parse_iso_datetime("2026-11-20T10:00:00Z").tzinfo is None

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_iso_datetime("next tuesday")


class TestDaysUntil:
    """Tests for days_until."""

    def test_counts_calendar_days(self):
        assert days_until(datetime(2026, 10, 17, 8, 0), TODAY) == 1

    def test_past_is_negative(self):
        assert days_until(date(2026, 10, 6), TODAY) == -10

    def test_same_day_is_zero(self):
        assert days_until(datetime(2026, 10, 16, 23, 59), TODAY) == 0


class TestValidity:
    """Tests for year and mileage ranges."""

    def test_year_range(self):
        assert is_valid_year(1900, TODAY)
        assert is_valid_year(2027, TODAY)
        assert not is_valid_year(1899, TODAY)
        assert not is_valid_year(2028, TODAY)

    def test_mileage_range(self):
        assert is_valid_mileage(0)
        assert is_valid_mileage(999999)
        assert not is_valid_mileage(-1)
        assert not is_valid_mileage(1000000)


class TestServiceStatus:
    """Tests for service_status."""

    def test_unknown_without_date(self):
        assert service_status(None, TODAY) == ServiceStatus.UNKNOWN

    def test_overdue(self):
        assert service_status(TODAY - timedelta(days=10), TODAY) == ServiceStatus.OVERDUE

    def test_due_soon(self):
        assert service_status(TODAY + timedelta(days=15), TODAY) == ServiceStatus.DUE_SOON
        assert service_status(TODAY + timedelta(days=30), TODAY) == ServiceStatus.DUE_SOON

    def test_up_to_date(self):
        assert service_status(TODAY + timedelta(days=60), TODAY) == ServiceStatus.UP_TO_DATE
        assert service_status(TODAY + timedelta(days=31), TODAY) == ServiceStatus.UP_TO_DATE

    def test_due_today_is_not_overdue(self):
        assert service_status(TODAY.replace(hour=8), TODAY) == ServiceStatus.DUE_SOON


class TestMOTStatus:
    """Tests for mot_status."""

    def test_unknown_without_date(self):
        assert mot_status(None, TODAY) == MOTStatus.UNKNOWN

    def test_expired(self):
        assert mot_status(TODAY - timedelta(days=1), TODAY) == MOTStatus.EXPIRED

    def test_due_soon_window(self):
        assert mot_status(TODAY + timedelta(days=30), TODAY) == MOTStatus.DUE_SOON
        assert mot_status(TODAY + timedelta(days=31), TODAY) == MOTStatus.VALID

    def test_custom_window(self):
        expiry = TODAY + timedelta(days=20)
        assert mot_status(expiry, TODAY, due_soon_days=14) == MOTStatus.VALID


class TestCalcNextServiceDue:
    """Tests for calc_next_service_due."""

    def test_twelve_months(self):
        assert calc_next_service_due(datetime(2026, 1, 31)) == datetime(2027, 1, 31)

    def test_month_end_clamped(self):
        assert calc_next_service_due(datetime(2026, 1, 31), 1) == datetime(2026, 2, 28)


class TestEstimateCost:
    """Tests for estimate_cost multipliers."""

    def setup_method(self):
        self.servicing = ServiceType("Vehicle Servicing", "", 60, 60, 150)
        self.ev_service = ServiceType("EV Servicing", "", 120, 150, 300, is_specialty=True)

    def test_new_low_mileage_is_min_price(self, make_vehicle):
        vehicle = make_vehicle(year=2024, mileage=10000)
        assert estimate_cost(self.servicing, vehicle, 2026) == 60.0

    def test_old_high_mileage(self, make_vehicle):
        """x1.20 for age > 10, x1.15 for mileage > 100000."""
        vehicle = make_vehicle(year=2010, mileage=120000)
        assert estimate_cost(self.servicing, vehicle, 2026) == 82.8

    def test_middle_bands(self, make_vehicle):
        """x1.10 for age > 5, x1.05 for mileage > 60000."""
        vehicle = make_vehicle(year=2018, mileage=70000)
        assert estimate_cost(self.servicing, vehicle, 2026) == 69.3

    def test_electric_specialty(self, make_vehicle):
        vehicle = make_vehicle(year=2024, mileage=5000, fuel_type=FuelType.ELECTRIC)
        assert estimate_cost(self.ev_service, vehicle, 2026) == 165.0

    def test_electric_non_specialty_unchanged(self, make_vehicle):
        vehicle = make_vehicle(year=2024, mileage=5000, fuel_type=FuelType.ELECTRIC)
        assert estimate_cost(self.servicing, vehicle, 2026) == 60.0

    def test_capped_at_max_price(self, make_vehicle):
        narrow = ServiceType("Narrow", "", 30, 100, 110)
        vehicle = make_vehicle(year=2000, mileage=200000)
        assert estimate_cost(narrow, vehicle, 2026) == 110.0

    def test_boundaries_are_exclusive(self, make_vehicle):
        vehicle = make_vehicle(year=2021, mileage=60000)
        assert estimate_cost(self.servicing, vehicle, 2026) == 60.0
