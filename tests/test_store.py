#!/usr/bin/env python3
"""Tests for DataStore and service type loading."""

from datetime import datetime, timedelta

import pytest

from garage import (
    BookingStatus,
    DataStore,
    ReminderType,
    ServiceBooking,
    ServiceReminder,
    load_service_types,
)

NOW = datetime(2026, 10, 16, 10, 0)


def make_booking(vehicle_id, service_type_id, when, **kwargs):
    return ServiceBooking(vehicle_id, service_type_id, when, 100.0, created_at=NOW, **kwargs)


def make_reminder(vehicle_id, due, **kwargs):
    return ServiceReminder(
        vehicle_id, "Reminder", "Do the thing", due, ReminderType.SERVICE,
        created_at=NOW, **kwargs
    )


# =============================================================================
# Service type loading
# =============================================================================


class TestLoadServiceTypes:
    """Tests for load_service_types."""

    def test_default_file(self):
        service_types = load_service_types()
        names = {s.name for s in service_types}
        assert len(service_types) == 6
        assert "Electric Vehicle Servicing" in names
        assert "Brake Service" in names

    def test_prices_and_flags(self):
        by_name = {s.name: s for s in load_service_types()}
        cambelt = by_name["Cambelt Replacement"]
        assert cambelt.price_range == (200, 500)
        assert cambelt.estimated_duration == 180
        assert cambelt.is_specialty
        assert not by_name["Vehicle Servicing"].is_specialty

    def test_custom_file(self, tmp_path):
        path = tmp_path / "types.yaml"
        path.write_text(
            "serviceTypes:\n"
            "  - name: Tyres\n"
            "    estimatedDuration: 30\n"
            "    minPrice: 50\n"
            "    maxPrice: 120\n"
        )
        (tyres,) = load_service_types(path)
        assert tyres.name == "Tyres"
        assert tyres.description == ""
        assert not tyres.is_specialty

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_service_types(path) == []


# =============================================================================
# DataStore
# =============================================================================


class TestSeeding:
    """Tests for seed_service_types."""

    def test_seeds_once(self, clock):
        store = DataStore(clock=clock)
        assert store.seed_service_types() == 6
        assert store.seed_service_types() == 0
        assert len(store.list_service_types()) == 6


class TestVehicles:
    """Tests for vehicle queries."""

    def test_list_most_recently_updated_first(self, store, make_vehicle):
        old = store.add_vehicle(make_vehicle(registration="OLD1", updated_at=NOW - timedelta(days=2)))
        new = store.add_vehicle(make_vehicle(registration="NEW1", updated_at=NOW))
        assert store.list_vehicles() == [new, old]

    def test_pages(self, store, make_vehicle):
        vehicles = [
            store.add_vehicle(
                make_vehicle(registration=f"CAR{i}", updated_at=NOW - timedelta(days=i))
            )
            for i in range(5)
        ]
        assert store.list_vehicles_page(limit=2) == vehicles[:2]
        assert store.list_vehicles_page(limit=2, offset=4) == vehicles[4:]
        assert store.list_vehicles_page(limit=2, offset=10) == []

    def test_negative_page_rejected(self, store):
        with pytest.raises(ValueError):
            store.list_vehicles_page(limit=-1)

    def test_update_mileages(self, store, make_vehicle):
        first = store.add_vehicle(make_vehicle(registration="ONE1", created_at=NOW - timedelta(days=3)))
        second = store.add_vehicle(make_vehicle(registration="TWO2"))
        updated = store.update_vehicle_mileages([(first.id, 50000), ("missing", 1), (second.id, 61000)])
        assert updated == 2
        assert (first.mileage, second.mileage) == (50000, 61000)
        assert first.updated_at == NOW

    def test_update_touches_timestamp(self, store, make_vehicle):
        vehicle = store.add_vehicle(make_vehicle(created_at=NOW - timedelta(days=5)))
        store.update_vehicle(vehicle)
        assert vehicle.updated_at == NOW

    def test_find_by_registration_case_insensitive(self, store, make_vehicle):
        vehicle = store.add_vehicle(make_vehicle(registration="AB12CDE"))
        assert store.find_vehicle_by_registration(" ab12cde ") is vehicle
        assert store.find_vehicle_by_registration("AB12CDE", exclude_id=vehicle.id) is None
        assert store.find_vehicle_by_registration("ZZ99ZZZ") is None

    def test_search(self, store, make_vehicle):
        focus = store.add_vehicle(make_vehicle(make="Ford", model="Focus", registration="F1"))
        model3 = store.add_vehicle(make_vehicle(make="Tesla", model="Model 3", registration="T1"))
        assert store.search_vehicles("foc") == [focus]
        assert store.search_vehicles("t1") == [model3]
        assert store.search_vehicles("o") == [focus, model3]

    def test_blank_search_returns_nothing(self, store, make_vehicle):
        store.add_vehicle(make_vehicle())
        assert store.search_vehicles("  ") == []

    def test_delete_cascades(self, store, make_vehicle):
        vehicle = store.add_vehicle(make_vehicle())
        other = store.add_vehicle(make_vehicle(registration="OTHER"))
        service_type = store.list_service_types()[0]
        store.add_booking(make_booking(vehicle.id, service_type.id, NOW))
        store.add_reminder(make_reminder(vehicle.id, NOW, is_completed=True))
        kept = store.add_reminder(make_reminder(other.id, NOW))

        store.delete_vehicle(vehicle.id)

        assert store.get_vehicle(vehicle.id) is None
        assert store.list_bookings() == []
        assert store.list_reminders(include_completed=True) == [kept]


class TestServiceTypes:
    """Tests for service type queries."""

    def test_sorted_by_name(self, store):
        names = [s.name for s in store.list_service_types()]
        assert names == sorted(names)

    def test_find_by_name(self, store):
        assert store.find_service_type("brake service").name == "Brake Service"
        assert store.find_service_type("Valeting") is None

    def test_get_none(self, store):
        assert store.get_service_type(None) is None

    def test_delete_nullifies_bookings(self, store, make_vehicle):
        vehicle = store.add_vehicle(make_vehicle())
        service_type = store.find_service_type("Brake Service")
        booking = store.add_booking(make_booking(vehicle.id, service_type.id, NOW))
        store.delete_service_type(service_type.id)
        assert store.get_booking(booking.id).service_type_id is None
        assert store.find_service_type("Brake Service") is None


class TestBookings:
    """Tests for booking queries."""

    def test_sorted_by_scheduled_date(self, store):
        later = store.add_booking(make_booking("v", "s", NOW + timedelta(days=3)))
        sooner = store.add_booking(make_booking("v", "s", NOW + timedelta(days=1)))
        assert store.list_bookings() == [sooner, later]

    def test_active_bookings(self, store):
        active = store.add_booking(make_booking("v", "s", NOW, status=BookingStatus.CONFIRMED))
        store.add_booking(make_booking("v", "s", NOW, status=BookingStatus.CANCELLED))
        store.add_booking(make_booking("v", "s", NOW, status=BookingStatus.COMPLETED))
        assert store.active_bookings() == [active]

    def test_pages_latest_first(self, store):
        bookings = [
            store.add_booking(make_booking("v", "s", NOW + timedelta(days=i)))
            for i in range(3)
        ]
        assert store.list_bookings_page(limit=2) == [bookings[2], bookings[1]]
        assert store.list_bookings_page(limit=2, offset=2) == [bookings[0]]

    def test_delete_bookings(self, store):
        keep = store.add_booking(make_booking("v", "s", NOW))
        gone = [store.add_booking(make_booking("v", "s", NOW)) for _ in range(2)]
        removed = store.delete_bookings([gone[0].id, gone[1].id, gone[0].id, "missing"])
        assert removed == 2
        assert store.list_bookings() == [keep]

    def test_bookings_for_vehicle(self, store):
        mine = store.add_booking(make_booking("mine", "s", NOW))
        store.add_booking(make_booking("theirs", "s", NOW))
        assert store.bookings_for_vehicle("mine") == [mine]


class TestReminders:
    """Tests for reminder queries."""

    def test_completed_hidden_by_default(self, store):
        open_reminder = store.add_reminder(make_reminder("v", NOW))
        store.add_reminder(make_reminder("v", NOW, is_completed=True))
        assert store.list_reminders() == [open_reminder]
        assert len(store.list_reminders(include_completed=True)) == 2

    def test_sorted_by_due_date(self, store):
        later = store.add_reminder(make_reminder("v", NOW + timedelta(days=9)))
        sooner = store.add_reminder(make_reminder("v", NOW + timedelta(days=1)))
        assert store.list_reminders() == [sooner, later]

    def test_upcoming_includes_overdue(self, store):
        overdue = store.add_reminder(make_reminder("v", NOW - timedelta(days=3)))
        soon = store.add_reminder(make_reminder("v", NOW + timedelta(days=10)))
        store.add_reminder(make_reminder("v", NOW + timedelta(days=45)))
        assert store.upcoming_reminders(30) == [overdue, soon]

    def test_complete(self, store):
        reminder = store.add_reminder(make_reminder("v", NOW))
        store.complete_reminder(reminder)
        assert reminder.is_completed
        assert store.list_reminders() == []


class TestCleanup:
    """Tests for cleanup_old_data."""

    def test_removes_only_old_completed(self, store):
        old_done = store.add_booking(
            make_booking("v", "s", NOW - timedelta(days=400),
                         status=BookingStatus.COMPLETED,
                         completed_date=NOW - timedelta(days=400))
        )
        recent_done = store.add_booking(
            make_booking("v", "s", NOW - timedelta(days=10),
                         status=BookingStatus.COMPLETED,
                         completed_date=NOW - timedelta(days=10))
        )
        old_cancelled = store.add_booking(
            make_booking("v", "s", NOW - timedelta(days=400), status=BookingStatus.CANCELLED)
        )
        store.add_reminder(make_reminder("v", NOW - timedelta(days=500), is_completed=True))
        old_open = store.add_reminder(make_reminder("v", NOW - timedelta(days=500)))

        assert store.cleanup_old_data() == (1, 1)
        assert store.get_booking(old_done.id) is None
        assert store.get_booking(recent_done.id) is recent_done
        assert store.get_booking(old_cancelled.id) is old_cancelled
        assert store.list_reminders(include_completed=True) == [old_open]

    def test_custom_cutoff(self, store):
        store.add_booking(
            make_booking("v", "s", NOW, status=BookingStatus.COMPLETED,
                         completed_date=NOW - timedelta(days=40))
        )
        assert store.cleanup_old_data(older_than_days=30) == (1, 0)


class TestCounts:
    """Tests for entity_counts and clear."""

    def test_counts(self, store, make_vehicle):
        store.add_vehicle(make_vehicle())
        assert store.entity_counts() == {
            "vehicles": 1,
            "serviceTypes": 6,
            "bookings": 0,
            "reminders": 0,
        }

    def test_clear(self, store, make_vehicle):
        store.add_vehicle(make_vehicle())
        store.clear()
        assert set(store.entity_counts().values()) == {0}


@pytest.mark.parametrize("days", [0, 1, 30])
def test_upcoming_horizon_is_inclusive(store, days):
    reminder = store.add_reminder(make_reminder("v", NOW + timedelta(days=days)))
    assert store.upcoming_reminders(days) == [reminder]
