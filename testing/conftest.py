"""Shared test fixtures."""

import os
import tempfile

# Set required environment variables before importing
os.environ.setdefault("APP_TIMEZONE", "Australia/Melbourne")
os.environ.setdefault("BOOKING_DB_PATH", os.path.join(tempfile.gettempdir(), "booking_engine_test.db"))
os.environ.setdefault("SEARCH_FAILURE_POLICY", "random_resource")

import pytest

from booking_engine import db
from testing.mock_data import BEARD_TRIM, HAIRCUT, MOCK_BARBERS, local


@pytest.fixture
def store(tmp_path, monkeypatch):
    """
    Fresh sqlite booking store per test, seeded with barbers and services.
    """
    monkeypatch.setattr(db, "DB_PATH", str(tmp_path / "bookings.db"))
    db.init_db()
    for barber in MOCK_BARBERS:
        db.add_resource(barber)
    db.add_service(HAIRCUT)
    db.add_service(BEARD_TRIM)
    return db


@pytest.fixture
def morning():
    """08:00 shop time on the day most reschedule tests use."""
    return local(2030, 3, 18, 8, 0)


@pytest.fixture
def two_bookings(store):
    """
    Barber b1 has 10:00-10:30 and 11:00-11:30 on 2030-03-18.
    """
    first = store.add_booking("b1", local(2030, 3, 18, 10, 0), local(2030, 3, 18, 10, 30),
                              customer_name="Alex", reference="BK-FIRST")
    second = store.add_booking("b1", local(2030, 3, 18, 11, 0), local(2030, 3, 18, 11, 30),
                               customer_name="Sam", reference="BK-SECOND")
    return first, second
