# testing/test_db.py
"""
Tests for the sqlite booking store.
"""

import sqlite3
from unittest.mock import MagicMock, patch

import pytest

from booking_engine.api.errors import UpstreamUnavailable
from booking_engine.api.models import BOOKING_CANCELLED
from testing.mock_data import local


def test_add_and_get_booking(store):
    booking = store.add_booking("b1", local(2030, 3, 18, 10, 0), local(2030, 3, 18, 10, 30),
                                customer_name="Alex")

    fetched = store.get_booking(booking.id)
    assert fetched == booking
    assert fetched.start == local(2030, 3, 18, 10, 0)
    assert fetched.customer_name == "Alex"
    assert fetched.reference.startswith("BK-")


def test_day_column_uses_shop_timezone(store):
    """00:30 shop time is still the previous day in UTC; the stored day must be the shop's."""
    booking = store.add_booking("b1", local(2030, 3, 19, 0, 30), local(2030, 3, 19, 1, 0))

    with store._connection() as conn:
        row = conn.execute("SELECT day, start_at FROM bookings WHERE id = ?", (booking.id,)).fetchone()

    assert row["day"] == "2030-03-19"
    assert row["start_at"].startswith("2030-03-18T13:30:00")


def test_active_bookings_filtered_and_ordered(store):
    late = store.add_booking("b1", local(2030, 3, 18, 15, 0), local(2030, 3, 18, 15, 30))
    early = store.add_booking("b1", local(2030, 3, 18, 9, 0), local(2030, 3, 18, 9, 30))
    store.add_booking("b2", local(2030, 3, 18, 12, 0), local(2030, 3, 18, 12, 30))
    store.add_booking("b1", local(2030, 3, 17, 9, 0), local(2030, 3, 17, 9, 30))
    gone = store.add_booking("b1", local(2030, 3, 18, 11, 0), local(2030, 3, 18, 11, 30))
    store.cancel_booking(gone.id)

    active = store.get_active_bookings("b1", local(2030, 3, 18))

    assert [b.id for b in active] == [early.id, late.id]
    assert store.get_booking(gone.id).status == BOOKING_CANCELLED


def test_transaction_rolls_back_on_error(store):
    booking = store.add_booking("b1", local(2030, 3, 18, 10, 0), local(2030, 3, 18, 10, 30))

    with pytest.raises(RuntimeError):
        with store.transaction() as conn:
            assert store.update_booking_window(booking.id, local(2030, 3, 18, 12, 0),
                                               local(2030, 3, 18, 12, 30), conn)
            raise RuntimeError("abort")

    assert store.get_booking(booking.id).start == local(2030, 3, 18, 10, 0)


def test_transaction_commits(store):
    booking = store.add_booking("b1", local(2030, 3, 18, 10, 0), local(2030, 3, 18, 10, 30))

    with store.transaction() as conn:
        store.update_booking_window(booking.id, local(2030, 3, 19, 12, 0), local(2030, 3, 19, 12, 30), conn)

    moved = store.get_booking(booking.id)
    assert moved.start == local(2030, 3, 19, 12, 0)
    assert moved.day.isoformat() == "2030-03-19"


def test_update_skips_cancelled_booking(store):
    booking = store.add_booking("b1", local(2030, 3, 18, 10, 0), local(2030, 3, 18, 10, 30))
    store.cancel_booking(booking.id)

    with store.transaction() as conn:
        updated = store.update_booking_window(booking.id, local(2030, 3, 18, 12, 0),
                                              local(2030, 3, 18, 12, 30), conn)

    assert updated is False


def test_sql_errors_are_upstream_unavailable(store):
    with pytest.raises(UpstreamUnavailable):
        with store.transaction() as conn:
            conn.execute("SELECT * FROM no_such_table")


def test_resources_and_services(store):
    assert [r.id for r in store.get_resources()] == ["b1", "b2", "b3", "b4"]
    assert store.get_resource("b3").pooled is False
    assert store.get_resource("missing") is None
    assert store.get_service("haircut").duration_minutes == 30
    assert store.get_service("missing") is None


def test_add_booking_rejects_unknown_status(store):
    with pytest.raises(ValueError):
        store.add_booking("b1", local(2030, 3, 18, 10, 0), local(2030, 3, 18, 10, 30), status="pending")

    completed = store.add_booking("b1", local(2030, 3, 18, 10, 0), local(2030, 3, 18, 10, 30), status="completed")
    assert not completed.is_active


def test_clear_bookings(store):
    store.add_booking("b1", local(2030, 3, 18, 10, 0), local(2030, 3, 18, 10, 30))

    store.clear_bookings()

    assert store.get_bookings() == []
    assert len(store.get_resources()) == 4


def test_failed_begin_closes_connection(store):
    conn = MagicMock()
    conn.execute.side_effect = sqlite3.OperationalError("database is locked")

    with patch("booking_engine.db._connect", return_value=conn):
        with pytest.raises(UpstreamUnavailable):
            with store.transaction():
                pass

    conn.close.assert_called_once()
