import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime

from config.settings import BOOKING_DB_PATH
from booking_engine.api.errors import UpstreamUnavailable
from booking_engine.api.models import (
    BOOKING_ACTIVE,
    BOOKING_CANCELLED,
    BOOKING_STATUSES,
    Booking,
    Resource,
    ServiceRequirement,
)
from booking_engine.timezone_utils import local_day, parse_iso_with_tz, to_utc

logger = logging.getLogger(__name__)

DB_PATH = BOOKING_DB_PATH


def _connect():
    conn = sqlite3.connect(DB_PATH, timeout=10, isolation_level=None)
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def _connection(conn=None):
    """
    Reuse the caller's connection (inside a transaction) or open a short-lived one.
    """
    if conn is not None:
        yield conn
        return
    try:
        own = _connect()
    except sqlite3.Error as e:
        raise UpstreamUnavailable("booking store", str(e)) from e
    try:
        yield own
    except sqlite3.Error as e:
        raise UpstreamUnavailable("booking store", str(e)) from e
    finally:
        own.close()


@contextmanager
def transaction():
    """
    Open one connection and hold a write lock on the store for the whole block.
    Commits when the block finishes, rolls back on any exception.
    sqlite errors surface as UpstreamUnavailable.
    """
    try:
        conn = _connect()
    except sqlite3.Error as e:
        raise UpstreamUnavailable("booking store", str(e)) from e
    try:
        conn.execute("BEGIN IMMEDIATE")
    except sqlite3.Error as e:
        conn.close()
        raise UpstreamUnavailable("booking store", str(e)) from e
    try:
        yield conn
        conn.execute("COMMIT")
    except sqlite3.Error as e:
        conn.execute("ROLLBACK")
        logger.error(f"Booking store transaction rolled back: {e}")
        raise UpstreamUnavailable("booking store", str(e)) from e
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    finally:
        conn.close()


def init_db():
    """
    Initialize the database and ensure the tables exist.
    Tables:
      - resources: barbers (id, external_id from the upstream calendar, name, status, pooled)
      - services: bookable services with their fixed duration in minutes
      - bookings: one row per appointment; start_at/end_at are UTC ISO timestamps,
        day is the shop-local calendar date of start_at
    """
    with _connection() as conn:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS resources (
                id TEXT PRIMARY KEY,
                external_id TEXT,
                name TEXT NOT NULL DEFAULT '',
                status TEXT NOT NULL DEFAULT 'ACTIVE',
                pooled INTEGER NOT NULL DEFAULT 1
            );
            CREATE TABLE IF NOT EXISTS services (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                duration_minutes INTEGER NOT NULL
            );
            CREATE TABLE IF NOT EXISTS bookings (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                reference TEXT NOT NULL,
                resource_id TEXT NOT NULL,
                customer_name TEXT,
                day TEXT NOT NULL,
                start_at TEXT NOT NULL,
                end_at TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'active'
            );
            CREATE INDEX IF NOT EXISTS idx_bookings_resource_start
                ON bookings (resource_id, start_at);
        """)


def _utc_iso(dt: datetime) -> str:
    return to_utc(dt).isoformat()


def _row_to_booking(row) -> Booking:
    return Booking(
        id=str(row["id"]),
        resource_id=row["resource_id"],
        start=parse_iso_with_tz(row["start_at"]),
        end=parse_iso_with_tz(row["end_at"]),
        status=row["status"],
        reference=row["reference"],
        customer_name=row["customer_name"],
    )


def _row_to_resource(row) -> Resource:
    return Resource(
        id=row["id"],
        name=row["name"],
        external_id=row["external_id"],
        status=row["status"],
        pooled=bool(row["pooled"]),
    )


# -------------------
# RESOURCES / SERVICES
# -------------------
def add_resource(resource: Resource):
    with _connection() as conn:
        conn.execute(
            "INSERT OR REPLACE INTO resources (id, external_id, name, status, pooled) VALUES (?, ?, ?, ?, ?)",
            (resource.id, resource.external_id, resource.name, resource.status, int(resource.pooled)),
        )


def get_resources(conn=None) -> list:
    """
    Fetch every barber, active or not.
    """
    with _connection(conn) as c:
        rows = c.execute("SELECT * FROM resources ORDER BY id").fetchall()
        return [_row_to_resource(row) for row in rows]


def get_resource(resource_id: str, conn=None):
    with _connection(conn) as c:
        row = c.execute("SELECT * FROM resources WHERE id = ?", (resource_id,)).fetchone()
        return _row_to_resource(row) if row else None


def add_service(service: ServiceRequirement):
    with _connection() as conn:
        conn.execute(
            "INSERT OR REPLACE INTO services (id, name, duration_minutes) VALUES (?, ?, ?)",
            (service.id, service.name, service.duration_minutes),
        )


def get_service(service_id: str):
    with _connection() as conn:
        row = conn.execute("SELECT * FROM services WHERE id = ?", (service_id,)).fetchone()
        if not row:
            return None
        return ServiceRequirement(id=row["id"], name=row["name"], duration_minutes=row["duration_minutes"])


# -------------------
# BOOKINGS
# -------------------
def add_booking(resource_id: str, start: datetime, end: datetime, customer_name: str = None,
                reference: str = None, status: str = BOOKING_ACTIVE) -> Booking:
    """
    Add a booking for a barber.
    The day is extracted from start in shop time (YYYY-MM-DD).
    Returns: the stored Booking (with its generated id).
    Raises: ValueError for an unknown status.
    """
    if status not in BOOKING_STATUSES:
        raise ValueError(f"Unknown booking status {status!r}, expected one of {BOOKING_STATUSES}")
    if reference is None:
        reference = f"BK-{uuid.uuid4().hex[:6].upper()}"

    with _connection() as conn:
        cursor = conn.execute(
            "INSERT INTO bookings (reference, resource_id, customer_name, day, start_at, end_at, status) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (reference, resource_id, customer_name, local_day(start).isoformat(),
             _utc_iso(start), _utc_iso(end), status),
        )
        booking_id = cursor.lastrowid
    return get_booking(booking_id)


def get_booking(booking_id, conn=None):
    with _connection(conn) as c:
        row = c.execute("SELECT * FROM bookings WHERE id = ?", (booking_id,)).fetchone()
        return _row_to_booking(row) if row else None


def get_bookings(conn=None) -> list:
    """
    Fetch all bookings, any status, ordered by barber and start.
    """
    with _connection(conn) as c:
        rows = c.execute("SELECT * FROM bookings ORDER BY resource_id, start_at").fetchall()
        return [_row_to_booking(row) for row in rows]


def get_active_bookings(resource_id: str, on_or_after: datetime, conn=None) -> list:
    """
    Active bookings for one barber that end after the given instant,
    ordered by start time.
    """
    with _connection(conn) as c:
        rows = c.execute(
            "SELECT * FROM bookings WHERE resource_id = ? AND status = ? AND end_at > ? "
            "ORDER BY start_at",
            (resource_id, BOOKING_ACTIVE, _utc_iso(on_or_after)),
        ).fetchall()
        return [_row_to_booking(row) for row in rows]


def update_booking_window(booking_id, new_start: datetime, new_end: datetime, conn) -> bool:
    """
    Move an active booking to a new window.
    Must run inside transaction() so a batch of moves commits or rolls back together.
    Returns: False if no active booking with that id was touched.
    """
    cursor = conn.execute(
        "UPDATE bookings SET start_at = ?, end_at = ?, day = ? WHERE id = ? AND status = ?",
        (_utc_iso(new_start), _utc_iso(new_end), local_day(new_start).isoformat(),
         booking_id, BOOKING_ACTIVE),
    )
    return cursor.rowcount == 1


def cancel_booking(booking_id) -> bool:
    with _connection() as conn:
        cursor = conn.execute(
            "UPDATE bookings SET status = ? WHERE id = ? AND status = ?",
            (BOOKING_CANCELLED, booking_id, BOOKING_ACTIVE),
        )
        return cursor.rowcount == 1


def clear_bookings():
    """
    Remove all bookings (testing only).
    """
    with _connection() as conn:
        conn.execute("DELETE FROM bookings")

