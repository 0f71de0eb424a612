# config/settings.py
#
#   loading scheduling policy and upstream settings from .env

import os
from dotenv import load_dotenv

load_dotenv()  # loads .env into environment


def _int_setting(name, default):
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from None


def _float_setting(name, default):
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except (TypeError, ValueError):
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from None


# business calendar
APP_TIMEZONE = os.getenv("APP_TIMEZONE", "Australia/Melbourne")

# booking store
BOOKING_DB_PATH = os.getenv("BOOKING_DB_PATH", "booking_engine.db")

# search / reschedule policy
SEARCH_HORIZON_DAYS = _int_setting("SEARCH_HORIZON_DAYS", "14")
RESCHEDULE_GRANULARITY_MINUTES = _int_setting("RESCHEDULE_GRANULARITY_MINUTES", "15")
SEARCH_FAILURE_POLICY = os.getenv("SEARCH_FAILURE_POLICY", "random_resource").lower()

# availability source (Square-style availability search)
AVAILABILITY_API_BASE = os.getenv("AVAILABILITY_API_BASE", "http://localhost:3001/api")
AVAILABILITY_API_TOKEN = os.getenv("AVAILABILITY_API_TOKEN")
AVAILABILITY_TIMEOUT = _float_setting("AVAILABILITY_TIMEOUT", "5.0")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# checks
FAILURE_POLICIES = ("random_resource", "raise")

if SEARCH_HORIZON_DAYS < 1:
    raise RuntimeError("SEARCH_HORIZON_DAYS must be at least 1!")
if RESCHEDULE_GRANULARITY_MINUTES < 1:
    raise RuntimeError("RESCHEDULE_GRANULARITY_MINUTES must be at least 1!")
if SEARCH_FAILURE_POLICY not in FAILURE_POLICIES:
    raise RuntimeError(
        f"SEARCH_FAILURE_POLICY must be one of {', '.join(FAILURE_POLICIES)}, "
        f"got {SEARCH_FAILURE_POLICY!r}"
    )
if AVAILABILITY_TIMEOUT <= 0:
    raise RuntimeError("AVAILABILITY_TIMEOUT must be positive!")
