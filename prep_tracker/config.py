"""Application configuration loaded from the environment."""
import os
from typing import List

from dotenv import load_dotenv

# Load environment variables from a local .env when present
load_dotenv()

ENVIRONMENT = os.environ.get("ENVIRONMENT", "development")

# Use the DATABASE_URL from environment variable, with fallback to SQLite for local dev
DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///./prep_tracker.db")

AUTH_SECRET = os.environ.get("AUTH_SECRET", "change-me-in-production")
AUTH_ALGORITHM = os.environ.get("AUTH_ALGORITHM", "HS256")

# Every calendar-day computation uses this zone, never the server locale
REFERENCE_TIMEZONE = os.environ.get("REFERENCE_TIMEZONE", "Asia/Kolkata")

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

DEFAULT_REVIEW_INTERVALS = [1, 3, 7, 14, 30]


def parse_review_intervals(raw: str | None) -> List[int]:
    """
    Parse a comma separated list of review intervals in days.

    Falls back to the defaults when the value is empty. Every interval must be
    a positive integer.
    """
    if not raw or not raw.strip():
        return list(DEFAULT_REVIEW_INTERVALS)

    intervals = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        value = int(part)
        if value < 1:
            raise ValueError(f"Review interval must be >= 1 day, got {value}")
        intervals.append(value)

    return intervals or list(DEFAULT_REVIEW_INTERVALS)


REVIEW_INTERVALS = parse_review_intervals(os.environ.get("REVIEW_INTERVALS"))

# Longest inclusive range of days one history request may resolve
HISTORY_MAX_DAYS = int(os.environ.get("HISTORY_MAX_DAYS", "92"))
