"""Configuration constants and dataclass for railradar-status."""

from dataclasses import dataclass
from datetime import timedelta, timezone

# API constants
API_BASE = "https://railradar.in/api/v1"
API_KEY_ENV = "RAIL_RADAR_API_KEY"
REFRESH_INTERVAL = 60  # seconds
MAX_RETRIES = 3
RETRY_DELAY = 2  # seconds
REQUEST_TIMEOUT = 10.0  # seconds

# All displayed times use Indian Standard Time, a fixed offset with no DST
DISPLAY_TZ = timezone(timedelta(hours=5, minutes=30), "IST")
DISPLAY_TZ_LABEL = "IST"

TIME_PLACEHOLDER = "--"


@dataclass
class Config:
    """Runtime configuration built from CLI arguments."""
    train_number: str = ""
    journey_date: str | None = None
    compact_mode: bool = False
    once: bool = False
    focus_current: bool = True
    refresh_interval: int = REFRESH_INTERVAL
    include_passing: bool = False
    verbose: bool = False
