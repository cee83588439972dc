"""Data model plus pure utility functions for time parsing, formatting and validation."""

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from enum import Enum

from .config import DISPLAY_TZ, TIME_PLACEHOLDER

TRAIN_NUMBER_RE = re.compile(r"[0-9]{4,5}")

# Bit positions of the running-days bitmap, Sunday first
RUNNING_DAY_NAMES = ("Su", "Mo", "Tu", "We", "Th", "Fr", "Sa")


def _now():
    """Current time in the display zone. Extracted for test patching."""
    return datetime.now(DISPLAY_TZ)


# =============================================================================
# Enums
# =============================================================================


class RecordStatus(str, Enum):
    """Explicit status tag carried by a live per-stop record."""
    DEPARTED = "Departed"
    ARRIVED = "Arrived"
    UPCOMING = "Upcoming"

    @classmethod
    def from_value(cls, value) -> "RecordStatus | None":
        """Map a raw tag to a member. Unknown tags (including "None") map to None."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        for member in cls:
            if member.value.lower() == value.strip().lower():
                return member
        return None


class StopStatus(str, Enum):
    """Lifecycle state of a stop as shown to the user."""
    SCHEDULED = "Scheduled"
    UPCOMING = "Upcoming"
    CURRENT = "Current"
    COMPLETED = "Completed"
    DEPARTED = "Departed"  # Completed with a known departure time


class Leg(str, Enum):
    ARRIVAL = "Arrival"
    DEPARTURE = "Departure"


class Verdict(str, Enum):
    LATE = "Late"
    EARLY = "Early"
    ON_TIME = "OnTime"

    @classmethod
    def for_minutes(cls, minutes: int) -> "Verdict":
        if minutes > 0:
            return cls.LATE
        if minutes < 0:
            return cls.EARLY
        return cls.ON_TIME


# =============================================================================
# Input entities
# =============================================================================


@dataclass(frozen=True)
class ScheduledStop:
    """One scheduled station visit. Arrival is None at the origin, departure at the terminus."""
    station_code: str
    station_name: str
    sequence_index: int
    scheduled_arrival: datetime | None = None
    scheduled_departure: datetime | None = None
    platform: str | None = None
    is_halt: bool = True
    day: int = 1


@dataclass(frozen=True)
class Itinerary:
    stops: tuple[ScheduledStop, ...] = ()

    def __len__(self) -> int:
        return len(self.stops)

    def __iter__(self):
        return iter(self.stops)


@dataclass(frozen=True)
class LiveStopRecord:
    """Actual times for one station. A delay of None means unknown, not zero."""
    station_code: str
    actual_arrival: datetime | None = None
    actual_departure: datetime | None = None
    delay_arrival_minutes: int | None = None
    delay_departure_minutes: int | None = None
    status: RecordStatus | None = None
    platform: str | None = None

    @property
    def has_actual_time(self) -> bool:
        return self.actual_arrival is not None or self.actual_departure is not None

    @property
    def shows_reached(self) -> bool:
        """Whether this record says the train has got to this station."""
        if self.status is not None:
            return self.status in (RecordStatus.ARRIVED, RecordStatus.DEPARTED)
        return self.has_actual_time


@dataclass(frozen=True)
class CurrentLocation:
    """Single live pointer naming the station nearest the train."""
    station_code: str
    status: str = ""
    distance_from_origin_km: float | None = None
    distance_from_last_station_km: float | None = None
    last_updated_at: datetime | None = None
    latitude: float | None = None
    longitude: float | None = None


@dataclass(frozen=True)
class LiveFeed:
    records: tuple[LiveStopRecord, ...] = ()
    current_location: CurrentLocation | None = None
    summary: str | None = None
    last_updated_at: datetime | None = None
    data_source: str | None = None


@dataclass(frozen=True)
class Train:
    """Static train metadata from the lookup response."""
    number: str
    name: str = ""
    type: str = ""
    zone: str = ""
    source_code: str = ""
    source_name: str = ""
    destination_code: str = ""
    destination_name: str = ""
    running_days: str = ""
    return_train_number: str = ""
    travel_time_minutes: int | None = None
    total_halts: int | None = None
    distance_km: int | None = None
    avg_speed_kmph: int | None = None


@dataclass(frozen=True)
class TrainStatus:
    """A normalized lookup response: metadata, schedule and the optional live feed."""
    train: Train
    itinerary: Itinerary
    live_feed: LiveFeed | None = None
    journey_date: date | None = None


# =============================================================================
# Output entities
# =============================================================================


@dataclass(frozen=True)
class DelayAnnotation:
    leg: Leg
    minutes: int
    verdict: Verdict

    def describe(self) -> str:
        """Human-readable delay, e.g. "Arrival Late +12m"."""
        if self.verdict is Verdict.ON_TIME:
            return f"{self.leg.value} On time"
        return f"{self.leg.value} {self.verdict.value} {self.minutes:+d}m"


@dataclass(frozen=True)
class StopView:
    station_code: str
    station_name: str
    sequence_index: int
    scheduled_display: str
    actual_display: str
    status: StopStatus
    delay_annotations: tuple[DelayAnnotation, ...] = ()
    is_current: bool = False
    caption: str = ""
    platform: str | None = None
    is_origin: bool = False
    is_terminus: bool = False
    is_halt: bool = True
    day: int = 1

    @property
    def is_completed(self) -> bool:
        return self.status in (StopStatus.COMPLETED, StopStatus.DEPARTED)


@dataclass(frozen=True)
class JourneyView:
    stops: tuple[StopView, ...] = ()
    has_live_data: bool = False
    summary: str | None = None
    last_updated_at: datetime | None = None
    current_location: CurrentLocation | None = None
    current_station_name: str | None = None
    data_source: str | None = None

    @property
    def current_stop(self) -> StopView | None:
        for stop in self.stops:
            if stop.is_current:
                return stop
        return None

    @property
    def completed_count(self) -> int:
        return sum(1 for stop in self.stops if stop.is_completed)


# =============================================================================
# Time parsing and formatting
# =============================================================================


def parse_time(time_val: str | int | float | None) -> datetime | None:
    """
    Parse a time value from the API into an aware datetime.

    Accepts epoch seconds (int, float or digit string) and ISO 8601 strings.
    ISO strings without an offset are taken to be in the display zone.
    Anything else, including non-positive epochs, returns None.
    """
    if time_val is None or isinstance(time_val, bool):
        return None

    if isinstance(time_val, (int, float)):
        if time_val <= 0:
            return None
        try:
            return datetime.fromtimestamp(time_val, tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            return None

    if not isinstance(time_val, str) or not time_val.strip():
        return None

    time_val = time_val.strip()
    if time_val.isdigit():
        return parse_time(int(time_val))

    try:
        dt = datetime.fromisoformat(time_val.replace("Z", "+00:00"))
    except ValueError:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=DISPLAY_TZ)
    return dt


def format_time(dt: datetime | None) -> str:
    """Format an instant as HH:MM in the display zone. This is the default TimeLocalizer."""
    if not dt:
        return TIME_PLACEHOLDER
    return dt.astimezone(DISPLAY_TZ).strftime("%H:%M")


def format_datetime(dt: datetime | None) -> str:
    """Format an instant as DD/MM/YYYY, HH:MM in the display zone."""
    if not dt:
        return TIME_PLACEHOLDER
    return dt.astimezone(DISPLAY_TZ).strftime("%d/%m/%Y, %H:%M")


def format_duration(minutes: int | None) -> str:
    if not minutes:
        return TIME_PLACEHOLDER
    hours, mins = divmod(minutes, 60)
    return f"{hours}h {mins}m"


def schedule_instant(journey_date: date | None, day: int, minutes: int | None) -> datetime | None:
    """
    Turn a schedule entry (minutes after midnight on journey day `day`) into an instant.

    Day 1 is the journey date itself. Times are interpreted in the display zone.
    """
    if journey_date is None or minutes is None:
        return None
    if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes < 0:
        return None

    midnight = datetime(journey_date.year, journey_date.month, journey_date.day, tzinfo=DISPLAY_TZ)
    try:
        return midnight + timedelta(days=max(day, 1) - 1, minutes=minutes)
    except (OverflowError, ValueError):
        return None


def running_days_names(bitmap: int | None) -> str:
    """Decode the running-days bitmap (bit 0 = Sunday) into e.g. "Mo We Fr"."""
    if not isinstance(bitmap, int) or isinstance(bitmap, bool) or bitmap <= 0:
        return ""
    if bitmap & 0x7F == 0x7F:
        return "Daily"
    return " ".join(name for bit, name in enumerate(RUNNING_DAY_NAMES) if bitmap & (1 << bit))


# =============================================================================
# Leaf value coercion and input validation
# =============================================================================


def coerce_int(value) -> int | None:
    """Return a whole number, or None when absent or malformed."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def is_valid_train_number(value: str | None) -> bool:
    """Train numbers are 4 or 5 digits."""
    return isinstance(value, str) and TRAIN_NUMBER_RE.fullmatch(value) is not None


def parse_journey_date(value: str | None) -> date | None:
    """Parse a YYYY-MM-DD journey date."""
    if not value or not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        return None


def today_in_display_zone() -> date:
    return _now().date()
