"""Shared test fixtures and helpers for railradar-status tests."""

import json
from datetime import datetime
from pathlib import Path
from unittest.mock import patch, MagicMock

import pytest
from rich.console import Console

from railradar_status.config import DISPLAY_TZ
from railradar_status.models import (
    CurrentLocation, Itinerary, LiveFeed, LiveStopRecord, RecordStatus, ScheduledStop,
)


# =============================================================================
# Constants
# =============================================================================


# A fixed "now" for deterministic time-based tests: 2025-10-05 21:00 IST
FIXED_NOW = datetime(2025, 10, 5, 21, 0, 0, tzinfo=DISPLAY_TZ)
JOURNEY_DATE = "2025-10-05"


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def freeze_time():
    """Patch _now everywhere it is imported to return FIXED_NOW."""
    with patch("railradar_status.models._now", return_value=FIXED_NOW), \
         patch("railradar_status.api._now", return_value=FIXED_NOW), \
         patch("railradar_status.session._now", return_value=FIXED_NOW):
        yield


@pytest.fixture(autouse=True)
def api_key(monkeypatch):
    monkeypatch.setenv("RAIL_RADAR_API_KEY", "test-key")


@pytest.fixture(autouse=True)
def no_retry_sleep():
    with patch("railradar_status.api.sleep"):
        yield


# =============================================================================
# Test data helpers
# =============================================================================


def ist(hour: int, minute: int = 0, day: int = 5) -> datetime:
    """An aware instant on October `day` 2025 at HH:MM IST."""
    return datetime(2025, 10, day, hour, minute, tzinfo=DISPLAY_TZ)


def make_stop(
    code="TST",
    name=None,
    index=0,
    sch_arr=None,
    sch_dep=None,
    platform=None,
):
    return ScheduledStop(
        station_code=code,
        station_name=name or f"{code} Junction",
        sequence_index=index,
        scheduled_arrival=sch_arr,
        scheduled_departure=sch_dep,
        platform=platform,
    )


def make_itinerary(*codes):
    """An itinerary with one stop per code, an hour apart from 06:00 IST."""
    stops = []
    last = len(codes) - 1
    for i, code in enumerate(codes):
        arrival = ist(6 + i) if i > 0 else None
        departure = ist(6 + i, 5) if i < last else None
        stops.append(make_stop(code=code, index=i, sch_arr=arrival, sch_dep=departure))
    return Itinerary(stops=tuple(stops))


def make_record(
    code="TST",
    arr=None,
    dep=None,
    delay_arr=None,
    delay_dep=None,
    status=None,
):
    return LiveStopRecord(
        station_code=code,
        actual_arrival=arr,
        actual_departure=dep,
        delay_arrival_minutes=delay_arr,
        delay_departure_minutes=delay_dep,
        status=RecordStatus.from_value(status) if status else None,
    )


def make_feed(records=(), pointer=None, summary=None, last_updated_at=None):
    return LiveFeed(
        records=tuple(records),
        current_location=CurrentLocation(station_code=pointer, status="Arrived at") if pointer else None,
        summary=summary,
        last_updated_at=last_updated_at,
    )


def render_to_text(renderable, width=140) -> str:
    """Capture a Rich renderable as plain text for assertion."""
    console = Console(record=True, width=width, height=60, force_terminal=False)
    console.print(renderable)
    return console.export_text()


def load_fixture(name: str):
    """Load a JSON fixture file from tests/fixtures/."""
    fixture_path = Path(__file__).parent / "fixtures" / name
    with open(fixture_path) as f:
        return json.load(f)


def make_mock_httpx_client(json_response, status_code=200):
    """Create a mock httpx.Client that returns the given JSON from .get()."""
    mock_response = MagicMock()
    mock_response.status_code = status_code
    mock_response.json.return_value = json_response
    mock_response.raise_for_status.return_value = None
    mock_client = MagicMock()
    mock_client.__enter__ = MagicMock(return_value=mock_client)
    mock_client.__exit__ = MagicMock(return_value=False)
    mock_client.get.return_value = mock_response
    return mock_client
