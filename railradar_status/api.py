"""API communication, retry logic and response normalization for the RailRadar API."""

import logging
import os
from datetime import date, datetime
from time import sleep
from typing import Any

import httpx

from .config import API_BASE, API_KEY_ENV, MAX_RETRIES, REQUEST_TIMEOUT, RETRY_DELAY
from .models import (
    CurrentLocation, Itinerary, LiveFeed, LiveStopRecord, RecordStatus,
    ScheduledStop, Train, TrainStatus,
    _now, coerce_int, parse_journey_date, parse_time, running_days_names,
    schedule_instant,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Fetching
# =============================================================================


def _error(message: str, code: str | None = None) -> dict[str, Any]:
    return {"error": message, "code": code}


def _envelope_error(payload: dict) -> dict[str, Any]:
    error = payload.get("error") or {}
    if not isinstance(error, dict):
        return _error(str(error))
    message = error.get("message") or "Unknown error from RailRadar"
    return _error(message, error.get("code"))


def fetch_train_status(
    train_number: str,
    journey_date: str,
    api_key: str | None = None,
) -> dict[str, Any]:
    """
    Fetch the running status of a train from the RailRadar API with retry logic.

    Returns the response's `data` dict on success, or {"error": ..., "code": ...}.
    Transport errors, 5xx responses and envelope errors flagged `retryable` are
    retried; everything else fails immediately.
    """
    api_key = api_key or os.environ.get(API_KEY_ENV)
    if not api_key:
        return _error(f"{API_KEY_ENV} is not set", "NO_API_KEY")

    url = f"{API_BASE}/trains/{train_number}"
    params = {"journeyDate": journey_date}
    headers = {"X-Api-Key": api_key}
    result: dict[str, Any] = _error("No response from RailRadar")

    for attempt in range(MAX_RETRIES):
        retry = False
        try:
            with httpx.Client(timeout=REQUEST_TIMEOUT) as client:
                response = client.get(url, params=params, headers=headers)
                try:
                    payload = response.json()
                except ValueError:
                    payload = None

                if not isinstance(payload, dict):
                    # Error pages are not JSON; report the HTTP status when there is one
                    response.raise_for_status()
                    return _error("Invalid response format from server", "BAD_RESPONSE")

                if payload.get("success") and isinstance(payload.get("data"), dict):
                    return payload["data"]

                if "success" not in payload:
                    response.raise_for_status()
                    return _error("Invalid response format from server", "BAD_RESPONSE")

                result = _envelope_error(payload)
                error = payload.get("error")
                retry = isinstance(error, dict) and bool(error.get("retryable"))

        except httpx.HTTPStatusError as e:
            result = _error(f"HTTP {e.response.status_code}", "HTTP_ERROR")
            retry = e.response.status_code >= 500

        except httpx.HTTPError as e:
            result = _error(str(e) or e.__class__.__name__, "TRANSPORT_ERROR")
            retry = True

        if not retry or attempt == MAX_RETRIES - 1:
            break
        logger.warning("Fetching train %s failed (%s), retrying", train_number, result["error"])
        sleep(RETRY_DELAY * (attempt + 1))

    logger.error("Fetching train %s failed: %s", train_number, result["error"])
    return result


# =============================================================================
# Normalization
# =============================================================================


def _float_or_none(value) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _str(value) -> str:
    return "" if value is None else str(value)


def parse_train(raw: dict) -> Train:
    """Build train metadata from the `train` object."""
    return Train(
        number=_str(raw.get("trainNumber")),
        name=_str(raw.get("trainName")),
        type=_str(raw.get("type")),
        zone=_str(raw.get("zone")),
        source_code=_str(raw.get("sourceStationCode")),
        source_name=_str(raw.get("sourceStationName")),
        destination_code=_str(raw.get("destinationStationCode")),
        destination_name=_str(raw.get("destinationStationName")),
        running_days=running_days_names(raw.get("runningDaysBitmap")),
        return_train_number=_str(raw.get("returnTrainNumber")),
        travel_time_minutes=coerce_int(raw.get("travelTimeMinutes")),
        total_halts=coerce_int(raw.get("totalHalts")),
        distance_km=coerce_int(raw.get("distanceKm")),
        avg_speed_kmph=coerce_int(raw.get("avgSpeedKmph")),
    )


def parse_itinerary(route: list[dict], journey_date: date | None, include_passing: bool = False) -> Itinerary:
    """
    Build the itinerary from the scheduled `route` list.

    Scheduled times are minutes after midnight on the entry's `day` (1-based).
    Stops where the train does not halt are skipped unless include_passing.
    Entries are ordered by `sequence` and re-indexed from 0.
    """
    entries = [r for r in route or [] if isinstance(r, dict) and r.get("stationCode")]
    if not include_passing:
        entries = [r for r in entries if r.get("isHalt", 1)]
    entries.sort(key=lambda r: coerce_int(r.get("sequence")) or 0)

    stops = []
    for index, entry in enumerate(entries):
        day = coerce_int(entry.get("day")) or 1
        stops.append(ScheduledStop(
            station_code=_str(entry.get("stationCode")).upper(),
            station_name=_str(entry.get("stationName")) or _str(entry.get("stationCode")),
            sequence_index=index,
            scheduled_arrival=schedule_instant(journey_date, day, coerce_int(entry.get("scheduledArrival"))),
            scheduled_departure=schedule_instant(journey_date, day, coerce_int(entry.get("scheduledDeparture"))),
            platform=entry.get("platform") or None,
            is_halt=bool(entry.get("isHalt", 1)),
            day=day,
        ))

    return Itinerary(stops=tuple(stops))


def stamp_record_status(
    actual_arrival: datetime | None,
    actual_departure: datetime | None,
    now: datetime,
) -> RecordStatus | None:
    """Derive a status tag from actual times relative to `now`."""
    if actual_departure is not None and actual_departure < now:
        return RecordStatus.DEPARTED
    if actual_arrival is not None and actual_arrival <= now:
        return RecordStatus.ARRIVED
    if actual_arrival is not None and actual_arrival > now:
        return RecordStatus.UPCOMING
    return None


def parse_stop_record(raw: dict, now: datetime | None = None) -> LiveStopRecord | None:
    """
    Build one live record. Station code comes from `station.code` or `stationCode`.

    An explicit `status` tag is kept. Otherwise, when `now` is given, the tag is
    stamped from the actual times.
    """
    station = raw.get("station")
    code = station.get("code") if isinstance(station, dict) else None
    code = code or raw.get("stationCode")
    if not code or not isinstance(code, str):
        return None

    actual_arrival = parse_time(raw.get("actualArrival"))
    actual_departure = parse_time(raw.get("actualDeparture"))

    status = RecordStatus.from_value(raw.get("status"))
    if status is None and now is not None:
        status = stamp_record_status(actual_arrival, actual_departure, now)

    return LiveStopRecord(
        station_code=code.upper(),
        actual_arrival=actual_arrival,
        actual_departure=actual_departure,
        delay_arrival_minutes=coerce_int(raw.get("delayArrivalMinutes")),
        delay_departure_minutes=coerce_int(raw.get("delayDepartureMinutes")),
        status=status,
        platform=raw.get("platform") or None,
    )


def parse_current_location(raw: dict | None) -> CurrentLocation | None:
    if not isinstance(raw, dict):
        return None
    code = raw.get("stationCode")
    if not code or not isinstance(code, str):
        return None
    return CurrentLocation(
        station_code=code.upper(),
        status=_str(raw.get("status")),
        distance_from_origin_km=_float_or_none(raw.get("distanceFromOriginKm")),
        distance_from_last_station_km=_float_or_none(raw.get("distanceFromLastStationKm")),
        last_updated_at=parse_time(raw.get("lastUpdatedAt")),
        latitude=_float_or_none(raw.get("latitude")),
        longitude=_float_or_none(raw.get("longitude")),
    )


def parse_live_feed(raw: dict | None, now: datetime | None = None) -> LiveFeed | None:
    """Build the live feed from `liveData`. Returns None when there is none."""
    if not isinstance(raw, dict):
        return None

    records = []
    for entry in raw.get("route") or []:
        if not isinstance(entry, dict):
            continue
        record = parse_stop_record(entry, now)
        if record is not None:
            records.append(record)

    summary = raw.get("statusSummary")
    return LiveFeed(
        records=tuple(records),
        current_location=parse_current_location(raw.get("currentLocation")),
        summary=summary if isinstance(summary, str) and summary.strip() else None,
        last_updated_at=parse_time(raw.get("lastUpdatedAt")),
        data_source=raw.get("dataSource") or None,
    )


def parse_train_status(
    data: dict,
    journey_date: str | None = None,
    include_passing: bool = False,
) -> TrainStatus:
    """Normalize a successful response's `data` dict."""
    live_raw = data.get("liveData") or data.get("live_data")
    if journey_date is None and isinstance(live_raw, dict):
        journey_date = live_raw.get("journeyDate")
    parsed_date = parse_journey_date(journey_date)

    return TrainStatus(
        train=parse_train(data.get("train") or {}),
        itinerary=parse_itinerary(data.get("route") or [], parsed_date, include_passing),
        live_feed=parse_live_feed(live_raw, now=_now()),
        journey_date=parsed_date,
    )
