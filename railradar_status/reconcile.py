"""
Itinerary reconciliation: merge the scheduled itinerary with the live feed.

Pipeline per lookup response:

    match(itinerary, feed) -> MatchIndex
    for each stop: classify -> annotate -> build_stop_view

Everything here is pure. Times are turned into text only through the
localizer callable passed to `reconcile`.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable

from .config import TIME_PLACEHOLDER
from .models import (
    CurrentLocation, DelayAnnotation, Itinerary, JourneyView, Leg, LiveFeed,
    LiveStopRecord, RecordStatus, ScheduledStop, StopStatus, StopView, Verdict,
    format_time,
)

logger = logging.getLogger(__name__)

Localizer = Callable[[datetime], str]

# Shown in the actual-time column when a stop has no actual time to show
STATUS_PLACEHOLDERS = {
    StopStatus.COMPLETED: "✓ Completed",
    StopStatus.DEPARTED: "✓ Completed",
    StopStatus.CURRENT: "● At station",
    StopStatus.UPCOMING: TIME_PLACEHOLDER,
    StopStatus.SCHEDULED: TIME_PLACEHOLDER,
}


@dataclass(frozen=True)
class MatchIndex:
    """
    Live records keyed by upper-cased station code, plus the resolved pointer.

    `frontier_index` is the furthest stop whose own record shows the train got there.
    """
    records: dict[str, LiveStopRecord] = field(default_factory=dict)
    pointer: CurrentLocation | None = None
    pointer_index: int | None = None
    frontier_index: int | None = None

    def record_for(self, station_code: str) -> LiveStopRecord | None:
        return self.records.get((station_code or "").upper())


@dataclass(frozen=True)
class Classification:
    status: StopStatus
    is_current: bool = False
    # Set when a later stop took over as current; the stop is not shown as departed
    superseded: bool = False


# =============================================================================
# StopMatcher
# =============================================================================


def match(itinerary: Itinerary, live_feed: LiveFeed | None) -> MatchIndex:
    """
    Index live records by station code and resolve the current-location pointer.

    A missing feed gives an empty index. A pointer naming a station that is not
    on the itinerary is dropped.
    """
    if not isinstance(live_feed, LiveFeed):
        return MatchIndex()

    records: dict[str, LiveStopRecord] = {}
    for record in live_feed.records:
        code = (record.station_code or "").upper()
        if not code:
            continue
        if code in records:
            logger.debug("Ignoring duplicate live record for %s", code)
            continue
        records[code] = record

    frontier_index = None
    for stop in itinerary.stops:
        record = records.get(stop.station_code.upper())
        if record is not None and record.shows_reached:
            frontier_index = max(stop.sequence_index, frontier_index or 0)

    pointer = live_feed.current_location
    pointer_index = None
    if pointer is not None:
        pointer_code = (pointer.station_code or "").upper()
        for stop in itinerary.stops:
            if stop.station_code.upper() == pointer_code:
                pointer_index = stop.sequence_index
                break
        if pointer_index is None:
            logger.debug("Current location %r is not on the itinerary", pointer.station_code)
            pointer = None

    return MatchIndex(
        records=records,
        pointer=pointer,
        pointer_index=pointer_index,
        frontier_index=frontier_index,
    )


# =============================================================================
# StatusClassifier
# =============================================================================


def _classify_by_tag(tag: RecordStatus, is_terminus: bool) -> StopStatus:
    if tag is RecordStatus.DEPARTED:
        return StopStatus.COMPLETED
    if tag is RecordStatus.ARRIVED:
        # Arriving at the terminus ends the journey
        return StopStatus.COMPLETED if is_terminus else StopStatus.CURRENT
    return StopStatus.UPCOMING


def _classify_by_times(record: LiveStopRecord, is_terminus: bool) -> StopStatus:
    has_arr = record.actual_arrival is not None
    has_dep = record.actual_departure is not None

    if has_arr and not has_dep and not is_terminus:
        return StopStatus.CURRENT
    if has_dep or (has_arr and is_terminus):
        return StopStatus.COMPLETED
    return StopStatus.UPCOMING


def _classify_by_position(sequence_index: int, pointer_index: int) -> StopStatus:
    if sequence_index < pointer_index:
        return StopStatus.COMPLETED
    if sequence_index == pointer_index:
        return StopStatus.CURRENT
    return StopStatus.UPCOMING


def classify(stop: ScheduledStop, match_index: MatchIndex, total_stops: int) -> Classification:
    """
    Classify one stop using the first tier that has data:

    1. the record's explicit status tag
    2. the record's actual arrival/departure times
    3. the stop's position relative to the current-location pointer
    4. nothing known: Scheduled

    Tiers 3 and 4 only see stops without a live record. A record with neither tag
    nor actual time says nothing about position, so its stop stays Scheduled.
    Without a pointer, stops beyond the furthest stop that live records show as
    reached are Upcoming; the train cannot have been there yet.
    """
    is_terminus = stop.sequence_index == total_stops - 1
    record = match_index.record_for(stop.station_code)

    if record is not None and record.status is not None:
        status = _classify_by_tag(record.status, is_terminus)
    elif record is not None and record.has_actual_time:
        status = _classify_by_times(record, is_terminus)
    elif record is not None:
        status = StopStatus.SCHEDULED
    elif match_index.pointer_index is not None:
        status = _classify_by_position(stop.sequence_index, match_index.pointer_index)
    elif match_index.frontier_index is not None and stop.sequence_index > match_index.frontier_index:
        status = StopStatus.UPCOMING
    else:
        status = StopStatus.SCHEDULED

    return Classification(status=status, is_current=status is StopStatus.CURRENT)


# =============================================================================
# DelayAnnotator
# =============================================================================


def annotate(stop: ScheduledStop, record: LiveStopRecord | None, total_stops: int) -> tuple[DelayAnnotation, ...]:
    """Delay annotations for the legs that apply to this stop, arrival first."""
    if record is None:
        return ()

    annotations = []
    legs = (
        (Leg.ARRIVAL, record.delay_arrival_minutes, stop.sequence_index > 0),
        (Leg.DEPARTURE, record.delay_departure_minutes, stop.sequence_index < total_stops - 1),
    )
    for leg, minutes, applies in legs:
        if not applies or minutes is None:
            continue
        annotations.append(DelayAnnotation(leg=leg, minutes=minutes, verdict=Verdict.for_minutes(minutes)))
    return tuple(annotations)


# =============================================================================
# View assembly
# =============================================================================


def _localize(localizer: Localizer, dt: datetime | None) -> str | None:
    """Format one instant. A value the localizer cannot handle is dropped."""
    if dt is None:
        return None
    try:
        text = localizer(dt)
    except (ValueError, OverflowError, OSError) as e:
        logger.debug("Dropping unformattable time %r: %s", dt, e)
        return None
    return text or None


def _scheduled_display(stop: ScheduledStop, is_origin: bool, is_terminus: bool, localizer: Localizer) -> str:
    arr = _localize(localizer, stop.scheduled_arrival) or TIME_PLACEHOLDER
    dep = _localize(localizer, stop.scheduled_departure) or TIME_PLACEHOLDER

    if is_origin and not is_terminus:
        return f"Start\n{dep}"
    if is_terminus and not is_origin:
        return f"{arr}\nEnd"
    return f"Arr: {arr}\nDep: {dep}"


def _actual_display(
    record: LiveStopRecord | None, status: StopStatus,
    is_origin: bool, is_terminus: bool, localizer: Localizer,
) -> str:
    lines = []
    if record is not None:
        if not is_origin:
            arr = _localize(localizer, record.actual_arrival)
            if arr:
                lines.append(f"Arr: {arr}")
        if not is_terminus:
            dep = _localize(localizer, record.actual_departure)
            if dep:
                lines.append(f"Dep: {dep}")

    if lines:
        return "\n".join(lines)
    return STATUS_PLACEHOLDERS[status]


def build_stop_view(
    stop: ScheduledStop,
    match_index: MatchIndex,
    total_stops: int,
    localizer: Localizer = format_time,
    classification: Classification | None = None,
) -> StopView:
    """Assemble the display view of one stop."""
    if classification is None:
        classification = classify(stop, match_index, total_stops)

    is_origin = stop.sequence_index == 0
    is_terminus = stop.sequence_index == total_stops - 1
    record = match_index.record_for(stop.station_code)
    status = classification.status

    # Completed non-terminus stops with a departure time read as "Departed"
    caption = ""
    refinable = not is_terminus and not classification.superseded
    if status is StopStatus.COMPLETED and record is not None and refinable:
        left_at = _localize(localizer, record.actual_departure)
        if left_at:
            status = StopStatus.DEPARTED
            caption = f"Left at {left_at}"

    platform = stop.platform or (record.platform if record is not None else None)

    return StopView(
        station_code=stop.station_code,
        station_name=stop.station_name,
        sequence_index=stop.sequence_index,
        scheduled_display=_scheduled_display(stop, is_origin, is_terminus, localizer),
        actual_display=_actual_display(record, status, is_origin, is_terminus, localizer),
        status=status,
        delay_annotations=annotate(stop, record, total_stops),
        is_current=classification.is_current,
        caption=caption,
        platform=platform,
        is_origin=is_origin,
        is_terminus=is_terminus,
        is_halt=stop.is_halt,
        day=stop.day,
    )


def _single_current(classifications: list[Classification]) -> list[Classification]:
    """Keep only the furthest-along Current stop; earlier ones are demoted to Completed."""
    current = [i for i, c in enumerate(classifications) if c.is_current]
    if len(current) <= 1:
        return classifications

    logger.debug("Live data marks %d stops as current; keeping the last", len(current))
    demoted = Classification(status=StopStatus.COMPLETED, superseded=True)
    return [demoted if i in current[:-1] else c for i, c in enumerate(classifications)]


def reconcile(
    itinerary: Itinerary,
    live_feed: LiveFeed | None,
    localizer: Localizer = format_time,
) -> JourneyView:
    """Produce the per-stop view of a journey. Never raises for well-typed input."""
    stops = sorted(itinerary.stops, key=lambda s: s.sequence_index)
    # Positions are taken from the sorted order so indexes are always 0..N-1
    stops = [s if s.sequence_index == i else replace(s, sequence_index=i) for i, s in enumerate(stops)]
    itinerary = Itinerary(stops=tuple(stops))
    total = len(stops)

    match_index = match(itinerary, live_feed)
    classifications = _single_current([classify(stop, match_index, total) for stop in stops])

    views = tuple(
        build_stop_view(stop, match_index, total, localizer, classification)
        for stop, classification in zip(stops, classifications)
    )

    matched = any(match_index.record_for(stop.station_code) is not None for stop in stops)
    has_live_data = matched or match_index.pointer is not None
    current_name = None
    if match_index.pointer_index is not None:
        current_name = stops[match_index.pointer_index].station_name

    feed = live_feed if isinstance(live_feed, LiveFeed) else None
    return JourneyView(
        stops=views,
        has_live_data=has_live_data,
        summary=feed.summary if feed else None,
        last_updated_at=feed.last_updated_at if feed else None,
        current_location=match_index.pointer,
        current_station_name=current_name,
        data_source=feed.data_source if feed else None,
    )
