"""Header panel: train details, current location and last update."""

from datetime import datetime

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..config import DISPLAY_TZ_LABEL
from ..models import JourneyView, Train, format_datetime


def _format_train_line(train: Train) -> str:
    parts = [p for p in (train.type, f"Zone: {train.zone}" if train.zone else "") if p]
    if train.distance_km:
        parts.append(f"Distance: {train.distance_km}km")
    return " • ".join(parts)


def build_location_text(view: JourneyView) -> Text:
    """Describe where the train is, or why that is unknown."""
    location = view.current_location
    if location is None:
        text = Text()
        text.append("No Live Data", style="bold yellow")
        text.append(f"  {view.summary or 'Live tracking not available for this train'}", style="dim")
        return text

    if view.current_station_name:
        station = f"{view.current_station_name} ({location.station_code})"
    else:
        station = location.station_code

    text = Text()
    text.append(f"{location.status} {station}".strip(), style="bold cyan")
    if location.distance_from_origin_km:
        text.append(f" • Distance from Origin: {round(location.distance_from_origin_km)}km", style="dim")
    if location.distance_from_last_station_km:
        text.append(f" • {location.distance_from_last_station_km:.1f}km past last station", style="dim")
    if location.latitude is not None and location.longitude is not None:
        text.append(f"\n{location.latitude:.4f}, {location.longitude:.4f}", style="dim")
    if view.data_source:
        text.append(f"  Source: {view.data_source}", style="dim")
    return text


def build_header(
    train: Train,
    view: JourneyView,
    journey_date: str | None = None,
    last_fetch_time: datetime | None = None,
    last_error: str | None = None,
    refresh_interval: int | None = None,
) -> Panel:
    """Build the header panel with train info."""
    header = Table.grid(padding=(0, 2))
    header.add_column(justify="left", style="bold white")
    header.add_column(justify="left")

    title = f"🚆 {train.number} - {train.name}" if train.name else f"🚆 Train #{train.number}"
    header.add_row(Text(title), Text(journey_date or "", style="dim"))

    if train.source_name or train.destination_name:
        header.add_row(f"{train.source_name or '?'} → {train.destination_name or '?'}", "")

    train_line = _format_train_line(train)
    if train_line:
        header.add_row(Text(train_line, style="dim"), "")
    if train.running_days:
        header.add_row(Text(f"Running Days: {train.running_days}", style="dim"), "")

    header.add_row(build_location_text(view), "")

    if view.current_location is not None and view.summary:
        header.add_row(Text(view.summary, style="yellow"), "")
    if view.last_updated_at:
        header.add_row(
            Text(f"Last updated: {format_datetime(view.last_updated_at)} {DISPLAY_TZ_LABEL}", style="dim"),
            ""
        )

    return Panel(
        header,
        title="[bold cyan]Train Running Status[/]",
        subtitle=f"[dim]{_status_subtitle(last_fetch_time, last_error, refresh_interval)}[/]",
        border_style="cyan"
    )


def _status_subtitle(last_fetch_time, last_error, refresh_interval) -> str:
    if last_fetch_time:
        status_parts = [f"Fetched: {last_fetch_time.strftime('%H:%M:%S')}"]
    else:
        status_parts = ["Fetched: —"]
    if last_error:
        status_parts.append(f"[yellow]⚠ {last_error}[/]")
    if refresh_interval:
        status_parts.append(f"Refresh: {refresh_interval}s")
        status_parts.append("Press Ctrl+C to quit")
    return " | ".join(status_parts)
