"""Station table display."""

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..config import TIME_PLACEHOLDER
from ..models import JourneyView, StopStatus, StopView, Verdict


def status_label(stop: StopView) -> str:
    """Upper-case label for a stop's status."""
    if stop.status is StopStatus.CURRENT:
        return "AT STATION"
    if stop.status is StopStatus.COMPLETED:
        # A completed terminus means the train has arrived
        return "ARRIVED" if stop.is_terminus else "COMPLETED"
    return stop.status.value.upper()


def get_status_style(stop: StopView) -> tuple[str, str]:
    """Get display style and icon for a stop."""
    if stop.is_completed:
        return "green", "✓"
    elif stop.status is StopStatus.CURRENT:
        return "cyan bold", "●"
    elif stop.status is StopStatus.UPCOMING:
        return "yellow", "→"
    else:
        return "dim", "○"


def delay_style(stop: StopView) -> str:
    verdicts = {a.verdict for a in stop.delay_annotations}
    if Verdict.LATE in verdicts:
        return "red"
    if Verdict.EARLY in verdicts:
        return "green"
    return "green dim"


def _status_cell(stop: StopView) -> Text:
    style, _ = get_status_style(stop)
    cell = Text(status_label(stop), style=style)
    if stop.caption:
        cell.append(f"\n{stop.caption}", style="dim")
    if stop.delay_annotations:
        delays = "\n".join(a.describe() for a in stop.delay_annotations)
        cell.append(f"\n{delays}", style=delay_style(stop))
    return cell


def _station_cell(stop: StopView, style: str) -> Text:
    cell = Text(stop.station_name, style=style)
    notes = []
    if stop.day > 1:
        notes.append(f"Day {stop.day}")
    if not stop.is_halt:
        notes.append("no halt")
    if notes:
        cell.append(f"\n{' • '.join(notes)}", style="dim")
    return cell


def build_stations_table(view: JourneyView, focus: bool = True) -> Panel:
    """Build the stations table, optionally hiding older completed stops."""
    stops = list(view.stops)

    table = Table(
        show_header=True,
        header_style="bold magenta",
        border_style="dim",
        expand=True,
    )

    table.add_column("", width=2, justify="center")
    table.add_column("Code", width=6)
    table.add_column("Station", min_width=20)
    table.add_column("Scheduled", width=12, justify="center")
    table.add_column("Actual", width=12, justify="center")
    table.add_column("Platform", width=8, justify="center")
    table.add_column("Status & Delay", min_width=16)

    if not stops:
        table.add_row("", "", Text("Route information not available", style="dim italic"), "", "", "", "")
        return Panel(table, title="[bold]Stations[/]", border_style="magenta")

    # Show the last 2 completed stops + everything after when focusing
    if focus and len(stops) > 10:
        completed_count = sum(1 for s in stops if s.is_completed)
        skip_completed = max(0, completed_count - 2)

        if skip_completed > 0:
            table.add_row(
                Text("⋮", style="dim"),
                "",
                Text(f"[{skip_completed} completed stops hidden]", style="dim italic"),
                "", "", "", ""
            )
            stops = _drop_completed(stops, skip_completed)

    for stop in stops:
        style, icon = get_status_style(stop)
        name_style = "bold cyan" if stop.is_current else style

        actual_style = "green" if stop.actual_display != TIME_PLACEHOLDER else "dim"
        table.add_row(
            Text(icon, style=style),
            Text(stop.station_code, style=name_style),
            _station_cell(stop, name_style),
            stop.scheduled_display,
            Text(stop.actual_display, style=actual_style),
            stop.platform or TIME_PLACEHOLDER,
            _status_cell(stop),
        )

    return Panel(
        table,
        title="[bold]Stations[/] [dim](times in IST)[/]",
        border_style="magenta"
    )


def _drop_completed(stops: list[StopView], count: int) -> list[StopView]:
    """Drop the first `count` completed stops, keeping everything else in order."""
    kept = []
    for stop in stops:
        if count > 0 and stop.is_completed:
            count -= 1
            continue
        kept.append(stop)
    return kept
