"""Journey progress bar display."""

from rich.panel import Panel
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn

from ..models import JourneyView

NAME_WIDTH = 15


def build_progress_bar(view: JourneyView) -> Panel:
    """Progress measured in completed stops, from origin to terminus."""
    if not view.stops:
        return Panel("No station data", title="Progress")

    first, last = view.stops[0], view.stops[-1]

    progress = Progress(
        TextColumn("[bold blue]{task.fields[origin]}"),
        BarColumn(bar_width=40, complete_style="green", finished_style="green"),
        TextColumn("[bold blue]{task.fields[dest]}"),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        MofNCompleteColumn(),
        TextColumn("[dim]stops[/]"),
    )
    progress.add_task(
        "journey",
        total=len(view.stops),
        completed=view.completed_count,
        origin=(first.station_name or first.station_code)[:NAME_WIDTH],
        dest=(last.station_name or last.station_code)[:NAME_WIDTH],
    )

    title = "[bold]Journey Progress[/]"
    current = view.current_stop
    if not view.has_live_data:
        title += " [dim](no live data)[/]"
    elif current is not None:
        title += f" [dim]• at {current.station_name or current.station_code}[/]"
    return Panel(progress, title=title, border_style="blue")
