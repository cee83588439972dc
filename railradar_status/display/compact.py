"""Single-line compact display mode."""

from datetime import datetime

from rich.text import Text

from ..models import JourneyView, StopStatus, Train
from .stations import delay_style, status_label


def build_compact_display(train: Train, view: JourneyView, last_fetch_time: datetime | None = None) -> Text:
    """Build a single-line compact display for the train status."""
    total = len(view.stops)
    progress_pct = (view.completed_count / total * 100) if total > 0 else 0

    compact = Text()
    compact.append(f"🚆 {train.name or 'Train'} #{train.number}", style="bold")
    compact.append(" | ")

    current = view.current_stop
    if current is not None:
        compact.append(f"{status_label(current)} {current.station_code}", style="cyan")
    else:
        next_stop = next((s for s in view.stops if s.status is StopStatus.UPCOMING), None)
        if next_stop is not None:
            compact.append(f"Next: {next_stop.station_code}", style="cyan")
        elif not view.has_live_data:
            compact.append("No live data", style="dim")
        else:
            compact.append("Position unknown", style="dim")

    # Latest known delay, from the furthest stop that has one
    annotated = [s for s in view.stops if s.delay_annotations]
    if annotated:
        last = annotated[-1]
        compact.append(f" ({last.delay_annotations[-1].describe()})", style=delay_style(last))

    compact.append(f" | {progress_pct:.0f}%")

    if view.summary:
        compact.append(f" | {view.summary}", style="yellow")

    if last_fetch_time:
        compact.append(f" | Updated {last_fetch_time.strftime('%H:%M:%S')}", style="dim")

    return compact
