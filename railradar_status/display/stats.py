"""Train statistics panel."""

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..config import TIME_PLACEHOLDER
from ..models import Train, format_duration


def _with_unit(value: int | None, unit: str) -> str:
    return f"{value} {unit}" if value else TIME_PLACEHOLDER


def build_stats_panel(train: Train) -> Panel:
    """Build a one-row grid of static train statistics."""
    stats = [
        ("Travel Time", format_duration(train.travel_time_minutes)),
        ("Total Distance", _with_unit(train.distance_km, "km")),
        ("Average Speed", _with_unit(train.avg_speed_kmph, "km/h")),
        ("Total Halts", str(train.total_halts) if train.total_halts is not None else TIME_PLACEHOLDER),
        ("Return Train", train.return_train_number or TIME_PLACEHOLDER),
        ("Zone", train.zone or TIME_PLACEHOLDER),
    ]

    grid = Table.grid(padding=(0, 3), expand=True)
    for _ in stats:
        grid.add_column(justify="center")

    grid.add_row(*(Text(label, style="dim") for label, _ in stats))
    grid.add_row(*(Text(value, style="bold") for _, value in stats))

    return Panel(grid, title="[bold]Train Details[/]", border_style="blue")
