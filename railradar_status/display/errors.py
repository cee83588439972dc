"""Error and not-found display panels."""

from rich.panel import Panel
from rich.text import Text

from ..config import API_KEY_ENV

# Extra guidance for error codes the user can act on
ERROR_HINTS = {
    "NO_API_KEY": f"Export {API_KEY_ENV} with your RailRadar API key and try again.",
    "UPSTREAM_UNAVAILABLE": "RailRadar's live data source is down; it will be retried on the next refresh.",
    "TRANSPORT_ERROR": "Check your network connection.",
}


def build_error_panel(error: str, code: str | None = None) -> Panel:
    content = Text(f"Error: {error}", style="bold red")
    hint = ERROR_HINTS.get(code or "")
    if hint:
        content.append(f"\n\n{hint}", style="dim")
    if code:
        content.append(f"\n[{code}]", style="dim italic")

    return Panel(content, title="[bold red]Lookup Failed[/]", border_style="red")


def build_not_found_panel(train_number: str, journey_date: str | None = None) -> Panel:
    """Panel for a train number the API does not know, or that does not run on the date."""
    when = f" on {journey_date}" if journey_date else ""
    reasons = (
        "The train number is incorrect",
        "The train does not run on this date",
        "The journey date is too far in the past or future",
    )

    content = Text()
    content.append(f"Train #{train_number} not found{when}.\n\n", style="bold yellow")
    content.append("This could mean:\n", style="white")
    for reason in reasons:
        content.append(f"• {reason}\n", style="dim")
    content.append("\nCheck the train number and journey date and try again.", style="white")

    return Panel(content, title="[bold yellow]Train Not Found[/]", border_style="yellow")
