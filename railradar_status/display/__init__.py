"""Display rendering components for railradar-status."""

from .header import build_header, build_location_text
from .stations import build_stations_table, status_label, get_status_style
from .progress import build_progress_bar
from .compact import build_compact_display
from .stats import build_stats_panel
from .errors import build_error_panel, build_not_found_panel

__all__ = [
    "build_header",
    "build_location_text",
    "build_stations_table",
    "status_label",
    "get_status_style",
    "build_progress_bar",
    "build_compact_display",
    "build_stats_panel",
    "build_error_panel",
    "build_not_found_panel",
]
