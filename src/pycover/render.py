"""Human readable status text."""

from __future__ import annotations

from datetime import datetime, tzinfo
from zoneinfo import ZoneInfo

from pycover.models.cover import DoorState
from pycover.models.status import CoverOperation, CoverStatus

_OPERATION_TEXT: dict[CoverOperation, str] = {
    CoverOperation.WAITING: "Ready",
    CoverOperation.OPEN: "Opening Door",
    CoverOperation.CLOSE: "Closing Door",
    CoverOperation.QUERY: "Refreshing Door Status",
}


def format_changed_at(value: datetime, tz: tzinfo) -> str:
    """Format like ``3:04PM on 2006-01-02`` in *tz*."""
    local = value.astimezone(tz)
    hour = local.hour % 12 or 12
    return f"{hour}:{local:%M%p} on {local:%Y-%m-%d}"


def render_status(status: CoverStatus, tz: tzinfo | str = "UTC") -> str:
    """Two-line status text: current operation, then door state."""
    zone = ZoneInfo(tz) if isinstance(tz, str) else tz
    operation_text = _OPERATION_TEXT.get(status.operation, "")
    if status.changed_at is None or status.door_state == DoorState.UNKNOWN:
        state_text = "(door status unknown)"
    else:
        state_text = f"Door: {status.door_state.label} since {format_changed_at(status.changed_at, zone)}"
    return f"{operation_text}\n{state_text}"
