"""pycover - Async tracker for a cover entity published over server-sent events."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pycover")
except PackageNotFoundError:
    __version__ = "0+local"
from pycover._sse import EventDecoder, LogicalEvent, aiter_events, iter_events, parse_all
from pycover.actions import CoverActions
from pycover.client import CoverClient
from pycover.config import CoverConfig
from pycover.exceptions import (
    CoverActionInProgressError,
    CoverConfigError,
    CoverError,
    CoverProtocolError,
    CoverStreamBusyError,
    CoverTransportError,
)
from pycover.models import (
    CoverOperation,
    CoverStatus,
    DoorState,
    EntityStateSnapshot,
    MappingVariant,
    StateChangeEvent,
    map_door_state,
)
from pycover.notify import NotificationSink, StatusNotifier
from pycover.render import render_status
from pycover.state import CoverStateStore
from pycover.stream import CoverEventStream, PollResult
from pycover.supervisor import StreamSupervisor

__all__ = [
    "__version__",
    "CoverActionInProgressError",
    "CoverActions",
    "CoverClient",
    "CoverConfig",
    "CoverConfigError",
    "CoverError",
    "CoverEventStream",
    "CoverOperation",
    "CoverProtocolError",
    "CoverStateStore",
    "CoverStatus",
    "CoverStreamBusyError",
    "CoverTransportError",
    "DoorState",
    "EntityStateSnapshot",
    "EventDecoder",
    "LogicalEvent",
    "MappingVariant",
    "NotificationSink",
    "PollResult",
    "StateChangeEvent",
    "StatusNotifier",
    "StreamSupervisor",
    "aiter_events",
    "iter_events",
    "map_door_state",
    "parse_all",
    "render_status",
]
