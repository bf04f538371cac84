"""Owned cover status snapshot."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from pycover.models._base import CoverEnum
from pycover.models.cover import DoorState


class CoverOperation(CoverEnum):
    """Action most recently requested for the cover."""

    UNKNOWN = -1
    WAITING = 0
    OPEN = 1
    CLOSE = 2
    QUERY = 3


class CoverStatus(BaseModel):
    """Immutable view of the tracked cover.

    A new instance replaces the previous one on every update; readers
    never observe a partially applied change.
    """

    model_config = ConfigDict(frozen=True)

    door_state: DoorState = DoorState.UNKNOWN
    changed_at: datetime | None = None
    operation: CoverOperation = CoverOperation.WAITING
    message_id: str | None = None
