"""Pydantic models for cover state payloads and snapshots."""

from pycover.models._base import CoverBaseModel, CoverEnum
from pycover.models.cover import (
    DoorState,
    EntityStateSnapshot,
    MappingVariant,
    StateChangeEvent,
    map_door_state,
)
from pycover.models.status import CoverOperation, CoverStatus

__all__ = [
    "CoverBaseModel",
    "CoverEnum",
    "CoverOperation",
    "CoverStatus",
    "DoorState",
    "EntityStateSnapshot",
    "MappingVariant",
    "StateChangeEvent",
    "map_door_state",
]
