"""Cover entity payloads and door state mapping."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from pycover.models._base import CoverBaseModel, CoverEnum


class DoorState(CoverEnum):
    """Domain state of the tracked door."""

    UNKNOWN = 0
    OPEN = 1
    CLOSED = 2
    OPENING = 3
    CLOSING = 4


class MappingVariant(StrEnum):
    """Vendor state vocabulary used by :func:`map_door_state`.

    ``STRICT`` only recognises ``OPEN``/``CLOSED`` as primary states and
    derives motion from ``current_operation``.  ``PRIMARY_STATE``
    additionally accepts ``OPENING``/``CLOSING`` reported directly as the
    primary state, as some firmware revisions do.
    """

    STRICT = "strict"
    PRIMARY_STATE = "primary_state"


class EntityStateSnapshot(CoverBaseModel):
    """Body of a ``state`` event for a cover entity.

    Example payload::

        {"id": "cover-door", "value": 1, "state": "OPEN",
         "current_operation": "IDLE", "position": 1}
    """

    id: str = ""
    state: str = ""
    current_operation: str = ""
    value: float = 0.0
    position: float = 0.0


_STRICT_TABLE: dict[tuple[str, str], DoorState] = {
    ("OPEN", "IDLE"): DoorState.OPEN,
    ("OPEN", "OPENING"): DoorState.OPENING,
    ("OPEN", "CLOSING"): DoorState.CLOSING,
    ("CLOSED", "IDLE"): DoorState.CLOSED,
}

_PRIMARY_MOTION: dict[str, DoorState] = {
    "OPENING": DoorState.OPENING,
    "CLOSING": DoorState.CLOSING,
}


def map_door_state(
    state: str,
    current_operation: str,
    variant: MappingVariant = MappingVariant.STRICT,
) -> DoorState:
    """Map a vendor ``(state, current_operation)`` pair onto a :class:`DoorState`.

    Pairs outside the table map to ``UNKNOWN``.  Comparison is exact
    (vendor values are upper case).
    """
    mapped = _STRICT_TABLE.get((state, current_operation))
    if mapped is not None:
        return mapped
    if variant == MappingVariant.PRIMARY_STATE:
        return _PRIMARY_MOTION.get(state, DoorState.UNKNOWN)
    return DoorState.UNKNOWN


class StateChangeEvent(BaseModel):
    """A decoded snapshot for the tracked entity and its mapped door state."""

    model_config = ConfigDict(frozen=True)

    snapshot: EntityStateSnapshot
    mapped: DoorState

    @classmethod
    def from_snapshot(
        cls,
        snapshot: EntityStateSnapshot,
        variant: MappingVariant = MappingVariant.STRICT,
    ) -> StateChangeEvent:
        return cls(
            snapshot=snapshot,
            mapped=map_door_state(snapshot.state, snapshot.current_operation, variant),
        )
