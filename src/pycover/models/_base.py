"""Base model and enum for event source payloads.

Every payload model inherits from :class:`CoverBaseModel` which
provides:

* ``extra="ignore"`` so additional vendor fields never fail parsing.
* A ``model_validator(mode="wrap")`` that drops ``null`` values so
  the field default is used.
* A read-only ``raw`` dict that captures the original payload.

State enums inherit from :class:`CoverEnum` which resolves any value
without a mapped member to ``UNKNOWN``.
"""

from __future__ import annotations

import enum
from typing import Any

from pydantic import BaseModel, ConfigDict, ModelWrapValidatorHandler, PrivateAttr, model_validator


class CoverEnum(enum.IntEnum):
    """Base for state enums.

    Every subclass **must** define an ``UNKNOWN`` member.
    Values without a mapped member resolve to ``UNKNOWN`` instead of
    raising ``ValueError``.
    """

    @classmethod
    def _missing_(cls, value: object) -> CoverEnum:
        if hasattr(cls, "UNKNOWN"):
            unknown: CoverEnum = cls.UNKNOWN  # type: ignore[attr-defined]
            return unknown
        return next(iter(cls))

    @property
    def label(self) -> str:
        """Human readable name (``OPENING`` -> ``"Opening"``)."""
        return self.name.replace("_", " ").capitalize()


class CoverBaseModel(BaseModel):
    """Base for payload models decoded from the event stream."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    _raw: dict[str, Any] = PrivateAttr(default_factory=dict)

    @property
    def raw(self) -> dict[str, Any]:
        """Original payload dict, including keys the model ignores."""
        return self._raw

    @model_validator(mode="wrap")
    @classmethod
    def _drop_nulls(cls, values: Any, handler: ModelWrapValidatorHandler[Any]) -> Any:
        """Drop ``null`` values and stash the raw payload."""
        if not isinstance(values, dict):
            return handler(values)
        model = handler({key: value for key, value in values.items() if value is not None})
        # Private storage, so a payload key named "raw" cannot collide.
        model._raw = dict(values)
        return model
