"""Client configuration for pycover."""

from __future__ import annotations

import dataclasses
import os
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pycover.exceptions import CoverConfigError
from pycover.models.cover import MappingVariant


@dataclasses.dataclass(frozen=True)
class CoverConfig:
    """Client configuration.

    Parameters
    ----------
    source_url : str
        URL of the server-sent-event endpoint publishing entity state
        (for example ``http://esphome.local/events``).
    entity_id : str
        Identifier of the tracked cover entity as it appears in the
        ``id`` field of ``state`` events.
    open_webhook_url : str or None
        URL that is POSTed to when an open action is requested.
    close_webhook_url : str or None
        URL that is POSTed to when a close action is requested.
    poll_timeout : float
        Upper bound in seconds for a single poll cycle.  The stream is
        expected to stay open; this only guards against a wedged
        connection.  Defaults to one hour.
    event_queue_size : int
        Capacity of the queue between the stream and its consumer.
        State changes that arrive while the queue is full are dropped.
    mapping : MappingVariant
        Which vendor state vocabulary to map onto door states.
    quick_failure_window : float
        A cycle that ends within this many seconds of the previous
        cycle start counts as a quick failure.
    quick_failure_limit : int
        Number of consecutive quick failures tolerated before the
        supervisor pauses for ``cooldown`` seconds.
    cooldown : float
        Pause in seconds applied after too many quick failures.
    action_timeout : float
        Timeout in seconds for webhook POSTs.
    settle_timeout : float
        Seconds an action waits for the door to reach its target state.
    time_zone : str
        IANA time zone used when rendering status text.
    """

    source_url: str
    entity_id: str = "cover-door"
    open_webhook_url: str | None = None
    close_webhook_url: str | None = None
    poll_timeout: float = 3600.0
    event_queue_size: int = 1
    mapping: MappingVariant = MappingVariant.STRICT
    quick_failure_window: float = 60.0
    quick_failure_limit: int = 3
    cooldown: float = 60.0
    action_timeout: float = 60.0
    settle_timeout: float = 30.0
    time_zone: str = "UTC"

    def validate(self) -> None:
        """Raise :class:`CoverConfigError` when the configuration is unusable."""
        if not self.source_url or not self.source_url.strip():
            raise CoverConfigError("source_url is required")
        if not self.entity_id or not self.entity_id.strip():
            raise CoverConfigError("entity_id must be non-empty")
        if self.event_queue_size < 1:
            raise CoverConfigError("event_queue_size must be at least 1")
        if self.quick_failure_limit < 0:
            raise CoverConfigError("quick_failure_limit must not be negative")
        for name in ("poll_timeout", "action_timeout", "settle_timeout"):
            if getattr(self, name) <= 0:
                raise CoverConfigError(f"{name} must be positive")
        try:
            ZoneInfo(self.time_zone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise CoverConfigError(f"time_zone is not a known zone: {self.time_zone!r}") from exc

    @classmethod
    def from_env(cls, **overrides: Any) -> CoverConfig:
        """Create configuration from environment variables.

        Reads ``PYCOVER_SOURCE_URL`` and optional ``PYCOVER_*`` variables.
        Explicit keyword arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        CoverConfig
            Populated configuration.

        Raises
        ------
        CoverConfigError
            If a numeric or enum variable cannot be parsed, or the
            resulting configuration fails :meth:`validate`.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "PYCOVER_SOURCE_URL": "source_url",
            "PYCOVER_ENTITY_ID": "entity_id",
            "PYCOVER_WEBHOOK_OPEN_URL": "open_webhook_url",
            "PYCOVER_WEBHOOK_CLOSE_URL": "close_webhook_url",
            "PYCOVER_TIME_ZONE": "time_zone",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_NUMERIC_MAP: dict[str, tuple[str, type]] = {
            "PYCOVER_POLL_TIMEOUT": ("poll_timeout", float),
            "PYCOVER_EVENT_QUEUE_SIZE": ("event_queue_size", int),
            "PYCOVER_QUICK_FAILURE_WINDOW": ("quick_failure_window", float),
            "PYCOVER_QUICK_FAILURE_LIMIT": ("quick_failure_limit", int),
            "PYCOVER_COOLDOWN": ("cooldown", float),
            "PYCOVER_ACTION_TIMEOUT": ("action_timeout", float),
            "PYCOVER_SETTLE_TIMEOUT": ("settle_timeout", float),
        }
        for env_key, (field_name, caster) in _ENV_NUMERIC_MAP.items():
            raw = env.get(env_key)
            if raw is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = caster(raw)
            except ValueError as exc:
                raise CoverConfigError(f"{env_key} is not a valid {caster.__name__}: {raw!r}") from exc

        mapping_env = env.get("PYCOVER_MAPPING")
        if mapping_env is not None and "mapping" not in overrides:
            try:
                config_kwargs["mapping"] = MappingVariant(mapping_env.strip().lower())
            except ValueError as exc:
                raise CoverConfigError(f"PYCOVER_MAPPING must be one of {[m.value for m in MappingVariant]}") from exc

        config_kwargs.update(overrides)

        if "source_url" not in config_kwargs:
            raise CoverConfigError("PYCOVER_SOURCE_URL is required")

        config = cls(**config_kwargs)
        config.validate()
        return config
