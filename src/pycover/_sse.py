"""Line-oriented server-sent-event decoder.

Only the subset of the SSE format used by the event source is handled:
``event``, ``data`` (repeatable, newline-joined), ``id`` and ``retry``.
Lines without a ``:`` are ignored, unknown fields are ignored and a
blank line terminates the pending event.
"""

from __future__ import annotations

import re
from collections.abc import AsyncIterable, AsyncIterator, Iterable, Iterator
from dataclasses import dataclass

from pycover.exceptions import CoverProtocolError

_RETRY_RE = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True, slots=True)
class LogicalEvent:
    """One decoded event block."""

    id: str = ""
    type: str = ""
    data: str = ""
    retry: int | None = None

    @property
    def is_empty(self) -> bool:
        """Whether the block carried nothing worth emitting.

        A ``retry`` of zero (or below) counts as unset.
        """
        return not (self.type or self.data or self.id or (self.retry is not None and self.retry > 0))


class EventDecoder:
    """Incremental decoder turning text lines into :class:`LogicalEvent` values.

    A decoder is bound to one stream; build a new one after reconnecting.
    """

    def __init__(self) -> None:
        self._id = ""
        self._type = ""
        self._data: list[str] = []
        self._retry: int | None = None

    def _take(self) -> LogicalEvent | None:
        event = LogicalEvent(
            id=self._id,
            type=self._type,
            data="\n".join(self._data),
            retry=self._retry,
        )
        self._id = ""
        self._type = ""
        self._data = []
        self._retry = None
        if event.is_empty:
            return None
        return event

    def feed_line(self, line: str) -> LogicalEvent | None:
        """Process one line (without its terminator).

        Returns the completed event when *line* is a blank terminator for
        a non-empty block, otherwise ``None``.

        Raises
        ------
        CoverProtocolError
            If a ``retry`` field is not a base-10 integer.
        """
        if line.endswith("\r"):
            line = line[:-1]
        if line == "":
            return self._take()

        if ":" not in line:
            return None

        raw_field, _, raw_value = line.partition(":")
        field = raw_field.strip()
        value = raw_value.strip()

        if field == "event":
            self._type = value
        elif field == "data":
            self._data.append(value)
        elif field == "id":
            self._id = value
        elif field == "retry":
            if not _RETRY_RE.fullmatch(value):
                raise CoverProtocolError(f"Invalid retry value: {value!r}")
            self._retry = int(value)
        return None

    def finish(self) -> LogicalEvent | None:
        """Flush the pending event at end-of-stream."""
        return self._take()


def iter_events(lines: Iterable[str]) -> Iterator[LogicalEvent]:
    """Decode events from an iterable of text lines.

    Line terminators are stripped, so file objects and
    ``str.splitlines(keepends=True)`` output can be passed directly.
    Errors raised while reading *lines* propagate unchanged.
    """
    decoder = EventDecoder()
    for line in lines:
        event = decoder.feed_line(line.rstrip("\n"))
        if event is not None:
            yield event
    last = decoder.finish()
    if last is not None:
        yield last


def parse_all(text: str) -> list[LogicalEvent]:
    """Decode every event contained in *text*."""
    return list(iter_events(text.split("\n")))


async def aiter_events(lines: AsyncIterable[bytes]) -> AsyncIterator[LogicalEvent]:
    """Decode events from an async iterable of raw byte lines.

    This is the shape of ``aiohttp.StreamReader`` iteration, which yields
    each line including its ``\\n`` terminator.
    """
    decoder = EventDecoder()
    async for raw in lines:
        event = decoder.feed_line(raw.decode("utf-8", errors="replace").rstrip("\n"))
        if event is not None:
            yield event
    last = decoder.finish()
    if last is not None:
        yield last
