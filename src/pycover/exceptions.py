"""Custom exception hierarchy for pycover."""

from __future__ import annotations


class CoverError(Exception):
    """Base exception for all pycover errors."""


class CoverConfigError(CoverError):
    """Invalid or missing configuration."""


class CoverTransportError(CoverError):
    """HTTP-level failure (connect, mid-stream read, non-2xx status)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        url: str = "",
    ) -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class CoverProtocolError(CoverError):
    """The event source sent something that violates the stream format.

    Covers a non-numeric ``retry`` field and a malformed JSON body on a
    ``state`` event for the tracked entity.  Both end the current poll
    cycle; the supervisor treats them exactly like transport errors.
    """


class CoverStreamBusyError(CoverError):
    """A poll cycle is already running on this stream."""


class CoverActionInProgressError(CoverError):
    """Another open/close/refresh action has not finished yet."""
