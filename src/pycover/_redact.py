"""Helpers for safe logging.

Webhook URLs embed their secret in the path (``/api/webhook/<id>``) or
the query string, and event bodies can be arbitrarily long.  These
helpers shorten and redact values before they reach the logs.
"""

from __future__ import annotations

from urllib.parse import urlsplit, urlunsplit

_SECRET_PATH_SEGMENTS: frozenset[str] = frozenset({"webhook", "webhooks", "hooks", "token"})


def truncate_for_log(value: str, *, max_string: int = 256) -> str:
    """Return *value* cut down to *max_string* characters."""
    if len(value) > max_string:
        return f"{value[:max_string]}…<truncated>"
    return value


def redact_url(url: str) -> str:
    """Return *url* with credentials, query and webhook secrets removed.

    ``http://user:pw@ha.local/api/webhook/abc?x=1`` becomes
    ``http://ha.local/api/webhook/<redacted>``.
    """
    parts = urlsplit(url)
    netloc = parts.hostname or ""
    if parts.port is not None:
        netloc = f"{netloc}:{parts.port}"

    segments = parts.path.split("/")
    for index, segment in enumerate(segments[:-1]):
        if segment.lower() in _SECRET_PATH_SEGMENTS and segments[index + 1]:
            segments[index + 1] = "<redacted>"
    path = "/".join(segments)

    query = "<redacted>" if parts.query else ""
    return urlunsplit((parts.scheme, netloc, path, query, ""))
