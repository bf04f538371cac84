#!/usr/bin/env python3
"""Watch a cover entity and print its status on every change.

Reads configuration from ``PYCOVER_*`` environment variables (at least
``PYCOVER_SOURCE_URL``).  With ``--raw`` it skips the client and prints
every decoded event block from a single connection instead.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

import aiohttp  # noqa: E402

from pycover import CoverClient, CoverConfig, CoverError, aiter_events  # noqa: E402

_LOG = logging.getLogger("watch_cover")


class _PrintSink:
    """Prints rendered status; numbers messages so edits are visible."""

    def __init__(self) -> None:
        self._count = 0

    async def publish(self, text: str, message_id: str | None) -> str | None:
        if message_id is None:
            self._count += 1
            message_id = f"msg-{self._count}"
        print(f"[watch] {message_id}")
        for line in text.splitlines():
            print(f"[watch]   {line}")
        return message_id


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Watch a cover entity published over server-sent events.",
    )
    parser.add_argument(
        "--entity",
        help="Entity id to track (overrides PYCOVER_ENTITY_ID).",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=0,
        help="Maximum runtime in seconds (0 = run until Ctrl+C).",
    )
    parser.add_argument(
        "--raw",
        action="store_true",
        help="Print every decoded event from one connection and exit.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs.",
    )
    return parser.parse_args()


async def _dump_raw(config: CoverConfig) -> None:
    async with aiohttp.ClientSession() as session:
        async with session.get(config.source_url, headers={"accept": "text/event-stream"}) as resp:
            print(f"[watch] HTTP {resp.status}")
            async for event in aiter_events(resp.content):
                print(f"[watch] id={event.id!r} type={event.type!r} retry={event.retry} data={event.data}")


async def _watch(config: CoverConfig, duration: float) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    async with CoverClient(config, sink=_PrintSink()) as client:
        await client.start()
        try:
            await asyncio.wait_for(stop.wait(), timeout=duration if duration > 0 else None)
        except TimeoutError:
            print(f"[watch] Reached --duration={duration:g}s, stopping.")
        print(f"[watch] Final state: {client.status.door_state.label}")


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    overrides = {"entity_id": args.entity} if args.entity else {}
    try:
        config = CoverConfig.from_env(**overrides)
    except CoverError as exc:
        print(f"[watch] {exc}", file=sys.stderr)
        return 2

    try:
        if args.raw:
            asyncio.run(_dump_raw(config))
        else:
            asyncio.run(_watch(config, args.duration))
    except KeyboardInterrupt:
        pass
    except (CoverError, aiohttp.ClientError) as exc:  # pragma: no cover - network interaction
        _LOG.error("Watch failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(_main())
