"""Server-sent event stream with a cancellable keep-alive."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

import orjson

logger = logging.getLogger(__name__)

KEEPALIVE_INTERVAL = 30.0


def encode_event(data: Any, event: str = "message") -> bytes:
    return b"event: " + event.encode() + b"\ndata: " + orjson.dumps(data) + b"\n\n"


PING_FRAME = encode_event({}, event="ping")


class EventStream:
    """One long-lived SSE connection.

    Frames go out in the order they were queued. The keep-alive task only
    exists while :meth:`frames` is being iterated and is cancelled when the
    iteration ends for any reason, including client disconnect.
    """

    def __init__(self, keepalive_interval: float = KEEPALIVE_INTERVAL) -> None:
        self.keepalive_interval = keepalive_interval
        self._queue: asyncio.Queue[bytes] = asyncio.Queue()
        self._keepalive: asyncio.Task[None] | None = None
        self.closed = False

    @property
    def keepalive_task(self) -> asyncio.Task[None] | None:
        return self._keepalive

    def send(self, message: dict[str, Any], event: str = "message") -> None:
        if self.closed:
            raise RuntimeError("Event stream is closed")
        self._queue.put_nowait(encode_event(message, event))

    async def _keepalive_loop(self) -> None:
        while True:
            await asyncio.sleep(self.keepalive_interval)
            # A pending frame already proves liveness
            if self._queue.empty():
                self._queue.put_nowait(PING_FRAME)

    async def frames(self) -> AsyncIterator[bytes]:
        self._keepalive = asyncio.create_task(self._keepalive_loop())
        logger.info("Event stream opened")
        try:
            while True:
                yield await self._queue.get()
        finally:
            self.close()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._keepalive is not None:
            self._keepalive.cancel()
        logger.info("Event stream closed")
