"""Websocket fan-out using bounded asyncio queues."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

from ..utils.logging import logger

# Placed on a dropped subscriber's queue; readers stop when they see it.
CLOSED: Optional[Dict[str, Any]] = None


class Broadcaster:
    """Deliver every published event to each registered subscriber queue.

    A subscriber whose queue is full is dropped: its backlog is discarded
    and replaced by :data:`CLOSED`. The remaining subscribers and the
    publishing tick are unaffected.
    """

    def __init__(self, max_queue: int = 256):
        self.max_queue = max_queue
        self.connections: List[asyncio.Queue] = []
        self._lock = asyncio.Lock()

    async def register(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_queue)
        async with self._lock:
            self.connections.append(queue)
        logger.debug("Subscriber registered ({} total)", len(self.connections))
        return queue

    async def unregister(self, queue: asyncio.Queue) -> None:
        async with self._lock:
            if queue in self.connections:
                self.connections.remove(queue)
                logger.debug("Subscriber unregistered ({} left)", len(self.connections))

    async def broadcast(self, message: Dict[str, Any]) -> int:
        """Queue ``message`` for all subscribers; returns how many received it."""

        delivered = 0
        async with self._lock:
            for queue in list(self.connections):
                try:
                    queue.put_nowait(message)
                    delivered += 1
                except asyncio.QueueFull:
                    logger.warning("Dropping slow subscriber (queue full at {} events)", queue.qsize())
                    self.connections.remove(queue)
                    _close(queue)
        return delivered

    def __len__(self) -> int:
        return len(self.connections)


def _close(queue: asyncio.Queue) -> None:
    while not queue.empty():
        queue.get_nowait()
    queue.put_nowait(CLOSED)


__all__ = ["Broadcaster", "CLOSED"]
