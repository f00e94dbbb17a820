"""Hand-off queues between socket I/O and message processing.

Each queue has exactly one producer thread and one consumer thread; they are
the only thing those threads share.
"""

from __future__ import annotations

import queue                          # Thread-safe FIFO
from typing import Generic, Optional, Tuple, TypeVar

from .protocol import Message
from .util import LOG

INGRESS_CAPACITY: int = 1024          # Datagrams waiting for the consume loop

T = TypeVar("T")

# Raw datagram plus the address it came from
Datagram = Tuple[bytes, Tuple[str, int]]


class _HandOff(Generic[T]):
    """Common blocking ``take`` side."""

    def __init__(self, maxsize: int = 0) -> None:
        self._q: "queue.Queue[T]" = queue.Queue(maxsize)

    def take(self, timeout: Optional[float] = None) -> T:
        """Block until an item is available.

        Raises:
            queue.Empty: nothing arrived within ``timeout`` seconds.
        """
        return self._q.get(timeout=timeout)

    def __len__(self) -> int:
        return self._q.qsize()


class IngressQueue(_HandOff[Datagram]):
    """Bounded buffer between the receive loop and the consume loop."""

    def __init__(self, capacity: int = INGRESS_CAPACITY) -> None:
        super().__init__(capacity)
        self.dropped = 0                 # Datagrams lost to overflow

    def offer(self, item: Datagram) -> bool:
        """Non-blocking put; a full queue drops the datagram and returns False."""
        try:
            self._q.put_nowait(item)
        except queue.Full:
            self.dropped += 1
            LOG.warning("Ingress queue full - dropped datagram from %s", item[1])
            return False
        return True


class EgressQueue(_HandOff[Optional[str]]):
    """Outbound chat text waiting to be encoded & written by the egress loop.

    ``close()`` enqueues ``None`` behind any pending text; the egress loop
    treats it as end-of-stream.
    """

    def push(self, text: str) -> None:
        self._q.put(text)

    def close(self) -> None:
        self._q.put(None)


class RenderQueue(_HandOff[Message]):
    """Messages waiting to be drawn by the client's render loop."""

    def push(self, message: Message) -> None:
        self._q.put(message)
