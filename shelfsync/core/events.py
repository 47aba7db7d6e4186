"""In-process observable stream with explicit cancellation.

Used for the identity provider's auth-state changes and for the sync
coordinator's UI notifications. Each subscriber owns an unbounded queue, so
publishing never blocks and a slow consumer never loses events.
"""

import asyncio
from typing import Generic, Optional, TypeVar

T = TypeVar("T")

_CLOSED = object()


class Subscription(Generic[T]):
    """Async iterator over the events published after it was opened."""

    def __init__(self, stream: "EventStream[T]"):
        self._stream = stream
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    def _deliver(self, value: T) -> None:
        if not self._closed:
            self._queue.put_nowait(value)

    async def get(self) -> T:
        """Wait for the next event; raise ``StopAsyncIteration`` once closed."""
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._stream._discard(self)
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> "Subscription[T]":
        return self

    async def __anext__(self) -> T:
        return await self.get()


class EventStream(Generic[T]):

    def __init__(self) -> None:
        self._subscribers: list[Subscription[T]] = []

    def subscribe(self, initial: Optional[T] = None, *, replay: bool = False) -> Subscription[T]:
        """Open a subscription, optionally queueing *initial* as its first event."""
        subscription: Subscription[T] = Subscription(self)
        if replay:
            subscription._deliver(initial)
        self._subscribers.append(subscription)
        return subscription

    def publish(self, value: T) -> None:
        for subscription in list(self._subscribers):
            subscription._deliver(value)

    def close(self) -> None:
        for subscription in list(self._subscribers):
            subscription.close()

    def _discard(self, subscription: Subscription[T]) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)
