"""Synchronous in-process message bus.

Usage:
    bus = MessageBus()

    def on_order(payload):
        print(f"Order received: {payload['id']}")

    bus.subscribe("order.created", on_order)

    # Returns only after every subscriber (and everything they publish) ran
    bus.publish("order.created", {"id": 1})

Every ``publish`` drains its own message before returning, so a subscriber
that publishes again is processed depth-first: the whole synchronous chain
below one message finishes before the publisher's next statement runs.

Subscribers may be coroutine functions. They are started eagerly and run
synchronously up to their first suspension point; the remainder runs on the
event loop and the bus does not wait for it. Only failures raised before
that first suspension are contained. A failure raised after it is passed
to the loop's exception handler as an unhandled error.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
import inspect
import logging
from typing import Any

from .exceptions import DispatchDepthError, SuspendedHandlerError
from .pending import PendingHandlers

LOGGER = logging.getLogger(__name__)

# Each nested publish costs roughly ten interpreter frames.
DEFAULT_MAX_DEPTH = 64


@dataclass(frozen=True)
class Message:
    """A pending delivery."""

    topic: str
    payload: Any


async def _await(awaitable: Awaitable[Any]) -> Any:
    return await awaitable


def configured_max_depth(
    config: Mapping[str, Any], default: int | None = DEFAULT_MAX_DEPTH
) -> int | None:
    """Read ``[dispatch] max_depth``: unset keeps ``default``, ``0`` means unbounded."""
    max_depth = config.get("dispatch", {}).get("max_depth")
    if max_depth is None:
        return default
    return max_depth or None


class MessageBus:
    """Topic-keyed publish/subscribe bus with drain-before-return delivery.

    Subscriber lists are append-only for the lifetime of the bus and are
    invoked in registration order.
    """

    def __init__(self, max_depth: int | None = DEFAULT_MAX_DEPTH) -> None:
        self._subscribers: dict[str, list[Callable[[Any], Any]]] = {}
        self._queue: deque[Message] = deque()
        self._pending = PendingHandlers()
        self._depth = 0
        self.max_depth = max_depth

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> MessageBus:
        """Build a bus from a loaded configuration."""
        return cls(max_depth=configured_max_depth(config))

    @property
    def pending(self) -> int:
        """Number of suspended handlers still running."""
        return len(self._pending)

    def subscribe(self, topic: str, callback: Callable[[Any], Any]) -> None:
        """Subscribe to a topic.

        Args:
            topic: Topic to listen on (e.g., "[Orders] validate")
            callback: Function or coroutine function receiving the payload
        """
        if topic not in self._subscribers:
            self._subscribers[topic] = []
        self._subscribers[topic].append(callback)
        LOGGER.debug("Subscribed to topic: %s", topic)

    def publish(self, topic: str, payload: Any) -> None:
        """Publish a payload and deliver it before returning.

        Args:
            topic: Topic name
            payload: Value handed to every subscriber unchanged

        Raises:
            DispatchDepthError: When nesting would exceed ``max_depth``.
        """
        if self.max_depth is not None and self._depth >= self.max_depth:
            raise DispatchDepthError(
                f"Publishing to {topic!r} exceeds the dispatch depth of {self.max_depth}"
            )
        self._queue.append(Message(topic=topic, payload=payload))
        self._depth += 1
        try:
            self._drain_one()
        finally:
            self._depth -= 1

    def _drain_one(self) -> None:
        if not self._queue:
            return
        message = self._queue.popleft()
        callbacks = self._subscribers.get(message.topic)
        if not callbacks:
            LOGGER.debug("No subscribers for topic: %s", message.topic)
            return

        for callback in list(callbacks):
            try:
                self.run_callback(callback, message.payload)
            except Exception:
                LOGGER.exception(
                    "Subscriber failed for %s",
                    message.topic,
                    extra={"event": "bus.subscriber_failed", "topic": message.topic},
                )

    def run_callback(self, callback: Callable[..., Any], *args: Any) -> None:
        """Invoke ``callback`` and start any awaitable it returns.

        Failures raised before the first suspension point propagate to the
        caller. Past that point the task is tracked until it finishes.
        """
        result = callback(*args)
        if not inspect.isawaitable(result):
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(result):
                result.close()
            raise SuspendedHandlerError(
                f"{getattr(callback, '__qualname__', callback)!r} returned an awaitable "
                "but no event loop is running"
            ) from None

        coro = result if inspect.iscoroutine(result) else _await(result)
        task = asyncio.eager_task_factory(loop, coro)
        if task.done():
            if task.cancelled():
                return
            error = task.exception()
            if error is not None:
                raise error
            return

        task.add_done_callback(self._report_late_failure)
        self._pending.add(task)

    @staticmethod
    def _report_late_failure(task: asyncio.Task[Any]) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is None:
            return
        task.get_loop().call_exception_handler(
            {
                "message": "Handler failed after suspending",
                "exception": error,
                "task": task,
            }
        )

    async def join(self) -> None:
        """Wait for every suspended handler, including ones started meanwhile."""
        await self._pending.await_all()

    async def cancel_pending(self) -> None:
        """Cancel suspended handlers that have not finished yet."""
        await self._pending.cancel_all()
