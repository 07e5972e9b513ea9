"""Tests for MessageBus delivery, ordering and fault containment."""

from __future__ import annotations

import asyncio
import unittest
import warnings

from picoflow.bus import DEFAULT_MAX_DEPTH, MessageBus, configured_max_depth
from picoflow.exceptions import DispatchDepthError


class MessageBusTests(unittest.TestCase):
    """Validate synchronous publish/subscribe behavior."""

    def test_publish_without_subscribers_is_noop(self) -> None:
        bus = MessageBus()
        calls: list[object] = []
        bus.subscribe("c", calls.append)
        for topic in ("a", "b", "a"):
            bus.publish(topic, {"value": 1})
        self.assertEqual(calls, [])
        self.assertEqual(bus.pending, 0)

    def test_subscribers_run_in_registration_order_with_same_payload(self) -> None:
        bus = MessageBus()
        seen: list[tuple[int, object]] = []
        payload = {"message": "hello"}

        bus.subscribe("topic", lambda data: seen.append((1, data)))
        bus.subscribe("topic", lambda data: seen.append((2, data)))
        bus.subscribe("topic", lambda data: seen.append((3, data)))
        bus.publish("topic", payload)

        self.assertEqual([index for index, _ in seen], [1, 2, 3])
        for _, data in seen:
            self.assertIs(data, payload)

    def test_duplicate_subscription_is_invoked_twice(self) -> None:
        bus = MessageBus()
        calls: list[int] = []

        def callback(data: int) -> None:
            calls.append(data)

        bus.subscribe("topic", callback)
        bus.subscribe("topic", callback)
        bus.publish("topic", 7)

        self.assertEqual(calls, [7, 7])

    def test_other_topics_are_not_invoked(self) -> None:
        bus = MessageBus()
        calls: list[str] = []
        bus.subscribe("a", lambda data: calls.append("a"))
        bus.subscribe("b", lambda data: calls.append("b"))

        bus.publish("b", None)

        self.assertEqual(calls, ["b"])

    def test_failing_subscriber_does_not_stop_later_subscribers(self) -> None:
        bus = MessageBus()
        received: list[object] = []

        def broken(data: object) -> None:
            raise ValueError("boom")

        bus.subscribe("topic", broken)
        bus.subscribe("topic", received.append)

        with self.assertLogs("picoflow.bus", level="ERROR") as logs:
            bus.publish("topic", "payload")

        self.assertEqual(received, ["payload"])
        self.assertTrue(any("Subscriber failed for topic" in line for line in logs.output))

    def test_nested_publish_completes_before_publisher_continues(self) -> None:
        bus = MessageBus()
        events: list[str] = []

        def first(data: int) -> None:
            events.append(f"first:{data}")
            bus.publish("second", data + 1)
            events.append(f"first-done:{data}")

        def second(data: int) -> None:
            events.append(f"second:{data}")
            bus.publish("third", data + 1)

        bus.subscribe("first", first)
        bus.subscribe("second", second)
        bus.subscribe("third", lambda data: events.append(f"third:{data}"))

        bus.publish("first", 1)
        bus.publish("first", 10)

        self.assertEqual(
            events,
            [
                "first:1",
                "second:2",
                "third:3",
                "first-done:1",
                "first:10",
                "second:11",
                "third:12",
                "first-done:10",
            ],
        )

    def test_depth_bound_stops_runaway_republishing(self) -> None:
        bus = MessageBus(max_depth=5)
        calls: list[int] = []

        def again(data: int) -> None:
            calls.append(data)
            bus.publish("loop", data + 1)

        bus.subscribe("loop", again)
        with self.assertLogs("picoflow.bus", level="ERROR") as logs:
            bus.publish("loop", 1)

        self.assertEqual(calls, [1, 2, 3, 4, 5])
        self.assertTrue(any("DispatchDepthError" in line for line in logs.output))

    def test_publish_beyond_depth_raises_to_the_publisher(self) -> None:
        bus = MessageBus(max_depth=1)
        errors: list[Exception] = []

        def nested(data: object) -> None:
            try:
                bus.publish("other", data)
            except DispatchDepthError as exc:
                errors.append(exc)

        bus.subscribe("topic", nested)
        bus.publish("topic", None)

        self.assertEqual(len(errors), 1)

    def test_unbounded_bus_allows_deep_bounded_chains(self) -> None:
        bus = MessageBus(max_depth=None)
        calls: list[int] = []

        def again(data: int) -> None:
            calls.append(data)
            if data < 10:
                bus.publish("loop", data + 1)

        bus.subscribe("loop", again)
        bus.publish("loop", 1)

        self.assertEqual(calls, list(range(1, 11)))

    def test_async_subscriber_without_event_loop_is_contained(self) -> None:
        bus = MessageBus()
        received: list[object] = []

        async def handler(data: object) -> None:
            received.append(data)

        bus.subscribe("topic", handler)
        with warnings.catch_warnings():
            warnings.simplefilter("error", RuntimeWarning)
            with self.assertLogs("picoflow.bus", level="ERROR") as logs:
                bus.publish("topic", 1)

        self.assertEqual(received, [])
        self.assertTrue(any("SuspendedHandlerError" in line for line in logs.output))

    def test_from_config_reads_dispatch_section(self) -> None:
        self.assertEqual(MessageBus.from_config({"dispatch": {"max_depth": 7}}).max_depth, 7)
        self.assertIsNone(MessageBus.from_config({"dispatch": {"max_depth": 0}}).max_depth)
        self.assertEqual(MessageBus.from_config({}).max_depth, DEFAULT_MAX_DEPTH)

    def test_unset_max_depth_keeps_the_given_default(self) -> None:
        unset = {"dispatch": {"max_depth": None}}
        self.assertEqual(MessageBus.from_config(unset).max_depth, DEFAULT_MAX_DEPTH)
        self.assertEqual(configured_max_depth(unset, default=500), 500)
        self.assertIsNone(configured_max_depth(unset, default=None))
        self.assertEqual(configured_max_depth({"dispatch": {"max_depth": 3}}, default=500), 3)


class AsyncSubscriberTests(unittest.IsolatedAsyncioTestCase):
    """Validate eager start and the sync/async containment boundary."""

    async def asyncSetUp(self) -> None:
        self.reported: list[dict[str, object]] = []
        loop = asyncio.get_running_loop()
        loop.set_exception_handler(lambda _loop, context: self.reported.append(context))

    async def test_async_subscriber_without_suspension_runs_before_publish_returns(
        self,
    ) -> None:
        bus = MessageBus()
        received: list[int] = []

        async def handler(data: int) -> None:
            received.append(data)

        bus.subscribe("topic", handler)
        bus.publish("topic", 3)

        self.assertEqual(received, [3])
        self.assertEqual(bus.pending, 0)

    async def test_publish_returns_at_first_suspension_point(self) -> None:
        bus = MessageBus()
        events: list[str] = []

        async def handler(data: int) -> None:
            events.append("before")
            await asyncio.sleep(0)
            events.append("after")

        bus.subscribe("topic", handler)
        bus.publish("topic", 1)
        events.append("published")
        self.assertEqual(bus.pending, 1)

        await bus.join()

        self.assertEqual(events, ["before", "published", "after"])
        self.assertEqual(bus.pending, 0)

    async def test_failure_before_suspension_is_contained(self) -> None:
        bus = MessageBus()
        received: list[int] = []

        async def broken(data: int) -> None:
            raise ValueError("early")

        bus.subscribe("topic", broken)
        bus.subscribe("topic", received.append)

        with self.assertLogs("picoflow.bus", level="ERROR") as logs:
            bus.publish("topic", 5)

        self.assertEqual(received, [5])
        self.assertTrue(any("ValueError: early" in line for line in logs.output))
        self.assertEqual(self.reported, [])

    async def test_failure_after_suspension_escapes_containment(self) -> None:
        bus = MessageBus()

        async def late(data: int) -> None:
            await asyncio.sleep(0)
            raise ValueError("late")

        bus.subscribe("topic", late)
        with self.assertNoLogs("picoflow.bus", level="ERROR"):
            bus.publish("topic", 1)
            await bus.join()

        self.assertEqual(len(self.reported), 1)
        error = self.reported[0]["exception"]
        self.assertIsInstance(error, ValueError)
        self.assertEqual(str(error), "late")

    async def test_join_waits_for_handlers_started_while_waiting(self) -> None:
        bus = MessageBus()
        events: list[str] = []

        async def first(data: int) -> None:
            await asyncio.sleep(0)
            bus.publish("second", data)

        async def second(data: int) -> None:
            await asyncio.sleep(0)
            events.append(f"second:{data}")

        bus.subscribe("first", first)
        bus.subscribe("second", second)
        bus.publish("first", 1)
        await bus.join()

        self.assertEqual(events, ["second:1"])

    async def test_cancel_pending_stops_suspended_handlers(self) -> None:
        bus = MessageBus()
        finished: list[bool] = []

        async def slow(data: int) -> None:
            await asyncio.sleep(9999)
            finished.append(True)

        bus.subscribe("topic", slow)
        bus.publish("topic", 1)
        await bus.cancel_pending()

        self.assertEqual(finished, [])
        self.assertEqual(bus.pending, 0)
        self.assertEqual(self.reported, [])


if __name__ == "__main__":
    unittest.main()
