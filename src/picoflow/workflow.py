"""Workflow engine: named tasks chained through a message bus.

Usage:
    class Order(BaseModel):
        order_id: str | None = None
        total: float | None = None

    flow = (
        Workflow()
        .set_name("Orders")
        .set_context(Order)
        .set_startup(lambda trigger: trigger("validate", {"order_id": "A-1"}))
    )

    @flow.task("validate")
    async def validate(call: TaskCall) -> None:
        call.trigger("charge", {**dict(call.context), "total": 42.0})

    asyncio.run(flow.run())

Each task is subscribed under ``"[<workflow name>] <task name>"``. A task may
keep private state across invocations; it is created once when the task is
defined and shared by every later call of that task.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, fields, is_dataclass
import inspect
import logging
from typing import Any

from pydantic import BaseModel

from .bus import MessageBus
from .exceptions import ContextRuleMissingError

LOGGER = logging.getLogger(__name__)


Trigger = Callable[..., None]
ContextRule = Callable[[dict[str, Any]], Any]


@dataclass(frozen=True)
class TaskCall:
    """Arguments handed to a task handler."""

    context: Any
    state: Any
    name: str
    trigger: Trigger


@dataclass
class _Task:
    name: str
    handler: Callable[[TaskCall], Any]
    state: Any


def _missing_context_rule(params: dict[str, Any]) -> Any:
    raise ContextRuleMissingError(
        "No context rule configured; call set_context() before triggering tasks"
    )


async def _noop_startup(trigger: Trigger) -> None:
    return None


def _partial_fields(params: Any) -> dict[str, Any]:
    """Shallow-copy a partial context into a fresh dict."""
    if isinstance(params, Mapping):
        return dict(params)
    if isinstance(params, BaseModel):
        return dict(params)
    if is_dataclass(params) and not isinstance(params, type):
        return {f.name: getattr(params, f.name) for f in fields(params)}
    try:
        return dict(vars(params))
    except TypeError:
        raise TypeError(
            f"Cannot build a context from {type(params).__name__!r}; "
            "pass a mapping or an object with attributes"
        ) from None


class Workflow:
    """Owns tasks, a context rule and a startup hook on top of a MessageBus.

    Configuration setters return the workflow so they can be chained. Nothing
    is validated at configuration time; a missing context rule surfaces on
    the first ``trigger``.
    """

    def __init__(self, bus: MessageBus | None = None) -> None:
        self.bus = bus if bus is not None else MessageBus()
        self._name = "unknown"
        self._context_rule: ContextRule = _missing_context_rule
        self._startup: Callable[[Trigger], Any] = _noop_startup
        self._tasks: dict[str, _Task] = {}

    @property
    def name(self) -> str:
        """Workflow name used as the topic prefix."""
        return self._name

    @property
    def task_names(self) -> list[str]:
        """Qualified task names in registration order."""
        return list(self._tasks)

    def set_name(self, name: str) -> Workflow:
        """Set the prefix used for every task topic."""
        self._name = name
        return self

    def set_context(self, rule: type | ContextRule) -> Workflow:
        """Set how contexts are built from partial fields.

        A class (pydantic model, dataclass with defaults, ...) is called with
        the partial fields as keyword arguments. Any other callable receives
        the partial fields as a single dict.
        """
        if isinstance(rule, type):
            cls = rule
            self._context_rule = lambda params: cls(**params)
        else:
            self._context_rule = rule
        return self

    def set_startup(self, hook: Callable[[Trigger], Any]) -> Workflow:
        """Set the hook run by ``start``; it receives ``trigger``."""
        self._startup = hook
        return self

    def qualify(self, name: str) -> str:
        """Return the bus topic for task ``name``."""
        return f"[{self._name}] {name}"

    def define_task(
        self,
        name: str,
        handler: Callable[[TaskCall], Any],
        init_state: Callable[[], Any] | None = None,
    ) -> str:
        """Register a task and return its qualified name.

        Redefining a name replaces the previous task and its state.
        """
        qualified = self.qualify(name)
        state = init_state() if init_state is not None else {}
        self._tasks[qualified] = _Task(name=qualified, handler=handler, state=state)
        return qualified

    def task(
        self, name: str, init_state: Callable[[], Any] | None = None
    ) -> Callable[[Callable[[TaskCall], Any]], Callable[[TaskCall], Any]]:
        """Decorator form of ``define_task``."""

        def decorator(handler: Callable[[TaskCall], Any]) -> Callable[[TaskCall], Any]:
            self.define_task(name, handler, init_state=init_state)
            return handler

        return decorator

    def trigger(self, name: str, params: Any = None) -> None:
        """Build fresh context(s) and publish them to task ``name``.

        ``None`` publishes one context built from no fields. A list or tuple
        publishes one context per entry, in order; each entry's synchronous
        downstream work finishes before the next entry is published.
        """
        topic = self.qualify(name)
        if params is None:
            self.bus.publish(topic, self._context_rule({}))
        elif isinstance(params, (list, tuple)):
            for entry in params:
                self.bus.publish(topic, self._context_rule(_partial_fields(entry)))
        else:
            self.bus.publish(topic, self._context_rule(_partial_fields(params)))

    def _handler_for(self, task: _Task) -> Callable[[Any], None]:
        def handle(context: Any) -> None:
            call = TaskCall(
                context=context, state=task.state, name=task.name, trigger=self.trigger
            )
            try:
                self.bus.run_callback(task.handler, call)
            except Exception:
                LOGGER.exception(
                    "Task %s failed",
                    task.name,
                    extra={"event": "workflow.task_failed", "task": task.name},
                )

        return handle

    async def start(self) -> None:
        """Subscribe every task, then run the startup hook.

        A failing hook is logged; triggers it issued before failing have
        already completed their synchronous chains.
        """
        for task in self._tasks.values():
            self.bus.subscribe(task.name, self._handler_for(task))
            LOGGER.info(
                "subscribe %s",
                task.name,
                extra={"event": "workflow.task_subscribed", "task": task.name},
            )

        try:
            result = self._startup(self.trigger)
            if inspect.isawaitable(result):
                await result
        except Exception:
            LOGGER.exception(
                "Startup hook failed for workflow %s",
                self._name,
                extra={"event": "workflow.startup_failed", "workflow": self._name},
            )

    async def join(self) -> None:
        """Wait until every suspended task handler has finished."""
        await self.bus.join()

    async def run(self) -> None:
        """Start the workflow and wait for all of its work to settle."""
        await self.start()
        await self.join()
