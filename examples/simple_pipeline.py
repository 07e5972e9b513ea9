"""Linear pipeline: each task transforms the value and hands it on.

Run with ``python -m picoflow examples.simple_pipeline:flow``.
"""

from __future__ import annotations

import asyncio

from pydantic import BaseModel

from picoflow import TaskCall, Workflow


class NumberContext(BaseModel):
    value: int | None = None
    history: list[str] | None = None


flow = (
    Workflow()
    .set_name("SimplePipeline")
    .set_context(NumberContext)
    .set_startup(lambda trigger: trigger("double", {"value": 5, "history": []}))
)


@flow.task("double")
def double(call: TaskCall) -> None:
    value = call.context.value * 2
    call.trigger("add-ten", {"value": value, "history": [*call.context.history, "double"]})


@flow.task("add-ten")
def add_ten(call: TaskCall) -> None:
    value = call.context.value + 10
    call.trigger("report", {"value": value, "history": [*call.context.history, "add-ten"]})


@flow.task("report")
def report(call: TaskCall) -> None:
    steps = " -> ".join(call.context.history)
    print(f"{steps}: {call.context.value}")


if __name__ == "__main__":
    asyncio.run(flow.run())
