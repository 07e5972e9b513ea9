"""Retry by re-triggering the same task, counting attempts in task state.

Every retry is a nested publish, so the number of attempts is bounded by
the bus ``max_depth``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import random

from picoflow import TaskCall, Workflow


@dataclass
class ApiContext:
    url: str | None = None
    success: bool | None = None


flow = (
    Workflow()
    .set_name("ApiRetry")
    .set_context(ApiContext)
    .set_startup(lambda trigger: trigger("fetch-data", {"url": "https://api.example.com/data"}))
)


def fetch_data(call: TaskCall) -> None:
    call.state["attempts"] += 1
    attempts, max_retries = call.state["attempts"], call.state["max_retries"]
    print(f"Attempt {attempts}/{max_retries} to fetch {call.context.url}")

    if random.random() > 0.7:
        call.trigger("process-data", {"url": call.context.url, "success": True})
    elif attempts < max_retries:
        call.trigger("fetch-data", call.context)
    else:
        call.trigger("handle-error", {"url": call.context.url, "success": False})


flow.define_task(
    "fetch-data", fetch_data, init_state=lambda: {"attempts": 0, "max_retries": 3}
)
flow.define_task("process-data", lambda call: print("Data processed successfully!"))
flow.define_task("handle-error", lambda call: print("Max retries reached, giving up."))


if __name__ == "__main__":
    asyncio.run(flow.run())
