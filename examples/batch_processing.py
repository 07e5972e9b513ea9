"""Batch fan-out: one trigger call publishes a context per input.

The handlers suspend, so the batch entries interleave once each one reaches
its first ``await``.
"""

from __future__ import annotations

import asyncio

from pydantic import BaseModel

from picoflow import TaskCall, Workflow


class UserContext(BaseModel):
    user_id: str | None = None
    email: str | None = None
    processed: bool | None = None


async def _startup(trigger) -> None:
    print("Starting batch processing...")
    trigger(
        "process-user",
        [
            {"user_id": "1", "email": "user1@example.com"},
            {"user_id": "2", "email": "user2@example.com"},
            {"user_id": "3", "email": "user3@example.com"},
        ],
    )


flow = Workflow().set_name("BatchProcessor").set_context(UserContext).set_startup(_startup)


@flow.task("process-user")
async def process_user(call: TaskCall) -> None:
    print(f"Processing user {call.context.user_id}: {call.context.email}")
    await asyncio.sleep(0.1)
    call.trigger("notify", call.context.model_copy(update={"processed": True}))


@flow.task("notify")
def notify(call: TaskCall) -> None:
    print(f"Notification sent to {call.context.email} (user {call.context.user_id})")


if __name__ == "__main__":
    asyncio.run(flow.run())
    print("All users processed!")
