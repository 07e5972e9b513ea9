"""Route each notification to a channel task chosen from its context."""

from __future__ import annotations

import asyncio

from pydantic import BaseModel

from picoflow import MessageBus, TaskCall, Workflow
from picoflow.config import load_config


class NotificationContext(BaseModel):
    type: str | None = None
    recipient: str | None = None
    message: str | None = None
    sent: bool | None = None


def _startup(trigger) -> None:
    trigger(
        "router",
        [
            {"type": "email", "recipient": "user@example.com", "message": "Welcome!"},
            {"type": "sms", "recipient": "+1234567890", "message": "Your code is 1234"},
            {"type": "push", "recipient": "device-token-123", "message": "New message"},
            {"type": "fax", "recipient": "+1987654321", "message": "Hello"},
        ],
    )


flow = (
    Workflow(bus=MessageBus.from_config(load_config()))
    .set_name("NotificationRouter")
    .set_context(NotificationContext)
    .set_startup(_startup)
)

CHANNELS = {"email": "send-email", "sms": "send-sms", "push": "send-push"}


@flow.task("router")
def router(call: TaskCall) -> None:
    call.trigger(CHANNELS.get(call.context.type, "handle-unknown"), call.context)


def _sender(channel: str):
    async def send(call: TaskCall) -> None:
        print(f"Sending {channel} to {call.context.recipient}: {call.context.message!r}")
        await asyncio.sleep(0.05)
        call.trigger("log", call.context.model_copy(update={"sent": True}))

    return send


for _channel, _task in CHANNELS.items():
    flow.define_task(_task, _sender(_channel))


@flow.task("handle-unknown")
def handle_unknown(call: TaskCall) -> None:
    print(f"Unknown notification type: {call.context.type}")


@flow.task("log", init_state=lambda: {"count": 0})
def log_sent(call: TaskCall) -> None:
    call.state["count"] += 1
    print(f"{call.context.type} sent (total sent: {call.state['count']})")


if __name__ == "__main__":
    asyncio.run(flow.run())
