"""Order processing: validation, payment, inventory and shipping with refunds."""

from __future__ import annotations

import asyncio
import random
from typing import Literal

from pydantic import BaseModel

from picoflow import TaskCall, Workflow


class LineItem(BaseModel):
    id: str
    quantity: int
    price: float


class OrderContext(BaseModel):
    order_id: str | None = None
    user_id: str | None = None
    items: list[LineItem] | None = None
    total_amount: float | None = None
    payment_status: Literal["pending", "paid", "failed"] | None = None
    inventory_status: Literal["available", "unavailable"] | None = None
    shipping_status: Literal["pending", "shipped", "delivered"] | None = None


def _startup(trigger) -> None:
    print("=== Order Processing System ===")
    trigger(
        "validate-order",
        [
            {
                "order_id": "ORD-001",
                "user_id": "user123",
                "items": [
                    {"id": "item1", "quantity": 2, "price": 29.99},
                    {"id": "item2", "quantity": 1, "price": 49.99},
                ],
            },
            {
                "order_id": "ORD-002",
                "user_id": "user456",
                "items": [{"id": "item3", "quantity": 1, "price": 99.99}],
            },
            {"order_id": "ORD-003", "items": []},
        ],
    )


flow = Workflow().set_name("OrderProcessing").set_context(OrderContext).set_startup(_startup)


@flow.task("validate-order")
def validate_order(call: TaskCall) -> None:
    order = call.context
    print(f"Validating order {order.order_id}...")
    if not order.user_id or not order.items:
        print(f"Order {order.order_id} failed validation")
        call.trigger("cancel-order", order)
        return

    total = sum(item.price * item.quantity for item in order.items)
    print(f"Order {order.order_id} validated. Total: ${total:.2f}")
    call.trigger(
        "process-payment",
        order.model_copy(update={"total_amount": total, "payment_status": "pending"}),
    )


@flow.task("process-payment")
async def process_payment(call: TaskCall) -> None:
    order = call.context
    print(f"Processing payment for order {order.order_id}...")
    await asyncio.sleep(0.1)

    if random.random() > 0.1:
        print(f"Payment of ${order.total_amount:.2f} accepted for {order.order_id}")
        call.trigger("check-inventory", order.model_copy(update={"payment_status": "paid"}))
    else:
        print(f"Payment failed for order {order.order_id}")
        call.trigger("cancel-order", order.model_copy(update={"payment_status": "failed"}))


@flow.task("check-inventory")
async def check_inventory(call: TaskCall) -> None:
    order = call.context
    print(f"Checking inventory for order {order.order_id}...")
    await asyncio.sleep(0.05)

    if random.random() > 0.05:
        print(f"All items available for order {order.order_id}")
        call.trigger(
            "ship-order",
            order.model_copy(
                update={"inventory_status": "available", "shipping_status": "pending"}
            ),
        )
    else:
        print(f"Items unavailable for order {order.order_id}")
        call.trigger(
            "refund-payment", order.model_copy(update={"inventory_status": "unavailable"})
        )


@flow.task("ship-order")
async def ship_order(call: TaskCall) -> None:
    order = call.context
    print(f"Shipping order {order.order_id}...")
    await asyncio.sleep(0.1)
    print(f"Order {order.order_id} shipped to {order.user_id}")
    call.trigger("complete-order", order.model_copy(update={"shipping_status": "shipped"}))


@flow.task("complete-order", init_state=lambda: {"completed_orders": 0, "total_revenue": 0.0})
def complete_order(call: TaskCall) -> None:
    call.state["completed_orders"] += 1
    call.state["total_revenue"] += call.context.total_amount
    print(
        f"Order {call.context.order_id} completed "
        f"({call.state['completed_orders']} orders, ${call.state['total_revenue']:.2f} revenue)"
    )


@flow.task("refund-payment")
async def refund_payment(call: TaskCall) -> None:
    order = call.context
    print(f"Refunding payment for order {order.order_id}...")
    await asyncio.sleep(0.05)
    print(f"Refunded ${order.total_amount:.2f} for order {order.order_id}")
    call.trigger("cancel-order", order)


@flow.task("cancel-order", init_state=lambda: {"cancelled_orders": 0})
def cancel_order(call: TaskCall) -> None:
    call.state["cancelled_orders"] += 1
    print(
        f"Order {call.context.order_id} cancelled "
        f"(total cancelled: {call.state['cancelled_orders']})"
    )


if __name__ == "__main__":
    asyncio.run(flow.run())
    print("=== Order processing complete ===")
