"""Custom metrics for the ordering service."""

from opentelemetry import metrics

meter = metrics.get_meter("pickup-ordering-service")

orders_placed_counter = meter.create_counter(
    name="orders_placed_total",
    description="Total number of orders placed, by checkout type",
    unit="1",
)

order_value_histogram = meter.create_histogram(
    name="order_value",
    description="Order totals at checkout",
    unit="USD",
)

order_status_counter = meter.create_counter(
    name="order_status_changes_total",
    description="Total number of order status changes, by new status",
    unit="1",
)

dish_change_counter = meter.create_counter(
    name="dish_changes_total",
    description="Total number of dish create/update/toggle operations",
    unit="1",
)

backend_failure_counter = meter.create_counter(
    name="backend_request_failures_total",
    description="Total number of failed backend requests, by path and status",
    unit="1",
)


def record_order_placed(guest: bool, total: float) -> None:
    """Record a placed order.

    Args:
        guest: Whether the order was placed without a signed-in user
        total: Order total
    """
    checkout_type = "guest" if guest else "member"
    orders_placed_counter.add(1, {"checkout_type": checkout_type})
    order_value_histogram.record(total, {"checkout_type": checkout_type})


def record_status_change(status: str) -> None:
    order_status_counter.add(1, {"status": status})


def record_dish_change(operation: str) -> None:
    dish_change_counter.add(1, {"operation": operation})


def record_backend_failure(path: str, reason: str) -> None:
    """Record a failed backend request.

    Args:
        path: Request path (e.g., "/rest/v1/orders")
        reason: HTTP status code as a string, or "transport" for network errors
    """
    backend_failure_counter.add(1, {"path": path, "reason": reason})
