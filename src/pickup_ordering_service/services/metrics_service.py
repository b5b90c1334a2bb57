"""Staff dashboard metrics computed from the order list."""

from decimal import Decimal

from pickup_ordering_service.models.order_models import Order, OrderStatus, StaffMetrics


def month_key(order: Order) -> str:
    """Month bucket label such as ``May 2025``, from the order's creation time."""
    moment = order.created_at or order.pickup_time
    return moment.strftime("%b %Y")


def compute_metrics(orders: list[Order]) -> StaffMetrics:
    """Aggregate sales and outcome counts.

    Sales only count completed orders; months are keyed in first-seen order.

    Args:
        orders: Every order visible to staff

    Returns:
        StaffMetrics for the metrics tab
    """
    completed = [order for order in orders if order.status == OrderStatus.COMPLETED]
    cancelled = sum(1 for order in orders if order.status == OrderStatus.CANCELLED)

    monthly_sales: dict[str, Decimal] = {}
    for order in completed:
        key = month_key(order)
        monthly_sales[key] = monthly_sales.get(key, Decimal("0")) + order.total

    return StaffMetrics(
        total_sales=sum((order.total for order in completed), Decimal("0")),
        completed_orders=len(completed),
        cancelled_orders=cancelled,
        monthly_sales=monthly_sales,
    )
