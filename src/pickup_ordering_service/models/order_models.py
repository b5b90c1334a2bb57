"""Order, pickup slot and staff metric models.

These models represent rows from the ``orders`` and ``order_items`` tables as
well as the derived views built on top of them.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pickup_ordering_service.models.menu_models import Dish, to_decimal


class OrderStatus(str, Enum):
    """Enumeration of order status values.

    Orders move pending -> preparing -> ready -> completed, and may be
    cancelled while pending or preparing.
    """

    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def label(self) -> str:
        """Customer-facing status badge text."""
        return _STATUS_LABELS[self]

    @property
    def is_active(self) -> bool:
        """True while the order still needs attention from the kitchen."""
        return self in ACTIVE_STATUSES


_STATUS_LABELS = {
    OrderStatus.PENDING: "Pending",
    OrderStatus.PREPARING: "Preparing",
    OrderStatus.READY: "Ready for Pickup",
    OrderStatus.COMPLETED: "Completed",
    OrderStatus.CANCELLED: "Cancelled",
}

ACTIVE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.PREPARING, OrderStatus.READY})
FINISHED_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})


class OrderItem(BaseModel):
    """A line of an order with the price captured at order time."""

    model_config = ConfigDict(json_encoders={Decimal: str})

    order_id: str = Field(..., description="Order this line belongs to")
    dish_id: str = Field(..., description="Dish ordered")
    quantity: int = Field(..., description="Number of portions", ge=1)
    price: Decimal = Field(..., description="Unit price snapshot", ge=0)
    dish: Dish | None = Field(None, description="Embedded dish row, when requested")

    @field_validator("price", mode="before")
    @classmethod
    def normalize_price(cls, v: Any) -> Any:
        """Normalize float prices from the backend."""
        return to_decimal(v)

    def to_row(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "dish_id": self.dish_id,
            "quantity": self.quantity,
            "price": str(self.price),
        }


class OrderCustomer(BaseModel):
    """Owner details embedded in staff order listings."""

    name: str | None = None
    email: str | None = None


class Order(BaseModel):
    """Order model.

    ``user_id`` is null for guest checkouts; such orders are visible to staff
    but never appear in a customer's own order list.
    """

    model_config = ConfigDict(json_encoders={Decimal: str})

    id: str = Field(..., description="Unique order identifier")
    user_id: str | None = Field(None, description="Owning user, None for guests")
    total: Decimal = Field(..., description="Order total", ge=0)
    status: OrderStatus = Field(default=OrderStatus.PENDING, description="Current status")
    pickup_time: datetime = Field(..., description="Scheduled pickup time")
    notes: str | None = Field(None, description="Special instructions")
    qr_code: str = Field(..., description="Token encoded in the pickup QR code")
    created_at: datetime | None = Field(None, description="Row creation timestamp")
    order_items: list[OrderItem] = Field(default_factory=list)
    customer: OrderCustomer | None = Field(None, description="Embedded owner details")

    @field_validator("total", mode="before")
    @classmethod
    def normalize_total(cls, v: Any) -> Any:
        """Normalize float totals from the backend."""
        return to_decimal(v)

    @property
    def short_id(self) -> str:
        return self.id[:8]

    @property
    def customer_name(self) -> str:
        if self.customer and self.customer.name:
            return self.customer.name
        return "Guest"

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Order":
        """Create an Order from an ``orders`` row with optional embeds.

        The staff listing embeds the owner under ``user``; that key is mapped
        to ``customer``.

        Args:
            row: Row dictionary returned by the backend

        Returns:
            Order: Parsed model instance
        """
        data = dict(row)
        customer = data.pop("user", None)
        if customer:
            data["customer"] = customer
        data["order_items"] = data.get("order_items") or []
        return cls(**data)


class NewOrder(BaseModel):
    """Order row written at checkout, before the backend assigns an id."""

    user_id: str | None
    total: Decimal
    status: OrderStatus = OrderStatus.PENDING
    pickup_time: datetime
    notes: str = ""
    qr_code: str

    def to_row(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "total": str(self.total),
            "status": self.status.value,
            "pickup_time": self.pickup_time.isoformat(),
            "notes": self.notes,
            "qr_code": self.qr_code,
        }


class PickupSlot(BaseModel):
    """A discrete pickup time option."""

    value: str = Field(..., description="24-hour HH:MM value submitted by the form")
    label: str = Field(..., description="12-hour display label, e.g. '6:30 PM'")
    starts_at: datetime = Field(..., description="Timezone-aware slot start")


class StatusAction(BaseModel):
    """A staff button that moves an order to another status."""

    label: str
    status: OrderStatus


class StaffMetrics(BaseModel):
    """Aggregates shown on the staff metrics tab."""

    model_config = ConfigDict(json_encoders={Decimal: str})

    total_sales: Decimal = Decimal("0")
    completed_orders: int = 0
    cancelled_orders: int = 0
    monthly_sales: dict[str, Decimal] = Field(default_factory=dict)
