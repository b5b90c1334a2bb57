"""Checkout service: pickup details, order review and order placement."""

import logging
import secrets
import string
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from pickup_ordering_service.models.cart_models import Cart, CartItem
from pickup_ordering_service.models.change_models import ChangeType, TableChange
from pickup_ordering_service.models.order_models import NewOrder, Order, OrderItem, PickupSlot
from pickup_ordering_service.models.user_models import User
from pickup_ordering_service.observability.decorators import traced
from pickup_ordering_service.observability.metrics import record_order_placed
from pickup_ordering_service.repositories.table_repositories import (
    OrderItemRepository,
    OrderRepository,
)
from pickup_ordering_service.services.backend_client import BackendError
from pickup_ordering_service.services.cart_service import CartService
from pickup_ordering_service.services.change_notifier import ChangeNotifier
from pickup_ordering_service.services.pickup_slots import PickupSchedule

logger = logging.getLogger(__name__)

_TOKEN_ALPHABET = string.ascii_lowercase + string.digits


class CheckoutError(Exception):
    """Raised when checkout details are incomplete or no longer valid."""


class CheckoutDetails(BaseModel):
    """Step one of checkout: who picks up, when, and any instructions."""

    name: str = ""
    phone: str = ""
    pickup_time: str = Field(default="", description="Chosen slot as HH:MM")
    notes: str = ""


class OrderReview(BaseModel):
    """Step two of checkout: everything the customer confirms."""

    name: str
    phone: str
    pickup_time: str
    pickup_label: str
    pickup_at: datetime
    notes: str
    items: list[CartItem]
    total_items: int
    total_price: Decimal


@dataclass
class PlacedOrder:
    """Result of a successful checkout."""

    order: Order
    message: str


def generate_qr_token() -> str:
    """Random order token of the form ``order-xxxxxxxx`` (lowercase base36)."""
    return "order-" + "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(8))


class CheckoutService:
    """Service that turns a cart into an order.

    The order row and its item rows are written in two requests. If the item
    insert fails, the order row is deleted again so no order is left without
    items, and the original error is raised.
    """

    def __init__(
        self,
        cart_service: CartService,
        schedule: PickupSchedule,
        order_repository: OrderRepository,
        order_item_repository: OrderItemRepository,
        notifier: ChangeNotifier,
    ) -> None:
        """Initialize the CheckoutService.

        Args:
            cart_service: Cart access for the order contents
            schedule: Pickup schedule for slot validation
            order_repository: Repository for order rows
            order_item_repository: Repository for order item rows
            notifier: Change hub used to announce new orders
        """
        self.cart_service = cart_service
        self.schedule = schedule
        self.order_repository = order_repository
        self.order_item_repository = order_item_repository
        self.notifier = notifier

    def pickup_slots(self, now: datetime | None = None) -> list[PickupSlot]:
        return self.schedule.available_slots(now)

    def validate_details(self, cart: Cart, details: CheckoutDetails, now: datetime | None = None) -> PickupSlot:
        """Check step-one details against the cart and the schedule.

        Args:
            cart: Cart being checked out
            details: Submitted details
            now: Current time (defaults to the store clock)

        Returns:
            The chosen pickup slot

        Raises:
            CheckoutError: With the message to show the customer
        """
        if cart.is_empty:
            raise CheckoutError("Your cart is empty")
        if not details.pickup_time:
            raise CheckoutError("Please select a pickup time")
        if not details.name.strip() or not details.phone.strip():
            raise CheckoutError("Please enter your name and phone number")

        slot = self.schedule.resolve(details.pickup_time, now)
        if slot is None:
            raise CheckoutError("The selected pickup time is no longer available")
        return slot

    def review(self, cart_id: str, details: CheckoutDetails, now: datetime | None = None) -> OrderReview:
        """Build the order summary shown before placing the order.

        Raises:
            CheckoutError: If the details are not valid
        """
        cart = self.cart_service.get_cart(cart_id)
        slot = self.validate_details(cart, details, now)
        return OrderReview(
            name=details.name,
            phone=details.phone,
            pickup_time=slot.value,
            pickup_label=slot.label,
            pickup_at=slot.starts_at,
            notes=details.notes,
            items=cart.items,
            total_items=cart.total_items,
            total_price=cart.total_price,
        )

    @traced("checkout.place_order")
    async def place_order(
        self,
        cart_id: str,
        details: CheckoutDetails,
        user: User | None,
        now: datetime | None = None,
    ) -> PlacedOrder:
        """Place the order for a cart and clear the cart.

        Args:
            cart_id: Client cart id
            details: Validated step-one details
            user: Signed-in user, or None for a guest checkout
            now: Current time (defaults to the store clock)

        Returns:
            PlacedOrder with the stored order and a confirmation message

        Raises:
            CheckoutError: If the details are not valid
            BackendError: If the order cannot be written
        """
        cart = self.cart_service.get_cart(cart_id)
        slot = self.validate_details(cart, details, now)

        new_order = NewOrder(
            user_id=user.id if user else None,
            total=cart.total_price,
            pickup_time=slot.starts_at,
            notes=details.notes,
            qr_code=generate_qr_token(),
        )
        order = await self.order_repository.create_order(new_order)

        items = [
            OrderItem(order_id=order.id, dish_id=item.id, quantity=item.quantity, price=item.price)
            for item in cart.items
        ]
        try:
            await self.order_item_repository.create_items(items)
        except Exception:
            logger.exception(f"Failed to store items of order {order.id}, removing the order")
            try:
                await self.order_repository.delete_order(order.id)
            except Exception as cleanup_error:
                logger.error(f"Could not remove incomplete order {order.id}: {cleanup_error}")
            raise

        order.order_items = items
        self.cart_service.clear(cart_id)

        logger.info(
            f"Order {order.id} placed for {'guest' if user is None else user.id}, pickup {slot.value}"
        )
        record_order_placed(guest=user is None, total=float(order.total))
        await self.notifier.publish(
            TableChange(
                table=OrderRepository.table_name,
                event_type=ChangeType.INSERT,
                record={"id": order.id, "status": order.status.value},
            )
        )

        return PlacedOrder(order=order, message=f"Your order #{order.short_id} has been placed.")
